"""Pure core contracts for the volume bot."""

from volume_bot.core.errors import (
    GatewayError,
    InitializationFault,
    OrderRejected,
    PriceUnavailable,
    ShutdownFault,
    VolumeBotError,
)

__all__ = [
    "VolumeBotError",
    "GatewayError",
    "PriceUnavailable",
    "OrderRejected",
    "InitializationFault",
    "ShutdownFault",
]
