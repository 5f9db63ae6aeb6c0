"""
Gateway Factory
Creates the exchange gateway adapter selected by the GATEWAY setting.
"""

from __future__ import annotations

import logging

from volume_bot.config import GatewayKind, VolumeBotSettings
from volume_bot.execution.base import ExchangeGateway

logger = logging.getLogger(__name__)


def create_gateway(settings: VolumeBotSettings, kind: GatewayKind | None = None) -> ExchangeGateway:
    """
    Create the gateway adapter.

    Args:
        settings: Loaded settings
        kind: Adapter override (None reads GATEWAY from settings)

    Returns:
        An unconnected ExchangeGateway
    """
    kind = kind or settings.gateway

    if kind == GatewayKind.PAPER:
        from volume_bot.execution.paper_gateway import PaperGateway

        logger.info("Creating paper gateway (simulated fills)")
        return PaperGateway(settings.paper)

    if kind == GatewayKind.HTTP:
        from volume_bot.execution.http_gateway import HttpExchangeGateway

        logger.info(f"Creating HTTP gateway ({settings.environment.value})")
        return HttpExchangeGateway(
            environment=settings.environment,
            settings=settings.exchange,
            private_key=settings.private_key.get_secret_value() if settings.private_key else None,
            api_key=settings.api_key.get_secret_value() if settings.api_key else None,
        )

    raise ValueError(f"Unsupported gateway: {kind}")
