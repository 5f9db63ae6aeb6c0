"""Typed errors for the volume bot."""

from __future__ import annotations

from typing import Any


class VolumeBotError(Exception):
    """Base class for volume bot errors."""


class GatewayError(VolumeBotError):
    """Raised by the exchange gateway on transport or venue failures."""

    def __init__(
        self,
        message: str,
        payload: Any = None,
        code: str | None = None,
    ) -> None:
        self.payload = payload
        self.code = code
        super().__init__(message)


class PriceUnavailable(VolumeBotError):
    """Raised when no usable reference price exists for a cycle."""


class OrderRejected(GatewayError):
    """Raised when the venue refuses or fails to execute an order."""

    def __init__(
        self,
        message: str,
        side: Any = None,
        payload: Any = None,
        code: str | None = None,
    ) -> None:
        self.side = side
        super().__init__(message, payload=payload, code=code)


class InitializationFault(VolumeBotError):
    """Raised when the startup sequence cannot complete."""


class ShutdownFault(VolumeBotError):
    """Raised when releasing the exchange connection fails during shutdown."""
