"""
Abstract Exchange Gateway Interface
Narrow port between the trading core and the venue connectivity layer.

Adapters:
- PaperGateway (simulated venue, no credentials)
- HttpExchangeGateway (REST + WebSocket balance stream)
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from volume_bot.core.types import (
    BalanceSnapshot,
    OrderBook,
    OrderRequest,
    Position,
    TradePrint,
)


class ExchangeGateway(ABC):
    """
    Abstract exchange gateway.

    The core only talks to the venue through this interface, so every
    adapter must translate its own transport failures into GatewayError
    (or OrderRejected for order submission).
    """

    def __init__(self) -> None:
        self._connected = False
        self._account_id: str | None = None

    @property
    def is_connected(self) -> bool:
        """Check if the session is established."""
        return self._connected

    @property
    def account_id(self) -> str | None:
        """Resolved trading account, once connected."""
        return self._account_id

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the session and resolve the trading account.

        Raises:
            GatewayError: If credentials are missing or the venue refuses
        """

    @abstractmethod
    async def fetch_top_of_book(self, instrument: str, depth: int = 1) -> OrderBook | None:
        """
        Fetch order book depth.

        Returns:
            Book snapshot, or None when the venue has no book for the instrument
        """

    @abstractmethod
    async def fetch_recent_trades(self, instrument: str, limit: int = 1) -> list[TradePrint]:
        """Fetch the most recent public trades, newest first."""

    @abstractmethod
    async def submit_market_order(self, request: OrderRequest) -> str:
        """
        Submit a market order.

        Returns:
            Venue order identifier

        Raises:
            OrderRejected: If the venue rejects the order or the call fails
        """

    @abstractmethod
    async def subscribe_balance(self) -> None:
        """Subscribe to balance updates. Returns once the venue acknowledges."""

    @abstractmethod
    async def get_available_balance(self) -> BalanceSnapshot:
        """Get the latest available balance."""

    @abstractmethod
    async def get_open_positions(self) -> list[Position]:
        """Get currently open positions."""

    @abstractmethod
    async def set_leverage(self, instrument: str, leverage: int) -> None:
        """
        Apply leverage to an instrument.

        Raises:
            GatewayError: If the venue refuses the change
        """

    @abstractmethod
    async def close_connection(self) -> None:
        """Release the session and any open streams."""
