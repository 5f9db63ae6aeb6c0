"""
Paper Exchange Gateway
In-memory simulated venue for dry runs without credentials.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from uuid import uuid4

from volume_bot.config import PaperSettings
from volume_bot.core.errors import GatewayError, OrderRejected
from volume_bot.core.types import (
    BalanceSnapshot,
    BookLevel,
    OrderBook,
    OrderRequest,
    OrderSide,
    Position,
    TimeInForce,
    TradePrint,
)
from volume_bot.execution.base import ExchangeGateway
from volume_bot.execution.fill_model import FillModel

logger = logging.getLogger(__name__)


class PaperGateway(ExchangeGateway):
    """
    Simulated exchange.

    Quotes a synthetic top of book around a drifting reference price and
    fills IOC market orders immediately with slippage, latency and fees.
    Orders whose notional exceeds balance * leverage are rejected, using the
    leverage set for the instrument when there is one.
    """

    def __init__(self, settings: PaperSettings | None = None) -> None:
        """
        Initialize paper gateway.

        Args:
            settings: Paper venue settings (defaults used when omitted)
        """
        super().__init__()
        self._settings = settings or PaperSettings()
        self._fill_model = FillModel(self._settings)
        self._balance = self._settings.starting_balance
        self._reference_price = self._settings.reference_price
        self._leverage: dict[str, int] = {}
        self._positions: dict[str, Decimal] = {}  # instrument -> signed quantity
        self._avg_prices: dict[str, Decimal] = {}
        self._last_trade: dict[str, Decimal] = {}
        self._subscribed = False
        self._order_ids: list[str] = []

    @property
    def order_ids(self) -> list[str]:
        """Identifiers of all filled orders, oldest first."""
        return list(self._order_ids)

    async def connect(self) -> None:
        """Connect (no credentials needed)."""
        self._account_id = "paper-account"
        self._connected = True
        logger.info("PaperGateway connected")

    async def fetch_top_of_book(self, instrument: str, depth: int = 1) -> OrderBook | None:
        self._require_connected()
        self._drift()
        half_spread = self._reference_price * Decimal(self._settings.spread_bps) / Decimal("20000")
        return OrderBook(
            bids=[BookLevel(price=self._reference_price - half_spread)],
            asks=[BookLevel(price=self._reference_price + half_spread)],
        )

    async def fetch_recent_trades(self, instrument: str, limit: int = 1) -> list[TradePrint]:
        self._require_connected()
        last = self._last_trade.get(instrument)
        if last is None:
            return []
        return [TradePrint(price=last)][:limit]

    async def submit_market_order(self, request: OrderRequest) -> str:
        """Fill an IOC market order immediately or reject it."""
        if not self._connected:
            raise OrderRejected("Not connected", side=request.side, payload={"error": "not_connected"})
        if request.time_in_force != TimeInForce.IOC:
            raise OrderRejected(
                "Only IOC market orders are supported",
                side=request.side,
                payload={"error": "unsupported_time_in_force", "timeInForce": request.time_in_force.value},
            )
        if request.notional <= 0:
            raise OrderRejected(
                "Order notional must be positive",
                side=request.side,
                payload={"error": "invalid_quantity", "cashQuantity": str(request.notional)},
            )

        leverage = self._leverage.get(request.instrument, request.leverage)
        margin_available = self._balance * leverage
        if request.notional > margin_available:
            raise OrderRejected(
                "Insufficient margin",
                side=request.side,
                payload={
                    "error": "insufficient_margin",
                    "cashQuantity": str(request.notional),
                    "availableMargin": str(margin_available),
                },
            )

        result = self._fill_model.simulate_fill(request.side, request.notional, self._reference_price)
        await asyncio.sleep(result.latency_ms / 1000.0)

        self._apply_fill(request.instrument, request.side, result.quantity, result.executed_price)
        self._balance -= result.commission
        self._last_trade[request.instrument] = result.executed_price

        order_id = f"PAPER-{uuid4().hex[:8]}"
        self._order_ids.append(order_id)
        logger.debug(
            f"Paper fill {order_id}: {request.side.value} {result.quantity:.8f} {request.instrument} "
            f"@ {result.executed_price:.2f} (slippage: {result.slippage_bps:.1f} bps, "
            f"latency: {result.latency_ms}ms)"
        )
        return order_id

    async def subscribe_balance(self) -> None:
        self._require_connected()
        self._subscribed = True

    async def get_available_balance(self) -> BalanceSnapshot:
        self._require_connected()
        return BalanceSnapshot(available_balance=self._balance)

    async def get_open_positions(self) -> list[Position]:
        self._require_connected()
        positions = []
        for instrument, qty in self._positions.items():
            if qty == 0:
                continue
            positions.append(
                Position(
                    instrument=instrument,
                    side="long" if qty > 0 else "short",
                    quantity=abs(qty),
                    avg_price=self._avg_prices.get(instrument, self._reference_price),
                )
            )
        return positions

    async def set_leverage(self, instrument: str, leverage: int) -> None:
        self._require_connected()
        if leverage < 1 or leverage > self._settings.max_leverage:
            raise GatewayError(
                f"Leverage {leverage} outside allowed range 1-{self._settings.max_leverage}",
                payload={"error": "invalid_leverage", "leverage": leverage},
            )
        self._leverage[instrument] = leverage

    async def close_connection(self) -> None:
        self._connected = False
        self._subscribed = False
        logger.info("PaperGateway disconnected")

    def _require_connected(self) -> None:
        if not self._connected:
            raise GatewayError("Not connected")

    def _drift(self) -> None:
        """Random walk of the reference price, within +/- 1 bps per quote."""
        step = Decimal(str(self._fill_model.rng.uniform(-1.0, 1.0))) / Decimal("10000")
        self._reference_price = self._reference_price * (1 + step)

    def _apply_fill(self, instrument: str, side: OrderSide, quantity: Decimal, price: Decimal) -> None:
        signed = quantity if side == OrderSide.BUY else -quantity
        current = self._positions.get(instrument, Decimal("0"))
        updated = current + signed

        if current == 0 or (current > 0) == (signed > 0):
            # Opening or adding: weighted average entry
            prev_avg = self._avg_prices.get(instrument, price)
            self._avg_prices[instrument] = (abs(current) * prev_avg + quantity * price) / abs(updated)
        elif updated != 0 and (updated > 0) != (current > 0):
            # Flipped through flat: the remainder opens at the fill price
            self._avg_prices[instrument] = price

        self._positions[instrument] = updated
        if updated == 0:
            self._avg_prices.pop(instrument, None)
