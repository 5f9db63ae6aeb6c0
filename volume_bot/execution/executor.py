"""
Order Executor
Submits single immediate-or-cancel market orders for a fixed notional.
"""

from __future__ import annotations

import json
import logging
from decimal import ROUND_HALF_UP, Decimal

from volume_bot.core.errors import GatewayError, OrderRejected, PriceUnavailable
from volume_bot.core.types import BotConfig, OrderRequest, OrderResult, OrderSide, PriceQuote, TimeInForce
from volume_bot.execution.base import ExchangeGateway

logger = logging.getLogger(__name__)

# Venue accepts cash quantities with six decimals.
NOTIONAL_QUANTUM = Decimal("0.000001")


class OrderExecutor:
    """
    Executes one order leg at a time.

    No retries: a failed leg is logged with whatever diagnostics the venue
    returned and re-raised as OrderRejected for the scheduler to handle.
    """

    def __init__(self, gateway: ExchangeGateway, config: BotConfig) -> None:
        """
        Initialize order executor.

        Args:
            gateway: Exchange gateway used for submission
            config: Run configuration (cash quantity and order size)
        """
        self._gateway = gateway
        self._config = config

    def resolve_notional(self, quote: PriceQuote | None) -> Decimal:
        """
        Resolve the cash amount for one order leg.

        A configured cash quantity takes precedence; otherwise the notional is
        order size times the reference mid price.

        Raises:
            PriceUnavailable: If a price is needed but none is usable
        """
        if self._config.uses_cash_quantity:
            notional = self._config.cash_quantity
        else:
            if quote is None:
                raise PriceUnavailable("No price available for order")
            notional = self._config.order_size * quote.mid

        notional = notional.quantize(NOTIONAL_QUANTUM, rounding=ROUND_HALF_UP)
        if notional <= 0:
            raise PriceUnavailable(f"Resolved notional is not positive: {notional}")
        return notional

    async def execute_order(
        self,
        side: OrderSide,
        instrument: str,
        leverage: int,
        notional: Decimal,
    ) -> OrderResult:
        """
        Submit a market order.

        Args:
            side: Buy or sell
            instrument: Instrument identifier
            leverage: Leverage multiplier sent with the order
            notional: Cash amount of the order

        Returns:
            Accepted order result

        Raises:
            OrderRejected: If the venue rejects the order or the call fails
        """
        label = side.value.upper()
        request = OrderRequest(
            instrument=instrument,
            side=side,
            leverage=leverage,
            notional=notional,
            time_in_force=TimeInForce.IOC,
        )
        logger.info(f"Executing {label} order: {notional} on {instrument} ({leverage}x, IOC)")

        try:
            order_id = await self._gateway.submit_market_order(request)
        except OrderRejected as e:
            if e.side is None:
                e.side = side
            self._log_failure(label, e)
            raise
        except GatewayError as e:
            rejected = OrderRejected(str(e), side=side, payload=e.payload, code=e.code)
            self._log_failure(label, rejected)
            raise rejected from e
        except Exception as e:
            rejected = OrderRejected(f"{type(e).__name__}: {e}", side=side)
            self._log_failure(label, rejected)
            raise rejected from e

        logger.info(f"{label} order executed: {order_id}")
        return OrderResult(order_id=order_id, side=side, accepted=True, notional=notional)

    @staticmethod
    def _log_failure(label: str, error: OrderRejected) -> None:
        logger.error(f"{label} order failed: {error}")
        if error.payload is not None:
            try:
                details = json.dumps(error.payload, indent=2, default=str)
            except (TypeError, ValueError):
                details = repr(error.payload)
            logger.error(f"Error details: {details}")
