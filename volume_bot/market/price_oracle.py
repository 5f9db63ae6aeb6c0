"""
Price Oracle
Best-effort reference price for a single instrument.
"""

from __future__ import annotations

import logging

from volume_bot.core.types import PriceQuote
from volume_bot.execution.base import ExchangeGateway

logger = logging.getLogger(__name__)


class PriceOracle:
    """
    Resolves a reference price from top-of-book, falling back to the last trade.

    Never raises: a transport fault and an empty market both come back as
    None so the caller can skip the cycle. No retries here; the next cycle
    is the retry.
    """

    def __init__(self, gateway: ExchangeGateway) -> None:
        self._gateway = gateway

    async def get_current_price(self, instrument: str) -> PriceQuote | None:
        """
        Get the current price quote.

        Args:
            instrument: Instrument identifier

        Returns:
            Quote with bid/ask/mid, or None if no market data is available
        """
        try:
            book = await self._gateway.fetch_top_of_book(instrument, depth=1)
            if book is not None and book.bids and book.asks:
                return PriceQuote.from_book(book.bids[0].price, book.asks[0].price)

            trades = await self._gateway.fetch_recent_trades(instrument, limit=1)
            if trades:
                return PriceQuote.from_last_trade(trades[0].price)

            logger.error(f"Error fetching market price: no market data available for {instrument}")
            return None
        except Exception as e:
            logger.error(f"Error fetching market price: {type(e).__name__}: {e}")
            return None
