"""
Simulated Fill Model
Slippage, latency and fees for the paper venue.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from decimal import Decimal

from volume_bot.config import PaperSettings
from volume_bot.core.types import OrderSide


@dataclass
class FillResult:
    """Result of a fill simulation."""
    executed_price: Decimal
    quantity: Decimal
    slippage_bps: Decimal
    latency_ms: int
    commission: Decimal


class FillModel:
    """
    Simulates market order fills against a reference price.

    Slippage is always pessimistic:
    - Buy orders fill higher
    - Sell orders fill lower
    """

    def __init__(self, settings: PaperSettings) -> None:
        """
        Initialize fill model.

        Args:
            settings: Paper venue settings (slippage, latency, fee rate, seed)
        """
        self._settings = settings
        self._rng = random.Random(settings.random_seed)

    @property
    def rng(self) -> random.Random:
        return self._rng

    def calculate_slippage(self, side: OrderSide, base_price: Decimal) -> tuple[Decimal, Decimal]:
        """
        Calculate slippage for an order.

        Returns:
            Tuple of (adjusted_price, slippage_bps)
        """
        # 0.5x to 1.5x of the configured slippage
        variation = Decimal(str(self._rng.uniform(0.5, 1.5)))
        actual_bps = Decimal(self._settings.slippage_bps) * variation

        # bps = 0.01%, so 10 bps = 0.1%
        adjustment = base_price * actual_bps / Decimal("10000")

        if side == OrderSide.BUY:
            return base_price + adjustment, actual_bps
        return base_price - adjustment, actual_bps

    def calculate_latency_ms(self) -> int:
        """Simulated latency: minimum plus up to 100% jitter."""
        min_latency = self._settings.min_latency_ms
        jitter = self._rng.uniform(0, 1.0)
        return max(int(min_latency * (1 + jitter)), 0)

    def calculate_commission(self, notional: Decimal) -> Decimal:
        return notional * self._settings.fee_rate

    def simulate_fill(self, side: OrderSide, notional: Decimal, market_price: Decimal) -> FillResult:
        """
        Simulate a market order fill for a cash notional.

        Args:
            side: Order side
            notional: Cash amount of the order
            market_price: Price the order executes against before slippage
        """
        executed_price, slippage_bps = self.calculate_slippage(side, market_price)
        return FillResult(
            executed_price=executed_price,
            quantity=notional / executed_price,
            slippage_bps=slippage_bps,
            latency_ms=self.calculate_latency_ms(),
            commission=self.calculate_commission(notional),
        )
