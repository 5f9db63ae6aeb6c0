"""Market data helpers."""

from volume_bot.market.price_oracle import PriceOracle

__all__ = ["PriceOracle"]
