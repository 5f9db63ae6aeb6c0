"""Core domain types for the volume bot."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Environment(str, Enum):
    """Exchange environment."""
    DEMO = "DEMO"
    PROD = "PROD"


class OrderSide(str, Enum):
    """Order side enum."""
    BUY = "buy"
    SELL = "sell"


class TimeInForce(str, Enum):
    """Time-in-force. Only immediate-or-cancel is used."""
    IOC = "IOC"


class RunState(str, Enum):
    """Lifecycle state of the bot."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class CycleOutcome(str, Enum):
    """How a single trade cycle ended."""
    COMPLETED = "completed"
    SKIPPED = "skipped"
    BUY_FAILED = "buy_failed"
    SELL_FAILED = "sell_failed"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Configuration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class BotConfig:
    """Immutable run configuration consumed by the core."""

    environment: Environment
    instrument: str
    order_size: Decimal
    cash_quantity: Decimal = Decimal("0")
    leverage: int = 5
    trade_delay_ms: int = 2000
    leg_delay_ms: int = 500
    max_trades: int = 0

    def __post_init__(self) -> None:
        if self.order_size < 0:
            raise ValueError(f"order_size must be non-negative, got {self.order_size}")
        if self.cash_quantity < 0:
            raise ValueError(f"cash_quantity must be non-negative, got {self.cash_quantity}")
        if self.leverage < 1:
            raise ValueError(f"leverage must be at least 1, got {self.leverage}")
        if self.trade_delay_ms < 0 or self.leg_delay_ms < 0:
            raise ValueError("delays must be non-negative")
        if self.max_trades < 0:
            raise ValueError(f"max_trades must be non-negative, got {self.max_trades}")

    @property
    def uses_cash_quantity(self) -> bool:
        return self.cash_quantity > 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cycle values
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class PriceQuote:
    bid: Decimal
    ask: Decimal
    mid: Decimal

    def __post_init__(self) -> None:
        if self.bid <= 0 or self.ask <= 0 or self.mid <= 0:
            raise ValueError(f"quote prices must be positive: {self}")

    @classmethod
    def from_book(cls, bid: Decimal, ask: Decimal) -> "PriceQuote":
        return cls(bid=bid, ask=ask, mid=(bid + ask) / 2)

    @classmethod
    def from_last_trade(cls, price: Decimal) -> "PriceQuote":
        return cls(bid=price, ask=price, mid=price)


@dataclass(frozen=True)
class OrderRequest:
    instrument: str
    side: OrderSide
    leverage: int
    notional: Decimal
    time_in_force: TimeInForce = TimeInForce.IOC


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    side: OrderSide
    accepted: bool
    notional: Decimal


@dataclass(frozen=True)
class VolumeState:
    """Cumulative volume counters. Replaced, never mutated."""

    trades_executed: int = 0
    total_volume: Decimal = Decimal("0")

    def credit(self, notional_per_leg: Decimal) -> "VolumeState":
        return VolumeState(
            trades_executed=self.trades_executed + 1,
            total_volume=self.total_volume + notional_per_leg * 2,
        )


@dataclass(frozen=True)
class RunSummary:
    trades_executed: int
    total_volume: Decimal
    cycles_attempted: int
    cycles_skipped: int
    cycles_failed: int
    stop_reason: str | None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gateway payloads
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class BookLevel(BaseModel):
    """One price level of the order book."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    price: Decimal
    quantity: Decimal = Decimal("0")


class OrderBook(BaseModel):
    """Top-of-book depth snapshot."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    bids: list[BookLevel] = Field(default_factory=list)
    asks: list[BookLevel] = Field(default_factory=list)


class TradePrint(BaseModel):
    """A single public trade."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    price: Decimal
    quantity: Decimal = Decimal("0")


class Position(BaseModel):
    """Open position as reported by the venue. Observability only."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    instrument: str
    side: str
    quantity: Decimal
    avg_price: Decimal = Field(alias="avgPrice")


class BalanceSnapshot(BaseModel):
    """Available balance as reported by the venue."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    available_balance: Decimal = Field(alias="availableBalance")
    currency: str = "USDT"
