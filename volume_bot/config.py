"""
Centralized Configuration for the Volume Bot
Uses Pydantic Settings with .env loading.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from volume_bot.core.types import BotConfig, Environment


class GatewayKind(str, Enum):
    """Which exchange gateway adapter to run against."""
    PAPER = "paper"
    HTTP = "http"


class ExchangeSettings(BaseSettings):
    """Exchange REST/WebSocket endpoints."""
    model_config = SettingsConfigDict(env_prefix="EXCHANGE_", env_file=".env", extra="ignore")

    demo_rest_url: str = ""
    prod_rest_url: str = ""
    demo_ws_url: str = ""
    prod_ws_url: str = ""
    request_timeout_seconds: float = 10.0
    subscribe_timeout_seconds: float = 15.0

    def rest_url(self, environment: Environment) -> str:
        """Get REST base URL for an environment."""
        if environment == Environment.PROD:
            return self.prod_rest_url
        return self.demo_rest_url

    def ws_url(self, environment: Environment) -> str:
        """Get WebSocket URL for an environment."""
        if environment == Environment.PROD:
            return self.prod_ws_url
        return self.demo_ws_url


class PaperSettings(BaseSettings):
    """Simulated venue settings."""
    model_config = SettingsConfigDict(env_prefix="PAPER_", env_file=".env", extra="ignore")

    starting_balance: Decimal = Decimal("10000")
    reference_price: Decimal = Decimal("50000")
    spread_bps: int = 2
    slippage_bps: int = 1
    fee_rate: Decimal = Decimal("0.0005")
    min_latency_ms: int = 20
    max_leverage: int = 100
    random_seed: int | None = None


class LoggingSettings(BaseSettings):
    """Logging settings."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"text", "json"}:
            raise ValueError(f"LOG_FORMAT must be 'text' or 'json', got {v!r}")
        return v


class VolumeBotSettings(BaseSettings):
    """Main volume bot settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: Environment = Field(default=Environment.DEMO, alias="ENVIRONMENT")
    private_key: SecretStr | None = Field(default=None, alias="PRIVATE_KEY")
    api_key: SecretStr | None = Field(default=None, alias="API_KEY")
    instrument: str = Field(default="BTCUSD:DEMO", alias="INSTRUMENT")
    order_size: Decimal = Field(default=Decimal("0.001"), ge=0, alias="ORDER_SIZE")
    cash_quantity: Decimal = Field(default=Decimal("0"), ge=0, alias="CASH_QUANTITY")
    leverage: int = Field(default=5, ge=1, alias="LEVERAGE")
    trade_delay_ms: int = Field(default=2000, ge=0, alias="TRADE_DELAY_MS")
    leg_delay_ms: int = Field(default=500, ge=0, alias="LEG_DELAY_MS")
    max_trades: int = Field(default=0, ge=0, alias="MAX_TRADES")
    gateway: GatewayKind = Field(default=GatewayKind.PAPER, alias="GATEWAY")

    # Sub-settings (loaded from same .env)
    exchange: ExchangeSettings = Field(default_factory=ExchangeSettings)
    paper: PaperSettings = Field(default_factory=PaperSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str | Environment) -> Environment:
        """Validate and convert environment tag."""
        if isinstance(v, Environment):
            return v
        return Environment(str(v).strip().upper())

    @field_validator("gateway", mode="before")
    @classmethod
    def validate_gateway(cls, v: str | GatewayKind) -> GatewayKind:
        """Validate and convert gateway kind."""
        if isinstance(v, GatewayKind):
            return v
        return GatewayKind(str(v).strip().lower())

    @field_validator("private_key", "api_key", mode="before")
    @classmethod
    def blank_secret_is_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_bot_config(self) -> BotConfig:
        """Build the immutable core configuration."""
        return BotConfig(
            environment=self.environment,
            instrument=self.instrument,
            order_size=self.order_size,
            cash_quantity=self.cash_quantity,
            leverage=self.leverage,
            trade_delay_ms=self.trade_delay_ms,
            leg_delay_ms=self.leg_delay_ms,
            max_trades=self.max_trades,
        )


@lru_cache()
def get_settings() -> VolumeBotSettings:
    """Get cached settings instance."""
    return VolumeBotSettings()


def reload_settings() -> VolumeBotSettings:
    """Force reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
