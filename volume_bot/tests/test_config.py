from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from volume_bot.config import GatewayKind, VolumeBotSettings
from volume_bot.core.types import Environment

ENV_VARS = (
    "ENVIRONMENT",
    "PRIVATE_KEY",
    "API_KEY",
    "INSTRUMENT",
    "ORDER_SIZE",
    "CASH_QUANTITY",
    "LEVERAGE",
    "TRADE_DELAY_MS",
    "LEG_DELAY_MS",
    "MAX_TRADES",
    "GATEWAY",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "EXCHANGE_DEMO_REST_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = VolumeBotSettings(_env_file=None)

    assert settings.environment == Environment.DEMO
    assert settings.instrument == "BTCUSD:DEMO"
    assert settings.order_size == Decimal("0.001")
    assert settings.cash_quantity == Decimal("0")
    assert settings.leverage == 5
    assert settings.trade_delay_ms == 2000
    assert settings.max_trades == 0
    assert settings.gateway == GatewayKind.PAPER
    assert settings.private_key is None


def test_reads_environment_variables(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")
    monkeypatch.setenv("PRIVATE_KEY", "s3cret")
    monkeypatch.setenv("INSTRUMENT", "ETHUSD")
    monkeypatch.setenv("ORDER_SIZE", "0.5")
    monkeypatch.setenv("CASH_QUANTITY", "12.5")
    monkeypatch.setenv("LEVERAGE", "10")
    monkeypatch.setenv("TRADE_DELAY_MS", "250")
    monkeypatch.setenv("MAX_TRADES", "4")
    monkeypatch.setenv("GATEWAY", "HTTP")

    settings = VolumeBotSettings(_env_file=None)

    assert settings.environment == Environment.PROD
    assert settings.private_key.get_secret_value() == "s3cret"
    assert settings.instrument == "ETHUSD"
    assert settings.order_size == Decimal("0.5")
    assert settings.cash_quantity == Decimal("12.5")
    assert settings.leverage == 10
    assert settings.trade_delay_ms == 250
    assert settings.max_trades == 4
    assert settings.gateway == GatewayKind.HTTP


def test_secret_is_not_exposed_in_repr(monkeypatch) -> None:
    monkeypatch.setenv("PRIVATE_KEY", "s3cret")

    settings = VolumeBotSettings(_env_file=None)

    assert "s3cret" not in repr(settings)


def test_blank_private_key_is_treated_as_missing(monkeypatch) -> None:
    monkeypatch.setenv("PRIVATE_KEY", "   ")

    assert VolumeBotSettings(_env_file=None).private_key is None


@pytest.mark.parametrize(
    "name,value",
    [
        ("ORDER_SIZE", "-0.1"),
        ("CASH_QUANTITY", "-5"),
        ("LEVERAGE", "0"),
        ("MAX_TRADES", "-1"),
        ("ORDER_SIZE", "abc"),
        ("ENVIRONMENT", "staging"),
        ("GATEWAY", "grpc"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        VolumeBotSettings(_env_file=None)


def test_nested_settings(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FORMAT", "JSON")
    monkeypatch.setenv("EXCHANGE_DEMO_REST_URL", "https://demo.example")

    settings = VolumeBotSettings(_env_file=None)

    assert settings.logging.log_level == "DEBUG"
    assert settings.logging.log_format == "json"
    assert settings.exchange.rest_url(Environment.DEMO) == "https://demo.example"
    assert settings.exchange.rest_url(Environment.PROD) == ""


def test_to_bot_config() -> None:
    settings = VolumeBotSettings(_env_file=None, order_size=Decimal("0.002"), max_trades=3)

    config = settings.to_bot_config()

    assert config.order_size == Decimal("0.002")
    assert config.max_trades == 3
    assert config.leg_delay_ms == 500
    assert config.uses_cash_quantity is False
