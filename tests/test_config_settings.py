"""
Tests for src/config/settings.py

Settings objects are built directly or from a monkeypatched environment; the
real environment is never relied upon.
"""

import pytest

from src.config.settings import (
    BrokerSettings,
    LoggingSettings,
    Settings,
    get_settings,
    reset_settings,
)

BROKER_ENV = [
    "PAPER_BROKER_INITIAL_DEPOSIT",
    "PAPER_BROKER_BASE_CURRENCY",
    "PAPER_BROKER_SLIPPAGE_BPS",
    "PAPER_BROKER_FEE_BPS",
    "PAPER_BROKER_FEE_PER_TRADE",
    "PAPER_BROKER_ACCOUNT_MODEL",
    "PAPER_BROKER_LEVERAGE",
    "PAPER_BROKER_MAX_EVENT_AGE_SECONDS",
    "PAPER_BROKER_REJECT_INSUFFICIENT_BUYING_POWER",
    "LOG_LEVEL",
    "LOG_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in BROKER_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield monkeypatch
    reset_settings()


def test_broker_defaults():
    s = BrokerSettings()
    assert s.initial_deposit == 1_000_000.0
    assert s.base_currency == "USD"
    assert s.slippage_bps == 0.0
    assert s.account_model == "cash"
    assert s.reject_insufficient_buying_power is True


@pytest.mark.parametrize("kwargs", [
    {"initial_deposit": 0.0},
    {"base_currency": ""},
    {"slippage_bps": -1.0},
    {"fee_bps": -0.5},
    {"fee_bps": 1.0, "fee_per_trade": 1.0},
    {"account_model": "portfolio"},
    {"leverage": 0.0},
    {"max_event_age_seconds": 0.0},
])
def test_broker_settings_validation(kwargs):
    with pytest.raises(ValueError):
        BrokerSettings(**kwargs)


def test_logging_settings_validation():
    assert LoggingSettings().level == "INFO"
    with pytest.raises(ValueError):
        LoggingSettings(level="VERBOSE")


def test_broker_from_env(clean_env):
    clean_env.setenv("PAPER_BROKER_INITIAL_DEPOSIT", "50000")
    clean_env.setenv("PAPER_BROKER_SLIPPAGE_BPS", "5")
    clean_env.setenv("PAPER_BROKER_ACCOUNT_MODEL", "Margin")
    clean_env.setenv("PAPER_BROKER_REJECT_INSUFFICIENT_BUYING_POWER", "no")

    s = BrokerSettings.from_env()

    assert s.initial_deposit == 50_000.0
    assert s.slippage_bps == 5.0
    assert s.account_model == "margin"
    assert s.reject_insufficient_buying_power is False


def test_from_env_rejects_non_numeric(clean_env):
    clean_env.setenv("PAPER_BROKER_FEE_BPS", "ten")
    with pytest.raises(ValueError, match="PAPER_BROKER_FEE_BPS"):
        BrokerSettings.from_env()


def test_logging_from_env(clean_env):
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("LOG_DIR", "/tmp/logs")

    s = LoggingSettings.from_env()

    assert s.level == "DEBUG"
    assert s.log_dir == "/tmp/logs"


def test_get_settings_caches_until_reset(clean_env):
    first = get_settings()
    assert get_settings() is first
    assert isinstance(first, Settings)

    clean_env.setenv("PAPER_BROKER_BASE_CURRENCY", "EUR")
    assert get_settings().broker.base_currency == "USD"

    reset_settings()
    assert get_settings().broker.base_currency == "EUR"
