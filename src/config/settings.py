"""
Configuration settings for the paper broker and its ambient services.

**Conceptual**: This module provides strongly-typed, immutable configuration
objects loaded from environment variables (optionally via a `.env` file at the
project root). Every settings object validates itself in `__post_init__`, so a
bad value fails at startup rather than halfway through a simulation.

**Layout**:
  - BrokerSettings: initial deposit, cost models, buying-power model, and the
    live-context staleness guard for the PaperBroker.
  - LoggingSettings: loguru sink configuration.
  - Settings: aggregates both; `get_settings()` caches one instance.

Tests construct settings objects directly instead of touching the environment.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (no-op when the file is absent)
load_dotenv(dotenv_path=Path(__file__).parent.parent.parent / ".env")

ACCOUNT_MODELS = ("cash", "margin")
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class BrokerSettings:
    """
    Configuration for a PaperBroker instance.

    **Conceptual**: Everything that determines how the simulated broker fills
    and books orders: how much cash it starts with, how fills are priced
    (slippage), what each fill costs (fees), and how buying power is measured.

    Attributes:
        initial_deposit: Cash deposited on construction and on every reset().
                        Must be positive. Default 1,000,000.
        base_currency: Currency of the initial deposit and of buying power.
        slippage_bps: Proportional slippage in basis points (1 bp = 0.01%).
                     Buys pay more, sells receive less. Default 0.
        fee_bps: Percentage fee on traded notional, in basis points. Default 0.
        fee_per_trade: Flat fee per fill. Combined with fee_bps is not
                      supported; set at most one of the two.
        account_model: "cash" (buying power = cash) or "margin".
        leverage: Leverage applied by the margin model. Ignored for "cash".
        max_event_age_seconds: In a live context (broker given a clock), events
                              older than now minus this many seconds are rejected.
        reject_insufficient_buying_power: Reject orders whose added exposure
                                          exceeds the remaining buying power.
    """
    initial_deposit: float = 1_000_000.0
    base_currency: str = "USD"
    slippage_bps: float = 0.0
    fee_bps: float = 0.0
    fee_per_trade: float = 0.0
    account_model: str = "cash"
    leverage: float = 2.0
    max_event_age_seconds: float = 3600.0
    reject_insufficient_buying_power: bool = True

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.initial_deposit <= 0:
            raise ValueError(f"initial_deposit must be positive, got {self.initial_deposit}")
        if not self.base_currency:
            raise ValueError("base_currency is required but empty.")
        if self.slippage_bps < 0:
            raise ValueError(f"slippage_bps must be >= 0, got {self.slippage_bps}")
        if self.fee_bps < 0 or self.fee_per_trade < 0:
            raise ValueError(
                f"fees must be >= 0, got fee_bps={self.fee_bps}, fee_per_trade={self.fee_per_trade}"
            )
        if self.fee_bps > 0 and self.fee_per_trade > 0:
            raise ValueError("Set either fee_bps or fee_per_trade, not both.")
        if self.account_model not in ACCOUNT_MODELS:
            raise ValueError(
                f"account_model must be one of {ACCOUNT_MODELS}, got: {self.account_model}"
            )
        if self.leverage <= 0:
            raise ValueError(f"leverage must be positive, got {self.leverage}")
        if self.max_event_age_seconds <= 0:
            raise ValueError(
                f"max_event_age_seconds must be positive, got {self.max_event_age_seconds}"
            )

    @classmethod
    def from_env(cls) -> "BrokerSettings":
        """
        Load broker settings from environment variables.

        **Environment variables** (all optional):
          - PAPER_BROKER_INITIAL_DEPOSIT (default 1000000)
          - PAPER_BROKER_BASE_CURRENCY (default "USD")
          - PAPER_BROKER_SLIPPAGE_BPS (default 0)
          - PAPER_BROKER_FEE_BPS (default 0)
          - PAPER_BROKER_FEE_PER_TRADE (default 0)
          - PAPER_BROKER_ACCOUNT_MODEL ("cash" or "margin", default "cash")
          - PAPER_BROKER_LEVERAGE (default 2.0)
          - PAPER_BROKER_MAX_EVENT_AGE_SECONDS (default 3600)
          - PAPER_BROKER_REJECT_INSUFFICIENT_BUYING_POWER (default "true")

        Raises:
            ValueError: If a numeric variable cannot be parsed or a value is invalid.

        Usage example:
            >>> # In .env file:
            >>> # PAPER_BROKER_SLIPPAGE_BPS=5
            >>> settings = BrokerSettings.from_env()
            >>> settings.slippage_bps
            5.0
        """
        return cls(
            initial_deposit=_env_float("PAPER_BROKER_INITIAL_DEPOSIT", "1000000"),
            base_currency=os.getenv("PAPER_BROKER_BASE_CURRENCY", "USD"),
            slippage_bps=_env_float("PAPER_BROKER_SLIPPAGE_BPS", "0"),
            fee_bps=_env_float("PAPER_BROKER_FEE_BPS", "0"),
            fee_per_trade=_env_float("PAPER_BROKER_FEE_PER_TRADE", "0"),
            account_model=os.getenv("PAPER_BROKER_ACCOUNT_MODEL", "cash").lower(),
            leverage=_env_float("PAPER_BROKER_LEVERAGE", "2.0"),
            max_event_age_seconds=_env_float("PAPER_BROKER_MAX_EVENT_AGE_SECONDS", "3600"),
            reject_insufficient_buying_power=_env_bool(
                "PAPER_BROKER_REJECT_INSUFFICIENT_BUYING_POWER", "true"
            ),
        )


@dataclass(frozen=True)
class LoggingSettings:
    """
    Configuration for loguru sinks.

    Attributes:
        level: Minimum level for all sinks (default "INFO").
        log_dir: Directory for the rotating file sink. None disables file logging.
        rotation: loguru rotation policy for the file sink (e.g., "1 day", "10 MB").
        retention: loguru retention policy for rotated files (e.g., "30 days").
    """
    level: str = "INFO"
    log_dir: Optional[str] = None
    rotation: str = "1 day"
    retention: str = "30 days"

    def __post_init__(self):
        if self.level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {LOG_LEVELS}, got: {self.level}")

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        """
        Load logging settings from LOG_LEVEL, LOG_DIR, LOG_ROTATION, LOG_RETENTION.
        """
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=os.getenv("LOG_DIR") or None,
            rotation=os.getenv("LOG_ROTATION", "1 day"),
            retention=os.getenv("LOG_RETENTION", "30 days"),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the simulation stack.

    Usage pattern:
      ```python
      from src.config.settings import get_settings

      settings = get_settings()
      broker = PaperBroker.from_settings(settings.broker)
      ```

    Attributes:
        broker: PaperBroker configuration.
        logging: loguru sink configuration.
    """
    broker: BrokerSettings = field(default_factory=BrokerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(broker=BrokerSettings.from_env(), logging=LoggingSettings.from_env())


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton, loading it from the environment on first use.

    Tests should build Settings objects directly, or call reset_settings()
    after changing environment variables.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings() -> None:
    """Clear the cached settings so the next get_settings() reloads from the environment."""
    global _default_settings
    _default_settings = None
