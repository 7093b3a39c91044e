"""
Market data contracts: assets, price observations, events, and price-frame schemas.

**Conceptual**: The simulation core consumes an ordered stream of Events. Each
Event is a timestamp plus at most one price observation per asset. Three
observation granularities are supported:

  - PriceBar: OHLCV bar. Reference price is the close; the traded range is
    [low, high], which lets limit and stop orders trigger intrabar.
  - TradePrice: a single traded price. Reference, low and high coincide.
  - PriceQuote: top-of-book quote. Reference is the mid; low is the bid and
    high is the ask.

Every observation exposes the same three properties (`price`, `low_price`,
`high_price`), so order matching never needs to know which kind it received.

Price frames (pandas DataFrames in the canonical column layout) are validated
here before the feed adapter turns them into Events.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

import pandas as pd

from src.utils.time import to_utc


class SchemaValidationError(Exception):
    """
    Raised when a price DataFrame does not conform to the expected schema.

    Messages name the source (file path or asset) and the exact violation.
    """
    pass


@dataclass(frozen=True)
class Asset:
    """
    A tradable instrument.

    Attributes:
        symbol: Ticker symbol (e.g., "QQQ").
        currency: Currency the asset is quoted and settled in (default "USD").
                 Cash for trades in this asset moves in this currency.
    """
    symbol: str
    currency: str = "USD"

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class PriceBar:
    """OHLCV bar for one asset over one period."""
    asset: Asset
    open: float
    high: float
    low: float
    close: float
    volume: float = float("nan")

    @property
    def price(self) -> float:
        return self.close

    @property
    def low_price(self) -> float:
        return self.low

    @property
    def high_price(self) -> float:
        return self.high


@dataclass(frozen=True)
class TradePrice:
    """Single traded price for one asset."""
    asset: Asset
    price: float
    volume: float = float("nan")

    @property
    def low_price(self) -> float:
        return self.price

    @property
    def high_price(self) -> float:
        return self.price


@dataclass(frozen=True)
class PriceQuote:
    """Top-of-book quote for one asset."""
    asset: Asset
    ask_price: float
    bid_price: float

    @property
    def price(self) -> float:
        return (self.ask_price + self.bid_price) / 2.0

    @property
    def low_price(self) -> float:
        return self.bid_price

    @property
    def high_price(self) -> float:
        return self.ask_price


PriceObservation = Union[PriceBar, TradePrice, PriceQuote]


@dataclass(frozen=True)
class Event:
    """
    All price observations available at one instant.

    **Conceptual**: The unit of simulated time. The broker processes exactly
    one Event per `place()` call; every order is matched against the
    observation for its asset in that Event (if any).

    Attributes:
        time: Timezone-aware timestamp (UTC).
        prices: Read-only mapping Asset -> observation. At most one per asset.
    """
    time: pd.Timestamp
    prices: Mapping[Asset, PriceObservation] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "time", to_utc(self.time))
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def __reduce__(self):
        # mappingproxy is not picklable; rebuild from a plain dict
        return (self.__class__, (self.time, dict(self.prices)))

    @classmethod
    def of(cls, time, observations: Iterable[PriceObservation]) -> "Event":
        """
        Build an Event from a list of observations.

        Raises:
            ValueError: If two observations refer to the same asset.

        Example:
            >>> qqq = Asset("QQQ")
            >>> event = Event.of("2024-01-15", [TradePrice(qqq, 403.5)])
            >>> event.get_price(qqq).price
            403.5
        """
        prices = {}
        for observation in observations:
            if observation.asset in prices:
                raise ValueError(f"Duplicate price observation for {observation.asset} at {time}")
            prices[observation.asset] = observation
        return cls(time=time, prices=prices)

    @classmethod
    def empty(cls, time) -> "Event":
        return cls(time=time)

    def get_price(self, asset: Asset) -> Optional[PriceObservation]:
        return self.prices.get(asset)

    @property
    def assets(self) -> frozenset:
        return frozenset(self.prices.keys())


# Canonical price frame columns
PRICE_BAR_COLUMNS = [
    'timestamp',
    'open_price',
    'high_price',
    'low_price',
    'closing_price',
    'volume',
]

CLOSE_ONLY_COLUMNS = [
    'timestamp',
    'closing_price',
]


def validate_price_frame(df: pd.DataFrame, context: str | None = None) -> None:
    """
    Validate that a DataFrame is a usable price frame.

    **Functionally**:
      - Requires at least `timestamp` and `closing_price`; if any of the bar
        columns beyond those are present, all of them must be.
      - `timestamp` must be parseable as datetime.
      - Timestamps must be unique (either sort order is accepted; the feed
        adapter sorts ascending).
      - Prices must be strictly positive and not missing.

    Args:
        df: DataFrame to validate.
        context: Optional description of the source, used in error messages.

    Raises:
        SchemaValidationError: On the first violation found.
    """
    ctx = f"{context}: " if context else ""

    missing = set(CLOSE_ONLY_COLUMNS) - set(df.columns)
    if missing:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing)}. "
            f"Found columns: {list(df.columns)}."
        )

    bar_extras = set(PRICE_BAR_COLUMNS) - set(CLOSE_ONLY_COLUMNS)
    present = bar_extras & set(df.columns)
    if present and present != bar_extras:
        raise SchemaValidationError(
            f"{ctx}Incomplete bar columns: found {sorted(present)}, "
            f"missing {sorted(bar_extras - present)}."
        )

    try:
        timestamps = pd.to_datetime(df['timestamp'], utc=True)
    except (ValueError, TypeError) as e:
        raise SchemaValidationError(f"{ctx}'timestamp' column contains non-parseable values. Error: {e}")

    if timestamps.duplicated().any():
        dupes = timestamps[timestamps.duplicated()].tolist()
        raise SchemaValidationError(f"{ctx}Duplicate timestamps: {dupes[:5]} (showing first 5).")

    price_cols = ['closing_price'] + (['open_price', 'high_price', 'low_price'] if present else [])
    for col in price_cols:
        values = df[col]
        if values.isna().any():
            raise SchemaValidationError(f"{ctx}Column '{col}' contains missing values.")
        if (values <= 0).any():
            raise SchemaValidationError(f"{ctx}Column '{col}' contains non-positive prices.")
