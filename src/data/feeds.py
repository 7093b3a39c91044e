"""
Feed adapter: price frames in, ordered Events out.

**Conceptual**: The broker consumes Events, not DataFrames. This module is the
boundary where canonical price frames (one per asset, as read from CSV or
built in memory) are validated and merged into a single ascending stream of
Events, one per distinct timestamp.

**Frame layouts accepted** (see schemas.py):
  - Full bars: timestamp, open_price, high_price, low_price, closing_price, volume
    -> each row becomes a PriceBar.
  - Close only: timestamp, closing_price
    -> each row becomes a TradePrice.

Frames may be sorted either way; the output is always oldest first.

**Rule**: Use `read_price_csv` rather than `pd.read_csv` so every file entering
a simulation is validated the same way.
"""

from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Mapping

import pandas as pd
from loguru import logger

from src.data.schemas import (
    Asset,
    Event,
    PRICE_BAR_COLUMNS,
    PriceBar,
    PriceObservation,
    SchemaValidationError,
    TradePrice,
    validate_price_frame,
)


def _has_bar_columns(df: pd.DataFrame) -> bool:
    return set(PRICE_BAR_COLUMNS) <= set(df.columns)


def _observations(asset: Asset, df: pd.DataFrame) -> List[tuple]:
    """Return (timestamp, observation) pairs for one validated frame."""
    timestamps = pd.to_datetime(df['timestamp'], utc=True)
    pairs = []
    if _has_bar_columns(df):
        for ts, o, h, l, c, v in zip(
            timestamps,
            df['open_price'],
            df['high_price'],
            df['low_price'],
            df['closing_price'],
            df['volume'],
        ):
            pairs.append((ts, PriceBar(asset, float(o), float(h), float(l), float(c), float(v))))
    else:
        volumes = df['volume'] if 'volume' in df.columns else [float("nan")] * len(df)
        for ts, c, v in zip(timestamps, df['closing_price'], volumes):
            pairs.append((ts, TradePrice(asset, float(c), float(v))))
    return pairs


def events_from_frames(frames: Mapping[Asset, pd.DataFrame]) -> List[Event]:
    """
    Merge per-asset price frames into one ascending list of Events.

    **Functionally**:
      - Validates every frame with `validate_price_frame` (context = symbol).
      - Groups observations by timestamp across assets.
      - Emits one Event per distinct timestamp, oldest first. An asset with no
        row at a timestamp is simply absent from that Event.

    Args:
        frames: Mapping Asset -> price DataFrame.

    Returns:
        List of Events sorted by time. Empty if every frame is empty.

    Raises:
        SchemaValidationError: If any frame violates the price-frame schema.

    Example:
        >>> qqq = Asset("QQQ")
        >>> df = pd.DataFrame({
        ...     'timestamp': ['2024-01-15', '2024-01-16'],
        ...     'closing_price': [403.0, 405.5],
        ... })
        >>> events = events_from_frames({qqq: df})
        >>> [e.get_price(qqq).price for e in events]
        [403.0, 405.5]
    """
    grouped: Dict[pd.Timestamp, List[PriceObservation]] = defaultdict(list)
    for asset, df in frames.items():
        validate_price_frame(df, context=asset.symbol)
        for ts, observation in _observations(asset, df):
            grouped[ts].append(observation)

    events = [Event.of(ts, grouped[ts]) for ts in sorted(grouped)]
    logger.debug(f"Built {len(events)} events from {len(frames)} price frame(s)")
    return events


def read_price_csv(path: Path | str, instrument_name: str | None = None) -> pd.DataFrame:
    """
    Read a price CSV and validate it against the price-frame schema.

    Args:
        path: CSV file path.
        instrument_name: Optional name used in error messages instead of the path.

    Returns:
        DataFrame with `timestamp` parsed to UTC datetimes, sorted ascending.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If the file can't be parsed or violates the schema.
    """
    path = Path(path)
    context = instrument_name or str(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Price CSV not found: {path}. "
            f"Ensure the file exists and the path is correct."
        )

    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise SchemaValidationError(f"{context}: Failed to read CSV. Error: {e}")

    validate_price_frame(df, context=context)

    df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
    return df.sort_values('timestamp').reset_index(drop=True)
