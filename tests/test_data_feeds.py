"""
Tests for price-frame validation and the feed adapter.

This module tests:
  - validate_price_frame on good and bad frames.
  - events_from_frames: bar vs close-only frames, merging across assets,
    ordering.
  - read_price_csv round trip through a temporary file.
  - Event construction rules.

All file tests use the tmp_path fixture.
"""

import pickle
from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from src.data.feeds import events_from_frames, read_price_csv
from src.data.schemas import (
    Asset,
    Event,
    PRICE_BAR_COLUMNS,
    PriceBar,
    PriceQuote,
    SchemaValidationError,
    TradePrice,
    validate_price_frame,
)

QQQ = Asset("QQQ")
SPY = Asset("SPY")


# ============================================================================
# Helper functions for test data generation
# ============================================================================

def make_bar_df(n_rows: int = 5, descending: bool = True) -> pd.DataFrame:
    """
    Daily OHLCV frame ending 2024-01-15, newest first by default.

    Prices rise with time: the oldest bar opens at 100, the newest at 110.
    """
    timestamps = pd.date_range(
        end=datetime(2024, 1, 15, tzinfo=timezone.utc),
        periods=n_rows,
        freq='D'
    )
    df = pd.DataFrame({
        'timestamp': timestamps,
        'open_price': np.linspace(100.0, 110.0, n_rows),
        'high_price': np.linspace(102.0, 112.0, n_rows),
        'low_price': np.linspace(98.0, 108.0, n_rows),
        'closing_price': np.linspace(101.0, 111.0, n_rows),
        'volume': np.linspace(1_000_000, 1_100_000, n_rows).astype(int),
    })
    if descending:
        df = df.iloc[::-1].reset_index(drop=True)
    return df


def make_close_df(timestamps, closes) -> pd.DataFrame:
    return pd.DataFrame({'timestamp': timestamps, 'closing_price': closes})


# ============================================================================
# validate_price_frame
# ============================================================================

def test_valid_frames_pass():
    validate_price_frame(make_bar_df())
    validate_price_frame(make_bar_df(descending=False))
    validate_price_frame(make_close_df(['2024-01-15', '2024-01-16'], [1.0, 2.0]))


def test_missing_closing_price_fails():
    df = make_bar_df().drop(columns=['closing_price'])
    with pytest.raises(SchemaValidationError, match="Missing required columns"):
        validate_price_frame(df, context="QQQ")


def test_partial_bar_columns_fail():
    df = make_bar_df().drop(columns=['low_price'])
    with pytest.raises(SchemaValidationError, match="Incomplete bar columns"):
        validate_price_frame(df)


def test_bad_timestamps_fail():
    df = make_close_df(['2024-01-15', 'not a date'], [1.0, 2.0])
    with pytest.raises(SchemaValidationError, match="non-parseable"):
        validate_price_frame(df)


def test_duplicate_timestamps_fail():
    df = make_close_df(['2024-01-15', '2024-01-15'], [1.0, 2.0])
    with pytest.raises(SchemaValidationError, match="Duplicate timestamps"):
        validate_price_frame(df)


def test_non_positive_or_missing_prices_fail():
    with pytest.raises(SchemaValidationError, match="non-positive"):
        validate_price_frame(make_close_df(['2024-01-15', '2024-01-16'], [1.0, 0.0]))
    with pytest.raises(SchemaValidationError, match="missing values"):
        validate_price_frame(make_close_df(['2024-01-15', '2024-01-16'], [1.0, None]))


def test_error_message_includes_context():
    df = make_bar_df().drop(columns=['closing_price'])
    with pytest.raises(SchemaValidationError, match="^QQQ: "):
        validate_price_frame(df, context="QQQ")


# ============================================================================
# events_from_frames
# ============================================================================

def test_bar_frame_becomes_price_bars_oldest_first():
    events = events_from_frames({QQQ: make_bar_df(descending=True)})

    assert len(events) == 5
    times = [e.time for e in events]
    assert times == sorted(times)

    first = events[0].get_price(QQQ)
    assert isinstance(first, PriceBar)
    assert first.open == pytest.approx(100.0)
    assert first.close == pytest.approx(101.0)
    assert first.price == pytest.approx(101.0)
    assert first.low_price == pytest.approx(98.0)
    assert events[-1].get_price(QQQ).open == pytest.approx(110.0)


def test_close_only_frame_becomes_trade_prices():
    events = events_from_frames({QQQ: make_close_df(['2024-01-16', '2024-01-15'], [405.5, 403.0])})

    assert [e.get_price(QQQ).price for e in events] == [403.0, 405.5]
    assert all(isinstance(e.get_price(QQQ), TradePrice) for e in events)
    assert events[0].time == pd.Timestamp('2024-01-15', tz='UTC')


def test_frames_merge_on_timestamp():
    """
    Scenario: QQQ has 15th and 16th, SPY has 16th and 17th.
    Expected: three events; the 16th carries both assets.
    """
    events = events_from_frames({
        QQQ: make_close_df(['2024-01-15', '2024-01-16'], [1.0, 2.0]),
        SPY: make_close_df(['2024-01-16', '2024-01-17'], [10.0, 11.0]),
    })

    assert [e.assets for e in events] == [
        frozenset({QQQ}),
        frozenset({QQQ, SPY}),
        frozenset({SPY}),
    ]
    assert events[1].get_price(SPY).price == 10.0


def test_invalid_frame_propagates_error():
    with pytest.raises(SchemaValidationError, match="SPY"):
        events_from_frames({
            QQQ: make_close_df(['2024-01-15'], [1.0]),
            SPY: make_close_df(['2024-01-15'], [-1.0]),
        })


def test_no_frames_no_events():
    assert events_from_frames({}) == []


# ============================================================================
# read_price_csv
# ============================================================================

def test_read_price_csv_round_trip(tmp_path):
    path = tmp_path / "qqq.csv"
    make_bar_df(descending=True).to_csv(path, index=False)

    df = read_price_csv(path)

    assert list(df.columns) == PRICE_BAR_COLUMNS
    assert df['timestamp'].is_monotonic_increasing
    assert str(df['timestamp'].dt.tz) == 'UTC'
    assert len(df) == 5
    assert df['open_price'].iloc[0] == pytest.approx(100.0)


def test_read_price_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_price_csv(tmp_path / "nope.csv")


def test_read_price_csv_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    with pytest.raises(SchemaValidationError, match="QQQ"):
        read_price_csv(path, instrument_name="QQQ")


def test_read_price_csv_schema_violation(tmp_path):
    path = tmp_path / "bad.csv"
    make_close_df(['2024-01-15'], [1.0]).rename(columns={'closing_price': 'close'}).to_csv(path, index=False)
    with pytest.raises(SchemaValidationError, match="Missing required columns"):
        read_price_csv(path)


# ============================================================================
# Event
# ============================================================================

def test_event_normalises_time_to_utc():
    event = Event.empty("2024-01-15 10:00")
    assert event.time == pd.Timestamp("2024-01-15 10:00", tz="UTC")
    assert event.prices == {}


def test_event_rejects_duplicate_asset():
    with pytest.raises(ValueError):
        Event.of("2024-01-15", [TradePrice(QQQ, 1.0), TradePrice(QQQ, 2.0)])


def test_event_prices_are_read_only():
    event = Event.of("2024-01-15", [TradePrice(QQQ, 1.0)])
    with pytest.raises(TypeError):
        event.prices[SPY] = TradePrice(SPY, 2.0)


def test_event_pickles():
    event = Event.of("2024-01-15", [PriceQuote(QQQ, ask_price=101.0, bid_price=99.0)])
    restored = pickle.loads(pickle.dumps(event))
    assert restored.time == event.time
    assert restored.get_price(QQQ).price == pytest.approx(100.0)
