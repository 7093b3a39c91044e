"""
Tests for src/utils/time.py

These tests verify the clock abstraction works correctly for both real and frozen time,
and that timestamps are normalised to UTC.
"""

from datetime import datetime, timedelta, timezone
import time

import pandas as pd

from src.utils.time import Clock, FrozenClock, RealClock, to_utc


def test_real_clock_returns_current_utc_time():
    """Test that RealClock returns a time close to actual current time, in UTC."""
    clock = RealClock()

    before = pd.Timestamp.now(tz="UTC")
    clock_time = clock.now()
    after = pd.Timestamp.now(tz="UTC")

    assert before <= clock_time <= after
    assert str(clock_time.tz) == "UTC"


def test_real_clock_advances():
    """Test that RealClock returns different times on successive calls."""
    clock = RealClock()

    time1 = clock.now()
    time.sleep(0.01)
    time2 = clock.now()

    assert time2 > time1


def test_frozen_clock_returns_fixed_time():
    """Test that FrozenClock always returns the configured timestamp."""
    fixed_time = datetime(2015, 1, 5, 12, 30, 45, tzinfo=timezone.utc)
    clock = FrozenClock(fixed_time)

    assert clock.now() == pd.Timestamp(fixed_time)
    assert clock.now() == clock.now()


def test_frozen_clock_treats_naive_time_as_utc():
    clock = FrozenClock(datetime(2015, 1, 5, 12, 0))
    assert clock.now() == pd.Timestamp("2015-01-05 12:00", tz="UTC")


def test_clocks_satisfy_protocol():
    """Both implementations can be used wherever a Clock is expected."""
    def age(clock: Clock, ts: pd.Timestamp) -> pd.Timedelta:
        return clock.now() - ts

    frozen = FrozenClock(pd.Timestamp("2024-01-15 12:00", tz="UTC"))
    assert age(frozen, pd.Timestamp("2024-01-15 11:00", tz="UTC")) == pd.Timedelta(hours=1)
    assert age(RealClock(), pd.Timestamp("2000-01-01", tz="UTC")) > pd.Timedelta(days=365)


def test_to_utc_localizes_naive_and_converts_aware():
    assert to_utc("2024-01-15") == pd.Timestamp("2024-01-15", tz="UTC")

    eastern = datetime(2024, 1, 15, 9, 30, tzinfo=timezone(timedelta(hours=-5)))
    converted = to_utc(eastern)
    assert converted == pd.Timestamp("2024-01-15 14:30", tz="UTC")
    assert str(converted.tz) == "UTC"
