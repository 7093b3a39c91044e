"""
Time and clock abstractions for deterministic simulation and staleness checks.

The simulation core never reads the wall clock: every timestamp it uses comes
from the events it is fed. The only place "now" matters is the live-context
guard in the paper broker, which rejects events that are much older than the
current time. That guard receives a Clock so tests can freeze time.
"""

from datetime import datetime
from typing import Protocol

import pandas as pd


class Clock(Protocol):
    """
    Abstract time source.

    **Conceptual**: Anything with a `now()` method returning a timezone-aware
    pd.Timestamp. Inject a RealClock when the broker is driven by a live feed
    and a FrozenClock in tests.
    """

    def now(self) -> pd.Timestamp:
        ...


class RealClock:
    """Clock backed by the system clock, always in UTC."""

    def now(self) -> pd.Timestamp:
        return pd.Timestamp.now(tz="UTC")


class FrozenClock:
    """
    Clock pinned to a fixed instant.

    Args:
        fixed_now: The instant returned by every call to `now()`. Naive values
                   are interpreted as UTC.
    """

    def __init__(self, fixed_now: datetime | pd.Timestamp):
        self._fixed_now = to_utc(fixed_now)

    def now(self) -> pd.Timestamp:
        return self._fixed_now


def to_utc(ts: datetime | pd.Timestamp | str) -> pd.Timestamp:
    """
    Normalise a timestamp-like value to a UTC pd.Timestamp.

    Naive inputs are assumed to already be UTC; aware inputs are converted.

    Example:
        >>> to_utc("2024-01-15")
        Timestamp('2024-01-15 00:00:00+0000', tz='UTC')
    """
    ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")
