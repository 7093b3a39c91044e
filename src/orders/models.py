"""
Order instructions and time-in-force policies.

**Conceptual**: An order is an instruction from the policy layer to the
broker. The set of order kinds is closed:

  - MarketOrder: fill the full size at the next available price.
  - LimitOrder: fill only at `limit` or better.
  - StopOrder: become a market order once the price crosses `stop`.
  - StopLimitOrder: become a limit order at `limit` once the price crosses `stop`.
  - TrailOrder: a stop that follows the price at a fixed percentage distance.
  - BracketOrder: an entry plus take-profit and stop-loss exits that cancel
    each other.
  - CancelOrder: cancel a previously placed order by id.

The engine and broker dispatch on these classes with isinstance checks and
raise UnsupportedOrderError for anything else.

**Size convention**: `size` is signed. Positive buys, negative sells. A zero
size is rejected by the execution engine.

**Identity**: `id` is None until the execution engine registers the order, at
which point it receives a unique integer that never changes. Keep a reference
to the order object to learn its id, e.g. to cancel it later.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

import pandas as pd

from src.data.schemas import Asset
from src.utils.time import to_utc


# ============================================================================
# Time in force
# ============================================================================

@dataclass(frozen=True)
class GTC:
    """Good-till-cancelled: never expires."""

    def is_expired(self, opened_at: pd.Timestamp, now: pd.Timestamp) -> bool:
        return False


@dataclass(frozen=True)
class DAY:
    """Expires on the first event whose UTC calendar date is after the acceptance date."""

    def is_expired(self, opened_at: pd.Timestamp, now: pd.Timestamp) -> bool:
        return now.normalize() > opened_at.normalize()


@dataclass(frozen=True)
class GTD:
    """
    Good-till-date: expires on the first event strictly after `date`.

    Attributes:
        date: Last instant at which the order may still fill.
    """
    date: pd.Timestamp

    def __post_init__(self):
        object.__setattr__(self, "date", to_utc(self.date))

    def is_expired(self, opened_at: pd.Timestamp, now: pd.Timestamp) -> bool:
        return now > self.date


@dataclass(frozen=True)
class IOC:
    """Immediate-or-cancel: only the event that accepted the order may fill it."""

    def is_expired(self, opened_at: pd.Timestamp, now: pd.Timestamp) -> bool:
        return now > opened_at


TimeInForce = Union[GTC, DAY, GTD, IOC]


# ============================================================================
# Orders
# ============================================================================

class _SingleOrderMixin:
    """Direction helpers shared by the single-leg order kinds."""

    @property
    def buy(self) -> bool:
        return self.size > 0

    @property
    def sell(self) -> bool:
        return self.size < 0

    @property
    def direction(self) -> int:
        return 1 if self.size > 0 else -1


@dataclass(eq=False)
class MarketOrder(_SingleOrderMixin):
    """Buy or sell `size` units of `asset` at the prevailing price."""
    asset: Asset
    size: float
    tif: TimeInForce = field(default_factory=GTC)
    tag: str = ""
    id: Optional[int] = None


@dataclass(eq=False)
class LimitOrder(_SingleOrderMixin):
    """
    Buy at or below `limit`, or sell at or above `limit`.

    Attributes:
        limit: Worst acceptable fill price. Must be positive.
    """
    asset: Asset
    size: float
    limit: float
    tif: TimeInForce = field(default_factory=GTC)
    tag: str = ""
    id: Optional[int] = None


@dataclass(eq=False)
class StopOrder(_SingleOrderMixin):
    """
    Market order armed by a stop level.

    A buy stop triggers when the price trades at or above `stop`; a sell stop
    when it trades at or below `stop`.
    """
    asset: Asset
    size: float
    stop: float
    tif: TimeInForce = field(default_factory=GTC)
    tag: str = ""
    id: Optional[int] = None


@dataclass(eq=False)
class StopLimitOrder(_SingleOrderMixin):
    """Limit order at `limit`, armed once the price crosses `stop`."""
    asset: Asset
    size: float
    stop: float
    limit: float
    tif: TimeInForce = field(default_factory=GTC)
    tag: str = ""
    id: Optional[int] = None


@dataclass(eq=False)
class TrailOrder(_SingleOrderMixin):
    """
    Stop order whose stop level trails the best price seen since acceptance.

    For a sell, the stop sits `trail_percentage` below the highest price seen;
    for a buy, `trail_percentage` above the lowest price seen.

    Attributes:
        trail_percentage: Distance as a fraction, e.g. 0.05 for 5%. Must be in (0, 1).
    """
    asset: Asset
    size: float
    trail_percentage: float
    tif: TimeInForce = field(default_factory=GTC)
    tag: str = ""
    id: Optional[int] = None


@dataclass(eq=False)
class BracketOrder:
    """
    Entry order with a take-profit and a stop-loss exit.

    **Conceptual**: The entry is worked like a standalone order. Once it fills,
    both exits go live; the first exit to fill cancels the other and completes
    the bracket. Both exits must close exactly what the entry opened: same
    asset and size equal to `-entry.size`.

    Attributes:
        entry: MarketOrder or LimitOrder opening the position.
        take_profit: LimitOrder closing at a profit.
        stop_loss: StopOrder or TrailOrder closing at a loss.
    """
    entry: Union[MarketOrder, LimitOrder]
    take_profit: LimitOrder
    stop_loss: Union[StopOrder, TrailOrder]
    tag: str = ""
    id: Optional[int] = None

    @property
    def asset(self) -> Asset:
        return self.entry.asset

    @property
    def size(self) -> float:
        return self.entry.size

    @property
    def tif(self) -> TimeInForce:
        return self.entry.tif


@dataclass(eq=False)
class CancelOrder:
    """
    Cancel the open order with id `order_id`.

    The cancel instruction is itself tracked as an order: COMPLETED when it
    cancelled its target, REJECTED when the target was already closed.
    """
    order_id: int
    tag: str = ""
    id: Optional[int] = None


SingleOrder = Union[MarketOrder, LimitOrder, StopOrder, StopLimitOrder, TrailOrder]
CreateOrder = Union[MarketOrder, LimitOrder, StopOrder, StopLimitOrder, TrailOrder, BracketOrder]
Order = Union[MarketOrder, LimitOrder, StopOrder, StopLimitOrder, TrailOrder, BracketOrder, CancelOrder]

SINGLE_ORDER_TYPES = (MarketOrder, LimitOrder, StopOrder, StopLimitOrder, TrailOrder)
CREATE_ORDER_TYPES = SINGLE_ORDER_TYPES + (BracketOrder,)
ORDER_TYPES = CREATE_ORDER_TYPES + (CancelOrder,)
