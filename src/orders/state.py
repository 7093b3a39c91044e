"""
Order lifecycle: statuses, per-order state, and the transition function.

**Conceptual**: Every order the broker sees moves through a small, forward-only
state graph:

    INITIAL -> ACCEPTED -> COMPLETED | CANCELLED | EXPIRED
    INITIAL -> REJECTED

INITIAL and ACCEPTED are "open"; the other four are "closed" (terminal).
OrderState snapshots are immutable: `transition()` returns a new state, or
the same object when the requested move is illegal or redundant. Illegal
moves are absorbed silently rather than raised, so replaying the same status
report twice is harmless.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import pandas as pd

from src.orders.models import Order


class OrderStatus(Enum):
    """Lifecycle status of an order."""

    INITIAL = "INITIAL"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"

    @property
    def open(self) -> bool:
        return self in (OrderStatus.INITIAL, OrderStatus.ACCEPTED)

    @property
    def closed(self) -> bool:
        return not self.open

    @property
    def aborted(self) -> bool:
        """True for the terminal states that did not complete normally."""
        return self in (OrderStatus.CANCELLED, OrderStatus.EXPIRED, OrderStatus.REJECTED)


@dataclass(frozen=True)
class OrderState:
    """
    Point-in-time state of one order.

    Attributes:
        order: The underlying order.
        status: Current lifecycle status.
        opened_at: Acceptance time; None until the order is ACCEPTED
                  (or closed straight from INITIAL, in which case it equals closed_at).
        closed_at: Time the order reached a terminal status; None while open.
    """
    order: Order
    status: OrderStatus = OrderStatus.INITIAL
    opened_at: Optional[pd.Timestamp] = None
    closed_at: Optional[pd.Timestamp] = None

    @property
    def open(self) -> bool:
        return self.status.open

    @property
    def closed(self) -> bool:
        return self.status.closed

    @property
    def id(self) -> Optional[int]:
        return self.order.id

    @property
    def asset(self):
        """Asset of the order; None for a CancelOrder."""
        return getattr(self.order, "asset", None)

    def update(self, time: pd.Timestamp, status: OrderStatus = OrderStatus.ACCEPTED) -> "OrderState":
        return transition(self, time, status)


def transition(
    state: OrderState,
    time: pd.Timestamp,
    new_status: OrderStatus = OrderStatus.ACCEPTED,
) -> OrderState:
    """
    Move `state` to `new_status` at `time` if the lifecycle graph allows it.

    **Rules**:
      - ACCEPTED from INITIAL: opened_at = time.
      - Any closed status from an open status: closed_at = time, and opened_at
        is kept (or set to time if the order was never accepted).
      - Anything else: `state` is returned unchanged.

    Args:
        state: Current state.
        time: Time of the transition (event time, never wall-clock time).
        new_status: Requested status.

    Returns:
        The new OrderState, or `state` itself when the move is not allowed.

    Example:
        >>> s = OrderState(order)
        >>> s = transition(s, t1)                         # ACCEPTED, opened_at=t1
        >>> s = transition(s, t2, OrderStatus.COMPLETED)  # closed_at=t2
        >>> transition(s, t3, OrderStatus.CANCELLED) is s
        True
    """
    if new_status is OrderStatus.ACCEPTED and state.status is OrderStatus.INITIAL:
        return OrderState(state.order, OrderStatus.ACCEPTED, opened_at=time)

    if new_status.closed and state.status.open:
        opened_at = state.opened_at if state.opened_at is not None else time
        return OrderState(state.order, new_status, opened_at=opened_at, closed_at=time)

    return state
