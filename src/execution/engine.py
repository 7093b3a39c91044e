"""
Execution engine: the working set of open orders.

**Conceptual**: The engine is the broker's matching core. It assigns order
ids, validates and accepts new orders, applies cancellations, and for each
event asks every open order's executor whether it fills. It knows nothing
about cash or positions; the broker turns its Executions into ledger updates.

**Ordering**: Orders are evaluated in registration order. Within one event,
time-in-force expiry is checked before matching, so an IOC order accepted on
an earlier event expires rather than fills.

**Determinism**: No wall clock and no randomness. Ids come from a counter
that `clear()` resets, so replaying the same inputs gives the same ids.
"""

import math
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from src.data.schemas import Event
from src.execution.executors import OrderExecutor, create_executor
from src.execution.models import Execution
from src.execution.pricing import Pricing
from src.orders.models import (
    BracketOrder,
    CancelOrder,
    LimitOrder,
    MarketOrder,
    Order,
    SINGLE_ORDER_TYPES,
    StopOrder,
    TrailOrder,
)
from src.orders.state import OrderState, OrderStatus


def validate_order(order) -> Optional[str]:
    """
    Check a create order's parameters.

    Returns:
        None when the order is valid, otherwise a human-readable reason.
    """
    if isinstance(order, BracketOrder):
        return _validate_bracket(order)

    if not isinstance(order, SINGLE_ORDER_TYPES):
        return f"unsupported order type {type(order).__name__}"
    if order.size == 0 or not math.isfinite(order.size):
        return f"invalid size {order.size}"
    for name in ("limit", "stop"):
        value = getattr(order, name, None)
        if value is not None and not value > 0:
            return f"{name} price must be positive, got {value}"
    if isinstance(order, TrailOrder) and not 0 < order.trail_percentage < 1:
        return f"trail_percentage must be in (0, 1), got {order.trail_percentage}"
    return None


def _validate_bracket(order: BracketOrder) -> Optional[str]:
    if not isinstance(order.entry, (MarketOrder, LimitOrder)):
        return "bracket entry must be a MarketOrder or LimitOrder"
    if not isinstance(order.take_profit, LimitOrder):
        return "bracket take_profit must be a LimitOrder"
    if not isinstance(order.stop_loss, (StopOrder, TrailOrder)):
        return "bracket stop_loss must be a StopOrder or TrailOrder"
    for leg in (order.entry, order.take_profit, order.stop_loss):
        reason = validate_order(leg)
        if reason:
            return reason
    for leg in (order.take_profit, order.stop_loss):
        if leg.asset != order.entry.asset:
            return "bracket legs must all trade the same asset"
        if leg.size != -order.entry.size:
            return "bracket exits must close exactly the entry size"
    return None


class ExecutionEngine:
    """
    Open-order working set plus matching.

    Args:
        pricing: Pricing model used for every fill.

    Example:
        >>> engine = ExecutionEngine(NoCostPricing())
        >>> engine.register(MarketOrder(qqq, 10), event.time)
        >>> engine.execute(event)
        [Execution(order=..., quantity=10, price=403.5)]
    """

    def __init__(self, pricing: Pricing):
        self.pricing = pricing
        self._executors: Dict[int, OrderExecutor] = {}
        self._cancels: Dict[int, OrderState] = {}
        self._next_id = 1

    def _assign_id(self, order: Order) -> None:
        order.id = self._next_id
        self._next_id += 1

    def register(self, order: Order, time: pd.Timestamp, reject_reason: str | None = None) -> OrderState:
        """
        Add an order to the working set and return its new state.

        **Functionally**:
          - Assigns the order its id. Bracket legs keep `id=None`: a bracket is
            tracked and cancelled as one order.
          - CancelOrder: applied immediately. The target is CANCELLED and the
            cancel COMPLETED; if the target is unknown or already closed the
            cancel is REJECTED.
          - Create orders: REJECTED when `reject_reason` is given or the
            parameters are invalid, otherwise ACCEPTED at `time`.

        Rejected orders stay in the working set until `remove_closed_orders()`
        so the ledger can record their final state.
        """
        self._assign_id(order)

        if isinstance(order, CancelOrder):
            return self._register_cancel(order, time)

        executor = create_executor(order)
        self._executors[order.id] = executor

        reason = reject_reason or validate_order(order)
        if reason:
            executor.reject(time)
            logger.warning(f"Order {order.id} ({type(order).__name__} {order.asset}) rejected: {reason}")
        else:
            executor.accept(time)
        return executor.state

    def _register_cancel(self, order: CancelOrder, time: pd.Timestamp) -> OrderState:
        state = OrderState(order)
        target = self._executors.get(order.order_id)
        if target is not None and target.cancel(time):
            state = state.update(time, OrderStatus.ACCEPTED).update(time, OrderStatus.COMPLETED)
        else:
            state = state.update(time, OrderStatus.REJECTED)
            logger.warning(f"Cancel {order.id} rejected: order {order.order_id} is not open")
        self._cancels[order.id] = state
        return state

    def execute(self, event: Event) -> List[Execution]:
        """
        Match every open order against `event`, in registration order.

        Returns:
            Executions produced by this event, in order. Empty when nothing filled.
        """
        executions: List[Execution] = []
        for executor in self._executors.values():
            if not executor.open:
                continue
            if executor.is_expired(event.time):
                executor.expire(event.time)
                logger.debug(f"Order {executor.order.id} expired at {event.time}")
                continue
            executions.extend(executor.execute(event, self.pricing))
        return executions

    @property
    def order_states(self) -> List[OrderState]:
        """Current state of every order in the working set, cancels included, in id order."""
        states = [e.state for e in self._executors.values()] + list(self._cancels.values())
        return sorted(states, key=lambda s: s.id)

    @property
    def open_order_ids(self) -> List[int]:
        return [order_id for order_id, e in self._executors.items() if e.open]

    def get_state(self, order_id: int) -> Optional[OrderState]:
        if order_id in self._executors:
            return self._executors[order_id].state
        return self._cancels.get(order_id)

    def get_executor(self, order_id: int) -> Optional[OrderExecutor]:
        return self._executors.get(order_id)

    def remove_closed_orders(self) -> None:
        """Purge terminal orders. Call after the ledger has recorded their states."""
        self._executors = {k: e for k, e in self._executors.items() if e.open}
        self._cancels.clear()

    def clear(self) -> None:
        self._executors.clear()
        self._cancels.clear()
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._executors)
