"""
Per-order matching logic.

**Conceptual**: The execution engine wraps every registered order in an
OrderExecutor. The executor owns the order's current OrderState and decides,
one event at a time, whether the order fills and at what price.

**Matching against an observation**: Every observation exposes a reference
price (`price`) and a traded range (`low_price`, `high_price`). Triggers use
the range, so a bar that dipped through a stop triggers it even if it closed
above. Fill prices come from the pricing model, with limit orders capped so a
fill is never worse than the limit.

**Fills**: An order fills for its full size or not at all. An order whose
condition is not met stays open for the next event.
"""

from typing import List, Optional

from src.data.schemas import Event, PriceObservation
from src.execution.models import Execution
from src.execution.pricing import Pricing
from src.orders.models import (
    BracketOrder,
    CreateOrder,
    LimitOrder,
    MarketOrder,
    StopLimitOrder,
    StopOrder,
    TrailOrder,
)
from src.orders.state import OrderState, OrderStatus


class OrderExecutor:
    """
    Base class: state handling shared by all executors.

    Subclasses implement `execute()`.
    """

    def __init__(self, order: CreateOrder):
        self.order = order
        self.state = OrderState(order)

    @property
    def open(self) -> bool:
        return self.state.open

    def _move(self, time, status: OrderStatus) -> bool:
        previous = self.state
        self.state = self.state.update(time, status)
        return self.state is not previous

    def accept(self, time) -> bool:
        return self._move(time, OrderStatus.ACCEPTED)

    def reject(self, time) -> bool:
        return self._move(time, OrderStatus.REJECTED)

    def cancel(self, time) -> bool:
        """Cancel the order if it is still open. Returns True if it was cancelled."""
        return self._move(time, OrderStatus.CANCELLED)

    def expire(self, time) -> bool:
        return self._move(time, OrderStatus.EXPIRED)

    def complete(self, time) -> bool:
        return self._move(time, OrderStatus.COMPLETED)

    def is_expired(self, time) -> bool:
        """True when the order's time-in-force has run out at `time`."""
        if self.state.status is not OrderStatus.ACCEPTED:
            return False
        return self.order.tif.is_expired(self.state.opened_at, time)

    def execute(self, event: Event, pricing: Pricing) -> List[Execution]:
        raise NotImplementedError


class SingleOrderExecutor(OrderExecutor):
    """
    Executor for one-leg orders.

    Subclasses implement `fill_price()`, which returns None while the order's
    condition is not met. It may also update internal trigger state, so it is
    called at most once per event.
    """

    def fill_price(self, observation: PriceObservation, pricing: Pricing) -> Optional[float]:
        raise NotImplementedError

    def execute(self, event: Event, pricing: Pricing) -> List[Execution]:
        observation = event.get_price(self.order.asset)
        if observation is None:
            return []
        price = self.fill_price(observation, pricing)
        if price is None:
            return []
        self.complete(event.time)
        return [Execution(self.order, self.order.size, price)]


def _limit_price(order, limit: float, observation: PriceObservation, pricing: Pricing) -> Optional[float]:
    """Limit fill price, or None when the observed range does not reach `limit`."""
    if order.size > 0:
        if observation.low_price <= limit:
            return min(limit, pricing.price(order, observation))
        return None
    if observation.high_price >= limit:
        return max(limit, pricing.price(order, observation))
    return None


def _stop_triggered(order, stop: float, observation: PriceObservation) -> bool:
    if order.size > 0:
        return observation.high_price >= stop
    return observation.low_price <= stop


class MarketOrderExecutor(SingleOrderExecutor):
    def fill_price(self, observation, pricing):
        return pricing.price(self.order, observation)


class LimitOrderExecutor(SingleOrderExecutor):
    def fill_price(self, observation, pricing):
        return _limit_price(self.order, self.order.limit, observation, pricing)


class StopOrderExecutor(SingleOrderExecutor):
    def fill_price(self, observation, pricing):
        if _stop_triggered(self.order, self.order.stop, observation):
            return pricing.price(self.order, observation)
        return None


class StopLimitOrderExecutor(SingleOrderExecutor):
    """Once the stop has triggered the order stays triggered and works as a limit."""

    def __init__(self, order: StopLimitOrder):
        super().__init__(order)
        self.triggered = False

    def fill_price(self, observation, pricing):
        if not self.triggered:
            self.triggered = _stop_triggered(self.order, self.order.stop, observation)
        if not self.triggered:
            return None
        return _limit_price(self.order, self.order.limit, observation, pricing)


class TrailOrderExecutor(SingleOrderExecutor):
    """
    Trailing stop.

    **Algorithm**, per observation:
      1. The first observation only seeds the reference: its price, moved to
         its high (sell) or low (buy). It never triggers the order.
      2. From the next observation on, stop = reference * (1 - pct) for a
         sell, reference * (1 + pct) for a buy.
      3. Triggered like a StopOrder against that stop level.
      4. Otherwise the reference moves to the observed high (sell) or low (buy)
         if that is more favourable.

    Example:
        Sell, 10% trail. Prices 100, 120, 107: the stop rises from 90 to 108,
        so the bar trading at 107 triggers.
    """

    def __init__(self, order: TrailOrder):
        super().__init__(order)
        self.reference: Optional[float] = None

    def stop_price(self) -> float:
        pct = self.order.trail_percentage
        if self.order.size > 0:
            return self.reference * (1.0 + pct)
        return self.reference * (1.0 - pct)

    def fill_price(self, observation, pricing):
        if self.reference is None:
            self.reference = observation.price
        elif _stop_triggered(self.order, self.stop_price(), observation):
            return pricing.price(self.order, observation)

        if self.order.size > 0:
            self.reference = min(self.reference, observation.low_price)
        else:
            self.reference = max(self.reference, observation.high_price)
        return None


class BracketOrderExecutor(OrderExecutor):
    """
    Entry plus two mutually cancelling exits.

    **Algorithm**:
      - While the entry is open, only the entry is matched.
      - When the entry fills, both exits are accepted at that event's time.
        They are first matched on the next event.
      - The stop-loss is matched before the take-profit, so a bar that spans
        both levels is booked as a loss.
      - When an exit fills, the other exit is cancelled and the bracket is
        COMPLETED.

    Executions produced here reference the bracket order itself.
    """

    def __init__(self, order: BracketOrder):
        super().__init__(order)
        self.entry = create_executor(order.entry)
        self.take_profit = create_executor(order.take_profit)
        self.stop_loss = create_executor(order.stop_loss)

    @property
    def legs(self) -> List[SingleOrderExecutor]:
        return [self.entry, self.take_profit, self.stop_loss]

    def accept(self, time) -> bool:
        accepted = super().accept(time)
        if accepted:
            self.entry.accept(time)
        return accepted

    def cancel(self, time) -> bool:
        for leg in self.legs:
            leg.cancel(time)
        return super().cancel(time)

    def expire(self, time) -> bool:
        for leg in self.legs:
            leg.expire(time)
        return super().expire(time)

    def is_expired(self, time) -> bool:
        # time-in-force only governs the entry; live exits are GTC
        if not self.entry.open:
            return False
        return super().is_expired(time)

    def execute(self, event: Event, pricing: Pricing) -> List[Execution]:
        observation = event.get_price(self.order.asset)
        if observation is None:
            return []

        if self.entry.open:
            price = self.entry.fill_price(observation, pricing)
            if price is None:
                return []
            self.entry.complete(event.time)
            self.take_profit.accept(event.time)
            self.stop_loss.accept(event.time)
            return [Execution(self.order, self.order.entry.size, price)]

        for leg, other in ((self.stop_loss, self.take_profit), (self.take_profit, self.stop_loss)):
            price = leg.fill_price(observation, pricing)
            if price is not None:
                leg.complete(event.time)
                other.cancel(event.time)
                self.complete(event.time)
                return [Execution(self.order, leg.order.size, price)]
        return []


_EXECUTORS = (
    (MarketOrder, MarketOrderExecutor),
    (LimitOrder, LimitOrderExecutor),
    (StopLimitOrder, StopLimitOrderExecutor),
    (StopOrder, StopOrderExecutor),
    (TrailOrder, TrailOrderExecutor),
    (BracketOrder, BracketOrderExecutor),
)


def create_executor(order: CreateOrder) -> OrderExecutor:
    """
    Return the executor for `order`.

    Raises:
        TypeError: If `order` is not a create-order kind.
    """
    for order_type, executor_type in _EXECUTORS:
        if isinstance(order, order_type):
            return executor_type(order)
    raise TypeError(f"No executor for order type {type(order).__name__}")
