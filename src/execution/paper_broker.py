"""
Paper broker: the single entry point for simulated trading.

**Conceptual**: The PaperBroker simulates a brokerage account. Each call to
`place()` hands it a batch of order instructions plus one market Event. The
broker:

  1. Validates the batch as a whole (and raises before touching anything if
     the batch is malformed).
  2. Checks each new order against the remaining buying power and rejects
     the ones the account cannot afford.
  3. Registers the orders with the ExecutionEngine and lets it match every
     open order against the event.
  4. Books each resulting Execution: fee, position merge, realized P&L,
     Trade record, cash movement.
  5. Records order states, refreshes spot prices, recomputes buying power,
     and returns an immutable Account snapshot.

It's called "paper" because no real money changes hands: it's purely
simulation, and fully deterministic given the same inputs.

**Financial assumptions**:
  - Orders fill for their full size or not at all, at the price returned by
    the pricing model (limit orders never worse than their limit).
  - Slippage and fees are pluggable (see pricing.py and fees.py).
  - Cash moves in the currency of the traded asset. Conversion to the base
    currency uses a fixed exchange-rate table and only matters for buying
    power and reporting.
  - Shorting is allowed; whether it is affordable is up to the account model.

**Cash conservation**: with no deposits other than the initial one, cash in
any currency always equals initial cash minus the sum of `size * price + fee`
over the trades in that currency.

**Single writer**: A broker instance is not thread-safe. Parallel runs each
build their own broker (see src.orchestration.parallel).
"""

from typing import List, Optional, Sequence

import pandas as pd
from loguru import logger

from src.config.settings import BrokerSettings
from src.data.schemas import Event, TradePrice
from src.execution.account import Account
from src.execution.account_models import AccountModel, CashAccount, MarginAccount
from src.execution.engine import ExecutionEngine
from src.execution.errors import (
    DuplicateOrderError,
    EventOrderingError,
    StaleEventError,
    UnknownOrderError,
    UnsupportedCurrencyError,
    UnsupportedOrderError,
)
from src.execution.fees import FeeModel, FixedFee, NoFee, PercentageFee
from src.execution.ledger import Ledger
from src.execution.models import Execution, Position, Trade
from src.execution.pricing import NoCostPricing, Pricing, SlippagePricing
from src.orders.models import (
    BracketOrder,
    CancelOrder,
    MarketOrder,
    Order,
    ORDER_TYPES,
    SINGLE_ORDER_TYPES,
)
from src.utils.money import Amount, FixedExchangeRates, Wallet
from src.utils.time import Clock


class PaperBroker:
    """
    Simulated broker for backtests and paper trading.

    **Why one class owns everything?**
      - The ledger must never be observed half-updated. Keeping engine, ledger
        and capability objects behind one `place()` call makes every batch
        atomic from the caller's point of view.
      - Cost and buying-power behavior is injected, so swapping a model never
        touches the accounting code.

    Args:
        initial_deposit: Cash deposited on construction and on every `reset()`.
                        A float is taken to be in `base_currency`.
        base_currency: Currency for buying power and base-currency totals.
        pricing: Fill-price model. Default: reference price, no slippage.
        fee_model: Fee model. Default: no fees.
        account_model: Buying-power model. Default: CashAccount().
        exchange_rates: Conversion table for non-base currencies.
        clock: Wall clock for the live staleness check. None (the default)
              means backtest mode: events are never considered stale.
        max_event_age: Maximum event age accepted when a clock is set.
        reject_insufficient_buying_power: Reject orders whose added exposure
                                          exceeds the remaining buying power.

    Example:
        >>> broker = PaperBroker(1_000_000.0)
        >>> qqq = Asset("QQQ")
        >>> event = Event.of("2024-01-15", [TradePrice(qqq, 150.0)])
        >>> account = broker.place([MarketOrder(qqq, 10)], event)
        >>> account.cash["USD"]
        998500.0
    """

    def __init__(
        self,
        initial_deposit: Wallet | Amount | float = 1_000_000.0,
        base_currency: str = "USD",
        pricing: Pricing | None = None,
        fee_model: FeeModel | None = None,
        account_model: AccountModel | None = None,
        exchange_rates: FixedExchangeRates | None = None,
        clock: Clock | None = None,
        max_event_age: pd.Timedelta = pd.Timedelta(hours=1),
        reject_insufficient_buying_power: bool = True,
    ):
        if isinstance(initial_deposit, Wallet):
            wallet = initial_deposit.copy()
        elif isinstance(initial_deposit, Amount):
            wallet = Wallet(initial_deposit)
        else:
            wallet = Wallet(Amount(base_currency, float(initial_deposit)))

        self.base_currency = base_currency
        self.exchange_rates = exchange_rates or FixedExchangeRates(base_currency)
        for currency in wallet.currencies:
            if not self.exchange_rates.supports(currency):
                raise ValueError(f"No exchange rate for deposit currency {currency}")

        self.initial_deposit = wallet
        self.pricing = pricing or NoCostPricing()
        self.fee_model = fee_model or NoFee()
        self.account_model = account_model or CashAccount()
        self.clock = clock
        self.max_event_age = max_event_age
        self.reject_insufficient_buying_power = reject_insufficient_buying_power

        self._engine = ExecutionEngine(self.pricing)
        self._ledger = Ledger(base_currency, self.exchange_rates)
        self.reset()

    @classmethod
    def from_settings(
        cls,
        settings: BrokerSettings,
        clock: Clock | None = None,
        exchange_rates: FixedExchangeRates | None = None,
    ) -> "PaperBroker":
        """
        Build a broker from BrokerSettings.

        **Wiring**:
          - slippage_bps > 0 -> SlippagePricing, else NoCostPricing.
          - fee_bps > 0 -> PercentageFee; fee_per_trade > 0 -> FixedFee; else NoFee.
          - account_model "margin" -> MarginAccount(leverage), else CashAccount.
        """
        pricing = SlippagePricing(settings.slippage_bps) if settings.slippage_bps > 0 else NoCostPricing()

        if settings.fee_bps > 0:
            fee_model = PercentageFee(settings.fee_bps)
        elif settings.fee_per_trade > 0:
            fee_model = FixedFee(settings.fee_per_trade)
        else:
            fee_model = NoFee()

        if settings.account_model == "margin":
            account_model = MarginAccount(leverage=settings.leverage)
        else:
            account_model = CashAccount()

        return cls(
            initial_deposit=Amount(settings.base_currency, settings.initial_deposit),
            base_currency=settings.base_currency,
            pricing=pricing,
            fee_model=fee_model,
            account_model=account_model,
            exchange_rates=exchange_rates,
            clock=clock,
            max_event_age=pd.Timedelta(seconds=settings.max_event_age_seconds),
            reject_insufficient_buying_power=settings.reject_insufficient_buying_power,
        )

    @property
    def account(self) -> Account:
        """Current immutable snapshot of the ledger."""
        return self._ledger.to_account()

    def place(self, instructions: Sequence[Order], event: Event) -> Account:
        """
        Process a batch of instructions against one market event.

        **Functionally**:
          - Batch validation first; any failure raises and leaves the broker
            untouched.
          - Orders the account cannot afford are REJECTED; the rest of the
            batch proceeds.
          - All open orders (old and new) are matched against `event`, and
            every fill is booked before the snapshot is taken.

        Args:
            instructions: New orders and cancels, possibly empty.
            event: Market data for this step. Must not be older than the
                   previous event.

        Returns:
            Account snapshot as of `event.time`.

        Raises:
            UnsupportedOrderError: An instruction is not a supported order kind.
            DuplicateOrderError: An order object was already placed.
            UnknownOrderError: A cancel references an id never seen.
            EventOrderingError: `event` is older than the last processed event.
            StaleEventError: A clock is set and `event` is too old.
            UnsupportedCurrencyError: An asset's currency cannot be converted.
        """
        instructions = list(instructions)
        self._validate(instructions, event)
        logger.debug(f"Placing {len(instructions)} instruction(s) at {event.time}")

        rejections = self._buying_power_rejections(instructions, event)
        for order in instructions:
            self._engine.register(order, event.time, rejections.get(id(order)))

        for execution in self._engine.execute(event):
            self._update_account(execution, event.time)

        self._ledger.put_orders(self._engine.order_states)
        self._engine.remove_closed_orders()
        self._ledger.update_market_prices(event)
        self._ledger.last_update = event.time
        self._update_buying_power()
        return self.account

    def liquidate_portfolio(self, time: pd.Timestamp | None = None) -> Account:
        """
        Cancel every open order and flatten every position.

        **Conceptual**: Builds a Cancel for each open order and a Market order
        of `-size` for each position, plus a synthetic event holding a
        TradePrice at each position's last spot price, then runs them through
        `place()`. Market orders always fill, so the result has no positions
        and no open orders. With nothing open this is a no-op.

        Args:
            time: Time of the synthetic event. Defaults to the last update.
        """
        open_ids = self._engine.open_order_ids
        positions = list(self._ledger.positions.values())
        if not open_ids and not positions:
            return self.account

        time = time if time is not None else self._ledger.last_update
        instructions: List[Order] = [CancelOrder(order_id, tag="liquidation") for order_id in open_ids]
        instructions += [MarketOrder(p.asset, -p.size, tag="liquidation") for p in positions]
        event = Event.of(time, [TradePrice(p.asset, p.spot_price) for p in positions])

        logger.info(
            f"Liquidating portfolio at {event.time}: "
            f"{len(open_ids)} open order(s), {len(positions)} position(s)"
        )
        return self.place(instructions, event)

    def reset(self) -> None:
        """Return to the initial state: initial deposit only, no orders, no history."""
        self._ledger.clear()
        self._engine.clear()
        for amount in self.initial_deposit.amounts:
            self._ledger.cash.deposit(amount.currency, amount.value)
        self._update_buying_power()
        logger.info(f"Broker reset with initial deposit {self.initial_deposit!r}")

    # ========================================================================
    # Internal helper methods
    # ========================================================================

    def _validate(self, instructions: List[Order], event: Event) -> None:
        """Raise a ValidationError subclass for the first batch-level problem."""
        last_update = self._ledger.last_update
        if last_update is not None and event.time < last_update:
            raise EventOrderingError(f"Event at {event.time} is older than last update {last_update}")

        if self.clock is not None:
            now = self.clock.now()
            if event.time < now - self.max_event_age:
                raise StaleEventError(
                    f"Event at {event.time} is older than the maximum age "
                    f"{self.max_event_age} (now {now})"
                )

        seen = set()
        for order in instructions:
            if not isinstance(order, ORDER_TYPES):
                raise UnsupportedOrderError(f"Unsupported instruction type: {type(order).__name__}")
            if isinstance(order, BracketOrder):
                for leg in (order.entry, order.take_profit, order.stop_loss):
                    if not isinstance(leg, SINGLE_ORDER_TYPES):
                        raise UnsupportedOrderError(f"Unsupported bracket leg type: {type(leg).__name__}")
            if order.id is not None or id(order) in seen:
                raise DuplicateOrderError(f"{type(order).__name__} {order.id} was already placed")
            seen.add(id(order))

            if isinstance(order, CancelOrder):
                known = (
                    self._engine.get_state(order.order_id) is not None
                    or order.order_id in self._ledger.orders
                )
                if not known:
                    raise UnknownOrderError(f"Cannot cancel unknown order id {order.order_id}")
            elif not self.exchange_rates.supports(order.asset.currency):
                raise UnsupportedCurrencyError(
                    f"{order.asset} trades in {order.asset.currency}, which cannot be "
                    f"converted to {self.base_currency}"
                )

    def _buying_power_rejections(self, instructions: List[Order], event: Event) -> dict:
        """
        Decide which create orders exceed the remaining buying power.

        **Financial logic**:
          - exposure increase = max(0, |position + size| - |position|) units,
            valued at a reference price (event price, else the order's limit or
            stop, else the position's spot price) and converted to base currency.
          - Orders are admitted in batch order, each consuming buying power.
          - An order with no reference price cannot be valued and is admitted.

        Returns:
            Mapping id(order) -> rejection reason.
        """
        if not self.reject_insufficient_buying_power:
            return {}

        remaining = self._ledger.buying_power.value
        projected = {asset: p.size for asset, p in self._ledger.positions.items()}
        rejections = {}
        for order in instructions:
            if isinstance(order, CancelOrder):
                continue
            asset = order.asset
            current = projected.get(asset, 0.0)
            added_units = max(0.0, abs(current + order.size) - abs(current))
            if added_units == 0:
                projected[asset] = current + order.size
                continue

            price = self._reference_price(order, event)
            if price is None:
                projected[asset] = current + order.size
                continue

            cost = self.exchange_rates.convert(Amount(asset.currency, added_units * price), self.base_currency).value
            if cost > remaining:
                rejections[id(order)] = (
                    f"insufficient buying power: needs {cost:,.2f} {self.base_currency}, "
                    f"has {remaining:,.2f}"
                )
                continue
            remaining -= cost
            projected[asset] = current + order.size
        return rejections

    def _reference_price(self, order, event: Event) -> Optional[float]:
        observation = event.get_price(order.asset)
        if observation is not None:
            return observation.price
        leg = getattr(order, "entry", order)
        for name in ("limit", "stop"):
            value = getattr(leg, name, None)
            if value is not None:
                return value
        position = self._ledger.positions.get(order.asset)
        if position is not None:
            return position.spot_price
        return None

    def _update_account(self, execution: Execution, time: pd.Timestamp) -> None:
        """
        Book one execution.

        Steps: fee, position merge (realized P&L), Trade record, and a cash
        withdrawal of `quantity * price + fee` in the asset's currency.
        """
        asset = execution.asset
        fee = self.fee_model.fee(execution)
        fill = Position(asset, execution.quantity, execution.price, execution.price, time)
        realized = self._ledger.update_position(fill)

        trade = Trade(
            time=time,
            asset=asset,
            size=execution.quantity,
            price=execution.price,
            fee=fee,
            pnl=realized - fee,
            order_id=execution.order.id,
        )
        self._ledger.trades.append(trade)
        self._ledger.cash.withdraw(asset.currency, trade.total_cost)
        logger.debug(
            f"Filled order {trade.order_id}: {trade.size:+g} {asset} @ {trade.price:.4f} "
            f"(fee {fee:.2f}, pnl {trade.pnl:.2f})"
        )

    def _update_buying_power(self) -> None:
        self._ledger.buying_power = self.account_model.buying_power(self._ledger.to_account())

    def __repr__(self) -> str:
        return f"PaperBroker({self._ledger!r})"

