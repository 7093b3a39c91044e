"""
Policy interface and trivial policies.

**Conceptual**: A Policy is the upstream collaborator that turns market data
into order instructions. The backtest loop calls `act(event, account)` once per
Event, with the Account snapshot from the previous step, and hands whatever
orders come back to the broker together with that same Event.

Real signal logic lives outside this repository. The policies here exist to
drive the broker in tests, in the CLI, and as baselines.

**Why a Protocol?**
  - Any object with a matching `act` method is a Policy; no base class needed.
  - Policies only ever see immutable snapshots, so they cannot reach into the
    broker's ledger.
"""

from typing import List, Protocol

from src.data.schemas import Asset, Event
from src.execution.account import Account
from src.orders.models import MarketOrder, Order


class Policy(Protocol):
    """
    Policy interface for the backtest loop.

    **Contract**:
      - Called once per Event, oldest first.
      - `account` reflects every event before this one; it never includes
        fills from `event` itself.
      - Return an empty list to do nothing. Returned order objects must be
        fresh (an order can only be placed once).
    """

    def act(self, event: Event, account: Account) -> List[Order]:
        ...


class NoOpPolicy:
    """Never trades. Equity stays at the initial deposit."""

    def act(self, event: Event, account: Account) -> List[Order]:
        return []


class BuyAndHoldPolicy:
    """
    Buy `size` units of one asset once, then hold.

    **Expected behavior**: On the first event that has a price for the asset,
    while the account holds no position in it and has no open orders, a single
    MarketOrder is emitted. It fills on that same event, after which the policy
    stays silent.

    Args:
        asset: Asset to buy.
        size: Units to buy. Must be positive.
    """

    def __init__(self, asset: Asset, size: float):
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        self.asset = asset
        self.size = size

    def act(self, event: Event, account: Account) -> List[Order]:
        if event.get_price(self.asset) is None:
            return []
        if self.asset in account.positions or account.open_orders:
            return []
        if any(t.asset == self.asset for t in account.trades):
            return []
        return [MarketOrder(self.asset, self.size, tag="buy-and-hold")]
