"""
Single-writer account state owned by the PaperBroker.

Nothing outside src.execution holds a reference to a Ledger: the broker
mutates it and publishes `to_account()` snapshots.
"""

from typing import Dict, Iterable, List, Optional

import pandas as pd

from src.data.schemas import Asset, Event
from src.execution.account import Account
from src.execution.models import Position, Trade
from src.orders.state import OrderState
from src.utils.money import Amount, FixedExchangeRates, Wallet


class Ledger:
    """
    Mutable cash, positions, order states and trade history.

    Args:
        base_currency: Currency for buying power and base-currency totals.
        exchange_rates: Conversion table; defaults to a table that only knows
                       the base currency.
    """

    def __init__(self, base_currency: str, exchange_rates: Optional[FixedExchangeRates] = None):
        self.base_currency = base_currency
        self.exchange_rates = exchange_rates or FixedExchangeRates(base_currency)
        self.cash = Wallet()
        self.positions: Dict[Asset, Position] = {}
        self.orders: Dict[int, OrderState] = {}
        self.trades: List[Trade] = []
        self.buying_power = Amount(base_currency, 0.0)
        self.last_update: Optional[pd.Timestamp] = None

    def clear(self) -> None:
        self.cash.clear()
        self.positions.clear()
        self.orders.clear()
        self.trades.clear()
        self.buying_power = Amount(self.base_currency, 0.0)
        self.last_update = None

    def put_orders(self, states: Iterable[OrderState]) -> None:
        """Record the latest state of each order, keyed by order id."""
        for state in states:
            self.orders[state.id] = state

    def get_position(self, asset: Asset) -> Position:
        return self.positions.get(asset) or Position.empty(asset)

    def update_position(self, fill: Position) -> float:
        """
        Merge a fill into the asset's position and return the realized P&L.

        A position that ends up flat is removed from the map.
        """
        current = self.get_position(fill.asset)
        pnl = current.realized_pnl(fill)
        merged = current.merge(fill)
        if merged.closed:
            self.positions.pop(fill.asset, None)
        else:
            self.positions[fill.asset] = merged
        return pnl

    def update_market_prices(self, event: Event) -> None:
        """Refresh spot prices of held positions from the event's observations."""
        for asset, position in list(self.positions.items()):
            observation = event.get_price(asset)
            if observation is None:
                continue
            self.positions[asset] = Position(
                asset,
                position.size,
                position.avg_price,
                observation.price,
                event.time,
            )

    @property
    def open_orders(self) -> List[OrderState]:
        return [s for s in self.orders.values() if s.open]

    @property
    def closed_orders(self) -> List[OrderState]:
        return [s for s in self.orders.values() if s.closed]

    def to_account(self) -> Account:
        return Account(
            base_currency=self.base_currency,
            last_update=self.last_update,
            cash=self.cash.to_dict(),
            positions=dict(self.positions),
            orders=tuple(self.orders.values()),
            trades=tuple(self.trades),
            buying_power=self.buying_power,
            exchange_rates=self.exchange_rates,
        )

    def __repr__(self) -> str:
        return (
            f"Ledger(cash={self.cash!r}, positions={len(self.positions)}, "
            f"orders={len(self.orders)}, trades={len(self.trades)})"
        )
