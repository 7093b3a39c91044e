"""
Immutable account snapshot handed to everything outside the broker.

**Conceptual**: The broker's Ledger is mutable and private. Each `place()`,
`liquidate_portfolio()` and `reset()` ends by copying it into an Account:
read-only mappings for cash and positions, tuples for orders and trades.
Strategies, the backtest loop and reporting code only ever see Accounts, so
they can never observe a half-applied batch or mutate broker state.

Accounts pickle cleanly, so they can be returned from worker processes.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import pandas as pd

from src.data.schemas import Asset
from src.execution.models import Position, Trade
from src.orders.state import OrderState
from src.utils.money import Amount, FixedExchangeRates


@dataclass(frozen=True)
class Account:
    """
    Point-in-time copy of the broker ledger.

    Attributes:
        base_currency: Currency for buying power, equity and market value.
        last_update: Time of the last processed event; None before the first.
        cash: Read-only mapping currency -> balance.
        positions: Read-only mapping Asset -> Position (no flat positions).
        orders: Every order state the ledger has seen, in id order.
        trades: Full trade history, oldest first.
        buying_power: Output of the broker's account model, in base currency.
        exchange_rates: Conversion table used for base-currency totals.
    """
    base_currency: str
    last_update: Optional[pd.Timestamp]
    cash: Mapping[str, float]
    positions: Mapping[Asset, Position]
    orders: Tuple[OrderState, ...] = ()
    trades: Tuple[Trade, ...] = ()
    buying_power: Amount = None
    exchange_rates: FixedExchangeRates = None

    def __post_init__(self):
        object.__setattr__(self, "cash", MappingProxyType(dict(self.cash)))
        object.__setattr__(self, "positions", MappingProxyType(dict(self.positions)))
        object.__setattr__(self, "orders", tuple(self.orders))
        object.__setattr__(self, "trades", tuple(self.trades))
        if self.buying_power is None:
            object.__setattr__(self, "buying_power", Amount(self.base_currency, 0.0))
        if self.exchange_rates is None:
            object.__setattr__(self, "exchange_rates", FixedExchangeRates(self.base_currency))

    def __reduce__(self):
        return (
            self.__class__,
            (
                self.base_currency,
                self.last_update,
                dict(self.cash),
                dict(self.positions),
                self.orders,
                self.trades,
                self.buying_power,
                self.exchange_rates,
            ),
        )

    @property
    def open_orders(self) -> Tuple[OrderState, ...]:
        return tuple(s for s in self.orders if s.open)

    @property
    def closed_orders(self) -> Tuple[OrderState, ...]:
        return tuple(s for s in self.orders if s.closed)

    def get_order(self, order_id: int) -> Optional[OrderState]:
        for state in self.orders:
            if state.id == order_id:
                return state
        return None

    def get_position(self, asset: Asset) -> Optional[Position]:
        return self.positions.get(asset)

    def cash_amount(self) -> Amount:
        """Total cash across currencies, converted to the base currency."""
        return self.exchange_rates.convert_all(self.cash, self.base_currency)

    def market_value(self) -> Amount:
        """Net market value of all positions in the base currency (shorts count negative)."""
        values = {}
        for position in self.positions.values():
            currency = position.asset.currency
            values[currency] = values.get(currency, 0.0) + position.market_value
        return self.exchange_rates.convert_all(values, self.base_currency)

    def unrealized_pnl(self) -> Amount:
        values = {}
        for position in self.positions.values():
            currency = position.asset.currency
            values[currency] = values.get(currency, 0.0) + position.unrealized_pnl
        return self.exchange_rates.convert_all(values, self.base_currency)

    def equity(self) -> Amount:
        """Cash plus market value, in the base currency."""
        return self.cash_amount() + self.market_value()

    def trades_frame(self) -> pd.DataFrame:
        """
        Trade history as a DataFrame, one row per trade.

        Columns: time, symbol, currency, size, price, fee, pnl, order_id.
        """
        columns = ['time', 'symbol', 'currency', 'size', 'price', 'fee', 'pnl', 'order_id']
        rows = [
            {
                'time': t.time,
                'symbol': t.asset.symbol,
                'currency': t.asset.currency,
                'size': t.size,
                'price': t.price,
                'fee': t.fee,
                'pnl': t.pnl,
                'order_id': t.order_id,
            }
            for t in self.trades
        ]
        return pd.DataFrame(rows, columns=columns)

    def positions_frame(self) -> pd.DataFrame:
        """
        Open positions as a DataFrame indexed by symbol.

        Columns: currency, size, avg_price, spot_price, market_value, unrealized_pnl.
        """
        columns = ['currency', 'size', 'avg_price', 'spot_price', 'market_value', 'unrealized_pnl']
        positions = list(self.positions.values())
        rows = [
            {
                'currency': p.asset.currency,
                'size': p.size,
                'avg_price': p.avg_price,
                'spot_price': p.spot_price,
                'market_value': p.market_value,
                'unrealized_pnl': p.unrealized_pnl,
            }
            for p in positions
        ]
        index = pd.Index([p.asset.symbol for p in positions], name='symbol')
        return pd.DataFrame(rows, index=index, columns=columns)
