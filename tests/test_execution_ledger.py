"""
Tests for the Ledger and the Account snapshot it produces.
"""

import pickle

import pandas as pd
import pytest

from src.data.schemas import Asset, Event, TradePrice
from src.execution.ledger import Ledger
from src.execution.models import Position, Trade
from src.orders.models import MarketOrder
from src.orders.state import OrderState, OrderStatus
from src.utils.money import FixedExchangeRates

A = Asset("TEST")
T1 = pd.Timestamp("2024-01-15", tz="UTC")


def test_update_position_returns_realized_pnl_and_removes_flat():
    ledger = Ledger("USD")

    assert ledger.update_position(Position(A, 10, 150.0)) == 0.0
    assert ledger.positions[A].size == 10

    assert ledger.update_position(Position(A, -10, 160.0)) == pytest.approx(100.0)
    assert A not in ledger.positions


def test_update_market_prices_only_touches_observed_assets():
    other = Asset("OTHER")
    ledger = Ledger("USD")
    ledger.update_position(Position(A, 10, 100.0))
    ledger.update_position(Position(other, 5, 20.0))

    ledger.update_market_prices(Event.of(T1, [TradePrice(A, 110.0)]))

    assert ledger.positions[A].spot_price == 110.0
    assert ledger.positions[A].last_update == T1
    assert ledger.positions[A].avg_price == 100.0
    assert ledger.positions[other].spot_price == 20.0


def test_put_orders_keeps_latest_state():
    order = MarketOrder(A, 1)
    order.id = 1
    ledger = Ledger("USD")
    accepted = OrderState(order).update(T1)
    ledger.put_orders([accepted])
    ledger.put_orders([accepted.update(T1, OrderStatus.COMPLETED)])

    assert ledger.open_orders == []
    assert [s.status for s in ledger.closed_orders] == [OrderStatus.COMPLETED]


def test_clear():
    ledger = Ledger("USD")
    ledger.cash.deposit("USD", 100.0)
    ledger.update_position(Position(A, 1, 1.0))
    ledger.last_update = T1
    ledger.clear()

    assert ledger.cash.is_empty()
    assert ledger.positions == {}
    assert ledger.last_update is None


def make_ledger():
    rates = FixedExchangeRates("USD", {"EUR": 1.1})
    ledger = Ledger("USD", rates)
    ledger.cash.deposit("USD", 1_000.0)
    ledger.cash.deposit("EUR", 100.0)
    ledger.update_position(Position(A, 10, 15.0, spot_price=20.0))
    ledger.trades.append(Trade(T1, A, 10, 15.0, 0.5, -0.5, 1))
    ledger.last_update = T1
    return ledger


def test_account_snapshot_is_read_only_and_detached():
    ledger = make_ledger()
    account = ledger.to_account()

    with pytest.raises(TypeError):
        account.cash["USD"] = 0.0
    with pytest.raises(TypeError):
        account.positions[A] = None

    ledger.cash.deposit("USD", 500.0)
    ledger.positions.clear()
    assert account.cash["USD"] == 1_000.0
    assert A in account.positions


def test_account_totals():
    """
    Scenario: 1,000 USD + 100 EUR at 1.1, long 10 TEST with spot 20.
    Expected: cash 1,110; market value 200; equity 1,310.
    """
    account = make_ledger().to_account()

    assert account.cash_amount().value == pytest.approx(1_110.0)
    assert account.market_value().value == pytest.approx(200.0)
    assert account.equity().value == pytest.approx(1_310.0)
    assert account.unrealized_pnl().value == pytest.approx(50.0)


def test_account_frames():
    account = make_ledger().to_account()

    trades = account.trades_frame()
    assert list(trades.columns) == ['time', 'symbol', 'currency', 'size', 'price', 'fee', 'pnl', 'order_id']
    assert trades.iloc[0]['symbol'] == "TEST"

    positions = account.positions_frame()
    assert positions.loc["TEST", "market_value"] == pytest.approx(200.0)


def test_empty_account_frames():
    account = Ledger("USD").to_account()
    assert account.trades_frame().empty
    assert account.positions_frame().empty


def test_account_pickles():
    account = make_ledger().to_account()
    restored = pickle.loads(pickle.dumps(account))

    assert restored.cash == {"USD": 1_000.0, "EUR": 100.0}
    assert restored.positions[A].size == 10
    assert restored.equity().value == pytest.approx(1_310.0)
