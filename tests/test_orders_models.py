"""
Tests for order instructions and time-in-force policies.
"""

import pandas as pd

from src.data.schemas import Asset
from src.orders.models import (
    BracketOrder,
    DAY,
    GTC,
    GTD,
    IOC,
    LimitOrder,
    MarketOrder,
    StopOrder,
)

OPENED = pd.Timestamp("2024-01-15 14:30", tz="UTC")


def test_gtc_never_expires():
    assert not GTC().is_expired(OPENED, OPENED + pd.Timedelta(days=365))


def test_day_expires_on_next_calendar_day():
    tif = DAY()
    assert not tif.is_expired(OPENED, pd.Timestamp("2024-01-15 21:00", tz="UTC"))
    assert tif.is_expired(OPENED, pd.Timestamp("2024-01-16 00:00", tz="UTC"))


def test_gtd_expires_strictly_after_date():
    tif = GTD("2024-01-20")
    assert tif.date == pd.Timestamp("2024-01-20", tz="UTC")
    assert not tif.is_expired(OPENED, pd.Timestamp("2024-01-20", tz="UTC"))
    assert tif.is_expired(OPENED, pd.Timestamp("2024-01-20 00:00:01", tz="UTC"))


def test_ioc_only_lives_for_accepting_event():
    tif = IOC()
    assert not tif.is_expired(OPENED, OPENED)
    assert tif.is_expired(OPENED, OPENED + pd.Timedelta(minutes=1))


def test_order_defaults():
    order = MarketOrder(Asset("TEST"), -5)
    assert order.id is None
    assert isinstance(order.tif, GTC)
    assert order.sell and not order.buy
    assert order.direction == -1


def test_orders_compare_by_identity():
    a = MarketOrder(Asset("TEST"), 5)
    b = MarketOrder(Asset("TEST"), 5)
    assert a != b
    assert a == a


def test_bracket_delegates_to_entry():
    asset = Asset("TEST")
    bracket = BracketOrder(
        entry=MarketOrder(asset, 10, tif=DAY()),
        take_profit=LimitOrder(asset, -10, 110.0),
        stop_loss=StopOrder(asset, -10, 95.0),
    )
    assert bracket.asset == asset
    assert bracket.size == 10
    assert isinstance(bracket.tif, DAY)
