"""
Tests for the order lifecycle state machine.

Covers the legal transitions, the silent absorption of illegal ones, and the
status helper properties.
"""

import pandas as pd
import pytest

from src.data.schemas import Asset
from src.orders.models import CancelOrder, MarketOrder
from src.orders.state import OrderState, OrderStatus, transition

T1 = pd.Timestamp("2024-01-15", tz="UTC")
T2 = pd.Timestamp("2024-01-16", tz="UTC")
T3 = pd.Timestamp("2024-01-17", tz="UTC")


@pytest.fixture
def state():
    return OrderState(MarketOrder(Asset("TEST"), 10))


def test_new_state_is_initial_and_unset(state):
    assert state.status is OrderStatus.INITIAL
    assert state.opened_at is None
    assert state.closed_at is None
    assert state.open and not state.closed


def test_accept_sets_opened_at(state):
    accepted = transition(state, T1)

    assert accepted.status is OrderStatus.ACCEPTED
    assert accepted.opened_at == T1
    assert accepted.closed_at is None
    # original is untouched
    assert state.status is OrderStatus.INITIAL


def test_complete_keeps_opened_at(state):
    done = transition(transition(state, T1), T2, OrderStatus.COMPLETED)

    assert done.status is OrderStatus.COMPLETED
    assert done.opened_at == T1
    assert done.closed_at == T2
    assert done.closed


def test_reject_from_initial_sets_both_times(state):
    """
    Scenario: an INITIAL order is rejected at T1 without ever being accepted.
    Expected: opened_at and closed_at both equal T1.
    """
    rejected = transition(state, T1, OrderStatus.REJECTED)

    assert rejected.status is OrderStatus.REJECTED
    assert rejected.opened_at == T1
    assert rejected.closed_at == T1


@pytest.mark.parametrize("terminal", [
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.EXPIRED,
    OrderStatus.REJECTED,
])
def test_closed_state_never_changes(state, terminal):
    closed = transition(transition(state, T1), T2, terminal)

    for status in OrderStatus:
        assert transition(closed, T3, status) is closed


def test_accept_is_idempotent(state):
    accepted = transition(state, T1)
    assert transition(accepted, T2, OrderStatus.ACCEPTED) is accepted


def test_back_to_initial_is_absorbed(state):
    accepted = transition(state, T1)
    assert transition(accepted, T2, OrderStatus.INITIAL) is accepted


def test_update_delegates_to_transition(state):
    s = state.update(T1).update(T2, OrderStatus.CANCELLED)
    assert s.status is OrderStatus.CANCELLED
    assert (s.opened_at, s.closed_at) == (T1, T2)


def test_status_helpers():
    assert {s for s in OrderStatus if s.open} == {OrderStatus.INITIAL, OrderStatus.ACCEPTED}
    assert {s for s in OrderStatus if s.aborted} == {
        OrderStatus.CANCELLED,
        OrderStatus.EXPIRED,
        OrderStatus.REJECTED,
    }
    assert not OrderStatus.COMPLETED.aborted


def test_state_asset_and_id():
    order = MarketOrder(Asset("TEST"), 10)
    order.id = 7
    assert OrderState(order).id == 7
    assert OrderState(order).asset == Asset("TEST")
    assert OrderState(CancelOrder(7)).asset is None
