"""
Event-driven backtest loop.

**Conceptual**: The backtest engine brings together an Event stream, a Policy
and a PaperBroker. For every Event, oldest first, it:

  1. Shows the policy the Event and the Account snapshot from the previous step.
  2. Places the policy's orders with the broker against that same Event.
  3. Records the resulting snapshot and its equity.

After the last Event the portfolio is optionally liquidated, and summary
metrics are computed from the equity curve and the trade history.

**Why separate engine from broker and policy?**
  - The broker handles execution and accounting, the policy handles decisions,
    and the engine only handles time iteration.
  - The same broker runs under the engine, in a paper-trading loop, or in a
    unit test without changes.

**No time travel**: The policy only ever receives the current Event and a
snapshot of the past; the broker refuses Events older than the last one.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import pandas as pd
from loguru import logger

from src.analytics.risk_metrics import (
    compute_cagr,
    compute_max_drawdown,
    compute_sharpe_ratio,
    compute_sortino_ratio,
    compute_total_return,
    compute_trade_statistics,
)
from src.config.settings import BrokerSettings
from src.data.schemas import Event
from src.execution.account import Account
from src.execution.paper_broker import PaperBroker
from src.strategies.base import Policy


@dataclass
class BacktestParams:
    """
    Parameters for a backtest run.

    Attributes:
        initial_deposit: Starting cash in base currency. Must be positive.
        base_currency: Currency of the deposit and of the equity curve.
        slippage_bps: Proportional slippage in basis points.
        fee_bps: Percentage fee on notional, in basis points.
        fee_per_trade: Flat fee per fill (use at most one of fee_bps / fee_per_trade).
        account_model: "cash" or "margin".
        leverage: Margin leverage; ignored for "cash".
        liquidate_at_end: Flatten everything after the last event so the final
                         equity is all cash.
        periods_per_year: Events per year, used to annualize metrics
                         (252 for daily bars).
    """
    initial_deposit: float = 1_000_000.0
    base_currency: str = "USD"
    slippage_bps: float = 0.0
    fee_bps: float = 0.0
    fee_per_trade: float = 0.0
    account_model: str = "cash"
    leverage: float = 2.0
    liquidate_at_end: bool = True
    periods_per_year: int = 252

    def to_broker_settings(self) -> BrokerSettings:
        """Translate to BrokerSettings (which also validates the values)."""
        return BrokerSettings(
            initial_deposit=self.initial_deposit,
            base_currency=self.base_currency,
            slippage_bps=self.slippage_bps,
            fee_bps=self.fee_bps,
            fee_per_trade=self.fee_per_trade,
            account_model=self.account_model,
            leverage=self.leverage,
        )


@dataclass
class BacktestResult:
    """
    Results from a backtest run.

    Attributes:
        equity_curve: Account equity (base currency) after each Event, indexed
                     by event time. After liquidation the last value is the
                     post-liquidation equity.
        account_history: Account snapshot after each Event.
        metrics: Flat dict of summary metrics.
        params: The parameters that produced this result.
    """
    equity_curve: pd.Series
    account_history: List[Account] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    params: BacktestParams | None = None

    @property
    def final_account(self) -> Account:
        return self.account_history[-1]


def run_backtest(
    events: Sequence[Event],
    policy: Policy,
    params: BacktestParams | None = None,
    broker: PaperBroker | None = None,
) -> BacktestResult:
    """
    Run a policy over an Event stream.

    Args:
        events: Events in non-decreasing time order (see src.data.feeds).
        policy: Object implementing the Policy protocol.
        params: Backtest parameters. Defaults to BacktestParams().
        broker: Optional pre-built broker (e.g., with custom pricing or exchange
               rates). When given, its cost settings take precedence over
               `params`; it is reset before the run.

    Returns:
        BacktestResult with equity curve, account history and metrics.

    Raises:
        ValueError: If `events` is empty.
        EventOrderingError: If `events` is not in time order.
    """
    if not events:
        raise ValueError("No events to backtest. Need at least one event.")

    params = params or BacktestParams()
    if broker is None:
        broker = PaperBroker.from_settings(params.to_broker_settings())
    else:
        broker.reset()

    logger.info(f"Starting backtest over {len(events)} events ({events[0].time} to {events[-1].time})")

    history: List[Account] = []
    account = broker.account
    for event in events:
        orders = policy.act(event, account)
        account = broker.place(orders, event)
        history.append(account)

    if params.liquidate_at_end:
        account = broker.liquidate_portfolio()
        history[-1] = account

    equity_curve = pd.Series(
        data=[a.equity().value for a in history],
        index=pd.DatetimeIndex([a.last_update for a in history]),
        name='equity',
    )
    metrics = _compute_metrics(equity_curve, account, params.periods_per_year)

    logger.info(
        f"Backtest finished: final equity {metrics['final_equity']:,.2f} "
        f"{broker.base_currency}, {metrics['num_trades']} trade(s)"
    )
    return BacktestResult(
        equity_curve=equity_curve,
        account_history=history,
        metrics=metrics,
        params=params,
    )


def _compute_metrics(equity_curve: pd.Series, account: Account, periods_per_year: int) -> Dict[str, float]:
    returns = equity_curve.pct_change().dropna()

    metrics: Dict[str, float] = {}
    metrics['total_return'] = compute_total_return(equity_curve)
    metrics['cagr'] = compute_cagr(equity_curve, periods_per_year=periods_per_year)
    metrics['max_drawdown'] = compute_max_drawdown(equity_curve)

    if len(returns) > 1:
        metrics['sharpe_ratio'] = compute_sharpe_ratio(returns, periods_per_year=periods_per_year)
        metrics['sortino_ratio'] = compute_sortino_ratio(returns, periods_per_year=periods_per_year)

    metrics['final_equity'] = float(equity_curve.iloc[-1])
    metrics['num_events'] = len(equity_curve)
    metrics.update(compute_trade_statistics(account.trades_frame()))
    return metrics
