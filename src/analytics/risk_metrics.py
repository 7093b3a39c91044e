"""
Performance metrics for simulated accounts.

Two inputs are supported:
  - Equity curves (pd.Series of account equity indexed by event time), as
    produced by the backtest loop.
  - Trade tables (`Account.trades_frame()`), for fill-level statistics.

Metrics are plain functions returning floats so they can be collected into the
flat metrics dict of a BacktestResult. Undefined values (no volatility, no
losing trades) are returned as NaN rather than raised.
"""

import numpy as np
import pandas as pd


def compute_total_return(equity_curve: pd.Series) -> float:
    """
    Return from the first to the last equity value.

    **Mathematical**:
        total_return = E_T / E_0 - 1

    Args:
        equity_curve: Account equity over time. E_0 must be positive.

    Returns:
        Total return as a decimal (0.25 = 25%). 0.0 for a curve with fewer
        than two points.
    """
    if len(equity_curve) < 2:
        return 0.0
    return float(equity_curve.iloc[-1] / equity_curve.iloc[0] - 1.0)


def compute_cagr(equity_curve: pd.Series, periods_per_year: int = 252) -> float:
    """
    Compound annual growth rate, treating each curve point as one period.

    **Mathematical**:
        CAGR = (E_T / E_0) ^ (periods_per_year / n) - 1, n = len(curve) - 1
    """
    n_periods = len(equity_curve) - 1
    if n_periods <= 0:
        return 0.0
    growth = equity_curve.iloc[-1] / equity_curve.iloc[0]
    if growth <= 0:
        return -1.0
    return float(growth ** (periods_per_year / n_periods) - 1.0)


def compute_sharpe_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = 252,
) -> float:
    """
    Annualized Sharpe ratio of periodic returns.

    **Mathematical**:
        Sharpe = (mean(r) - r_f / periods_per_year) / std(r) * sqrt(periods_per_year)

    Args:
        returns: Periodic simple returns. NaNs are dropped.
        risk_free_rate: Annualized risk-free rate.
        periods_per_year: Number of return periods per year.

    Returns:
        Sharpe ratio, or NaN when returns have no volatility.
    """
    clean = returns.dropna()
    vol = clean.std(ddof=1)
    if len(clean) < 2 or np.isnan(vol) or vol < 1e-12:
        return np.nan
    excess = clean.mean() - risk_free_rate / periods_per_year
    return float(excess / vol * np.sqrt(periods_per_year))


def compute_sortino_ratio(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = 252,
) -> float:
    """Like Sharpe, but divided by the volatility of negative returns only. NaN without losses."""
    clean = returns.dropna()
    downside = clean[clean < 0]
    if len(downside) < 2:
        return np.nan
    downside_std = downside.std(ddof=1)
    if downside_std < 1e-12:
        return np.nan
    excess = clean.mean() - risk_free_rate / periods_per_year
    return float(excess / downside_std * np.sqrt(periods_per_year))


def compute_drawdown_series(equity_curve: pd.Series) -> pd.Series:
    """
    Fractional distance below the running peak at every point.

    **Mathematical**:
        drawdown_t = E_t / max(E_0..E_t) - 1

    Returns:
        Series of values <= 0 with the same index as `equity_curve`.
    """
    return equity_curve / equity_curve.cummax() - 1.0


def compute_max_drawdown(equity_curve: pd.Series) -> float:
    """Worst peak-to-trough loss (a value <= 0, e.g. -0.3 for 30%)."""
    if equity_curve.empty:
        return 0.0
    return float(compute_drawdown_series(equity_curve).min())


def compute_trade_statistics(trades: pd.DataFrame) -> dict[str, float]:
    """
    Fill-level statistics over a trade table.

    Only trades that realized P&L (closing or reducing fills) count as wins or
    losses; opening fills have pnl equal to minus their fee and are ignored
    when computing the win rate.

    Args:
        trades: DataFrame with at least `pnl` and `fee` columns, as returned
               by `Account.trades_frame()`.

    Returns:
        Dict with:
          - num_trades: number of fills
          - total_fees: sum of fees
          - realized_pnl: sum of trade pnl (net of fees)
          - win_rate: share of closing fills with positive pnl (NaN if none)
          - profit_factor: gross wins / gross losses (NaN if no losses)

    Example:
        >>> compute_trade_statistics(account.trades_frame())['realized_pnl']
        100.0
    """
    if trades.empty:
        return {
            'num_trades': 0,
            'total_fees': 0.0,
            'realized_pnl': 0.0,
            'win_rate': np.nan,
            'profit_factor': np.nan,
        }

    pnl = trades['pnl'].to_numpy(dtype=float)
    fees = trades['fee'].to_numpy(dtype=float)
    gross = pnl + fees
    closing = gross != 0

    wins = pnl[closing & (pnl > 0)]
    losses = pnl[closing & (pnl < 0)]
    n_closing = int(closing.sum())

    return {
        'num_trades': int(len(trades)),
        'total_fees': float(fees.sum()),
        'realized_pnl': float(pnl.sum()),
        'win_rate': float(len(wins) / n_closing) if n_closing else np.nan,
        'profit_factor': float(wins.sum() / abs(losses.sum())) if len(losses) else np.nan,
    }
