"""
Performance metrics over equity curves and trade tables.

Includes total return, CAGR, Sharpe and Sortino ratios, drawdown, and
fill-level trade statistics.
"""
