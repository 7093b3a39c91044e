"""
Event-driven backtest loop.

Drives a Policy and a PaperBroker over an Event stream and produces an equity
curve, the account history, and summary metrics.
"""
