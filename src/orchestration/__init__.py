"""
Batch orchestration of independent simulation runs.

Runs many backtests (parameter sweeps, several universes) on a process pool,
each with its own broker and ledger.
"""
