"""
Paper broker simulation: order matching, ledger accounting, and pluggable
pricing, fee and buying-power models.

The PaperBroker is the only entry point; everything it returns is an
immutable Account snapshot.
"""
