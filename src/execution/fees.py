"""
Fee models charged per fill, in the currency of the traded asset.
"""

from typing import Protocol

from src.execution.models import Execution


class FeeModel(Protocol):
    def fee(self, execution: Execution) -> float:
        ...


class NoFee:
    """Commission-free trading."""

    def fee(self, execution: Execution) -> float:
        return 0.0


class PercentageFee:
    """
    Fee proportional to traded notional.

    Args:
        fee_bps: Fee in basis points of abs(quantity * price). Must be >= 0.
    """

    def __init__(self, fee_bps: float):
        if fee_bps < 0:
            raise ValueError(f"fee_bps must be non-negative, got {fee_bps}")
        self.fee_bps = fee_bps

    def fee(self, execution: Execution) -> float:
        return abs(execution.value) * self.fee_bps / 10000


class FixedFee:
    """Flat fee per fill, regardless of size."""

    def __init__(self, per_trade: float):
        if per_trade < 0:
            raise ValueError(f"per_trade must be non-negative, got {per_trade}")
        self.per_trade = per_trade

    def fee(self, execution: Execution) -> float:
        return self.per_trade
