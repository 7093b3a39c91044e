"""
Fill-price models.

**Conceptual**: Given an order and the price observation for its asset, a
pricing model returns the price at which a market-style fill happens. The
execution engine still applies order-specific rules on top (a limit fill is
never worse than its limit).

**Slippage**: Buys pay more than the reference price, sells receive less.
The adjustment has a proportional part (basis points of the reference price)
and an optional fixed part per unit.
"""

from typing import Protocol

from src.data.schemas import PriceObservation


class Pricing(Protocol):
    """Anything with a `price(order, observation)` method can price fills."""

    def price(self, order, observation: PriceObservation) -> float:
        ...


class NoCostPricing:
    """Fill at the observation's reference price."""

    def price(self, order, observation: PriceObservation) -> float:
        return observation.price


class SlippagePricing:
    """
    Reference price plus slippage against the order's direction.

    Args:
        slippage_bps: Proportional slippage in basis points. Must be >= 0.
        fixed: Additional per-unit slippage in price units. Must be >= 0.

    Example:
        >>> pricing = SlippagePricing(slippage_bps=10.0)
        >>> pricing.price(MarketOrder(asset, 5), TradePrice(asset, 100.0))
        100.1
    """

    def __init__(self, slippage_bps: float = 0.0, fixed: float = 0.0):
        if slippage_bps < 0:
            raise ValueError(f"slippage_bps must be non-negative, got {slippage_bps}")
        if fixed < 0:
            raise ValueError(f"fixed must be non-negative, got {fixed}")
        self.slippage_bps = slippage_bps
        self.fixed = fixed

    def price(self, order, observation: PriceObservation) -> float:
        reference = observation.price
        adjustment = reference * self.slippage_bps / 10000 + self.fixed
        if order.size > 0:
            return reference + adjustment
        return reference - adjustment

    def __repr__(self) -> str:
        return f"SlippagePricing(slippage_bps={self.slippage_bps}, fixed={self.fixed})"
