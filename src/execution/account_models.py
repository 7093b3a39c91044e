"""
Buying-power models.

**Conceptual**: After every `place()` the broker asks its account model how
much new exposure the account can still take on. The answer is an Amount in
the account's base currency and is published on the Account snapshot.

  - CashAccount: buying power is the cash on hand (no leverage, no shorting
    against cash).
  - MarginAccount: buying power is excess equity times leverage, after
    reserving maintenance margin for open longs and shorts.
"""

from typing import TYPE_CHECKING, Protocol

from src.utils.money import Amount

if TYPE_CHECKING:
    from src.execution.account import Account


class AccountModel(Protocol):
    def buying_power(self, account: "Account") -> Amount:
        ...


class CashAccount:
    """
    Buying power = total cash converted to the base currency, minus a reserve.

    Args:
        minimum: Cash that must always stay unused. Must be >= 0.
    """

    def __init__(self, minimum: float = 0.0):
        if minimum < 0:
            raise ValueError(f"minimum must be non-negative, got {minimum}")
        self.minimum = minimum

    def buying_power(self, account: "Account") -> Amount:
        cash = account.cash_amount()
        return Amount(cash.currency, cash.value - self.minimum)


class MarginAccount:
    """
    Leveraged buying power.

    **Financial logic**:
        excess = cash + long_value - |short_value|
                 - long_value * maintenance_margin_long
                 - |short_value| * maintenance_margin_short
                 - minimum_equity
        buying_power = excess * leverage

    All values are converted to the base currency first. A negative result
    means the account is over-extended and every exposure-increasing order
    will be rejected.

    Args:
        leverage: Multiplier on excess equity. Must be >= 1.
        maintenance_margin_long: Fraction of long market value held back.
        maintenance_margin_short: Fraction of short market value held back.
        minimum_equity: Equity that must stay unused.
    """

    def __init__(
        self,
        leverage: float = 2.0,
        maintenance_margin_long: float = 0.3,
        maintenance_margin_short: float = 0.5,
        minimum_equity: float = 0.0,
    ):
        if leverage < 1:
            raise ValueError(f"leverage must be >= 1, got {leverage}")
        for name, value in (
            ("maintenance_margin_long", maintenance_margin_long),
            ("maintenance_margin_short", maintenance_margin_short),
        ):
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        self.leverage = leverage
        self.maintenance_margin_long = maintenance_margin_long
        self.maintenance_margin_short = maintenance_margin_short
        self.minimum_equity = minimum_equity

    def buying_power(self, account: "Account") -> Amount:
        base = account.base_currency
        rates = account.exchange_rates
        long_value = 0.0
        short_value = 0.0
        for position in account.positions.values():
            value = rates.convert(Amount(position.asset.currency, position.market_value), base).value
            if value > 0:
                long_value += value
            else:
                short_value += abs(value)

        cash = account.cash_amount().value
        excess = (
            cash
            + long_value
            - short_value
            - long_value * self.maintenance_margin_long
            - short_value * self.maintenance_margin_short
            - self.minimum_equity
        )
        return Amount(base, excess * self.leverage)
