"""
Money primitives: single-currency amounts, multi-currency wallets, and a fixed
exchange-rate table.

**Conceptual**: A simulated account can hold cash in more than one currency
(e.g., USD for US equities, EUR for European listings). Cash is therefore kept
per currency in a Wallet and only converted to the account's base currency
when a single number is needed (buying power, equity).

Conversions use FixedExchangeRates: a static table expressed as "units of the
base currency per one unit of the foreign currency". Backtests stay
deterministic because rates never move during a run.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Amount:
    """
    A monetary value in a single currency.

    Attributes:
        currency: ISO-style currency code (e.g., "USD").
        value: The amount. Can be negative (e.g., a debit or a short exposure).
    """
    currency: str
    value: float

    def __add__(self, other: "Amount") -> "Amount":
        if other.currency != self.currency:
            raise ValueError(
                f"Cannot add amounts in different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Amount(self.currency, self.value + other.value)

    def __mul__(self, factor: float) -> "Amount":
        return Amount(self.currency, self.value * factor)

    def __repr__(self) -> str:
        return f"{self.value:,.2f} {self.currency}"


class Wallet:
    """
    Mutable cash holdings across currencies.

    A currency whose balance returns to exactly zero stays in the wallet; use
    `clear()` to empty it. Only the ledger mutates a wallet; snapshots hold a
    read-only copy of `to_dict()`.
    """

    def __init__(self, *amounts: Amount):
        self._data: Dict[str, float] = {}
        for amount in amounts:
            self.deposit(amount.currency, amount.value)

    def deposit(self, currency: str, value: float) -> None:
        self._data[currency] = self._data.get(currency, 0.0) + value

    def withdraw(self, currency: str, value: float) -> None:
        self.deposit(currency, -value)

    def get(self, currency: str) -> float:
        return self._data.get(currency, 0.0)

    @property
    def currencies(self) -> Tuple[str, ...]:
        return tuple(self._data.keys())

    @property
    def amounts(self) -> Tuple[Amount, ...]:
        return tuple(Amount(c, v) for c, v in self._data.items())

    def is_empty(self) -> bool:
        return not self._data

    def clear(self) -> None:
        self._data.clear()

    def copy(self) -> "Wallet":
        return Wallet(*self.amounts)

    def to_dict(self) -> Dict[str, float]:
        return dict(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        inner = ", ".join(repr(a) for a in self.amounts)
        return f"Wallet({inner})"


class FixedExchangeRates:
    """
    Static exchange-rate table anchored on a base currency.

    **Conceptual**: `rates[currency]` answers "how many units of the base
    currency is one unit of `currency` worth?". The base currency always has
    rate 1.0. Converting between two non-base currencies goes through the base.

    Args:
        base_currency: The currency all rates are expressed in.
        rates: Optional mapping currency -> base units per unit of currency.

    Raises:
        ValueError: If any rate is not strictly positive.

    Example:
        >>> rates = FixedExchangeRates("USD", {"EUR": 1.10})
        >>> rates.convert(Amount("EUR", 100.0), "USD")
        110.00 USD
    """

    def __init__(self, base_currency: str, rates: Optional[Mapping[str, float]] = None):
        self.base_currency = base_currency
        self._rates: Dict[str, float] = {base_currency: 1.0}
        for currency, rate in (rates or {}).items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {currency} must be positive, got {rate}")
            self._rates[currency] = float(rate)

    def supports(self, currency: str) -> bool:
        return currency in self._rates

    def get_rate(self, from_currency: str, to_currency: str) -> float:
        """
        Return the multiplier converting `from_currency` into `to_currency`.

        Raises:
            ValueError: If either currency is not in the table.
        """
        for currency in (from_currency, to_currency):
            if currency not in self._rates:
                raise ValueError(
                    f"No exchange rate for {currency} "
                    f"(base currency {self.base_currency}, known: {sorted(self._rates)})"
                )
        return self._rates[from_currency] / self._rates[to_currency]

    def convert(self, amount: Amount, to_currency: str) -> Amount:
        if amount.currency == to_currency:
            return amount
        return Amount(to_currency, amount.value * self.get_rate(amount.currency, to_currency))

    def convert_all(self, values: Mapping[str, float], to_currency: str) -> Amount:
        """Convert a currency -> value mapping into one total in `to_currency`."""
        total = 0.0
        for currency, value in values.items():
            total += self.convert(Amount(currency, value), to_currency).value
        return Amount(to_currency, total)
