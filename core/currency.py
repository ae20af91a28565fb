"""
Currency model and immutable exchange-rate snapshots.

Rates are expressed against a base currency (USD): ``rates[EUR] == 0.92``
means 1 USD buys 0.92 EUR.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple

from core.errors import RateFetchFailed, RatesUnavailable, UnsupportedCurrencyError


class Currency(str, Enum):
    """Supported currencies. The set is closed."""

    USD = "USD"
    EUR = "EUR"
    ILS = "ILS"
    GBP = "GBP"

    @classmethod
    def parse(cls, value: "str | Currency") -> "Currency":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise UnsupportedCurrencyError(f"Unsupported currency: {value!r}") from None

    def __str__(self) -> str:
        return self.value


BASE_CURRENCY = Currency.USD
SUPPORTED_CURRENCIES: tuple[Currency, ...] = tuple(Currency)


class MoneyAmount(NamedTuple):
    amount: float
    currency: Currency


def non_base_currencies(base: Currency = BASE_CURRENCY) -> list[Currency]:
    """Currencies that need a fetched rate against ``base``."""
    return [c for c in SUPPORTED_CURRENCIES if c != base]


@dataclass(frozen=True)
class RateSnapshot:
    """One complete fetch cycle worth of rates. Never mutated once built."""

    rates: Mapping[Currency, float]
    fetched_at: float
    base: Currency = BASE_CURRENCY
    sequence: int = field(default=0, compare=False)

    @classmethod
    def build(
        cls,
        fetched: Mapping[Currency, float],
        fetched_at: float,
        base: Currency = BASE_CURRENCY,
        sequence: int = 0,
    ) -> "RateSnapshot":
        """
        Validate fetched rates and build a snapshot.

        Raises:
            RateFetchFailed: if any non-base currency is missing or its rate is not a positive number.
        """
        rates: dict[Currency, float] = {base: 1.0}
        for currency in non_base_currencies(base):
            if currency not in fetched:
                raise RateFetchFailed(f"Rate for {currency} missing from response")
            try:
                rate = float(fetched[currency])
            except (TypeError, ValueError):
                raise RateFetchFailed(f"Rate for {currency} is not numeric: {fetched[currency]!r}") from None
            if not math.isfinite(rate) or rate <= 0:
                raise RateFetchFailed(f"Rate for {currency} must be positive, got {rate}")
            rates[currency] = rate
        return cls(rates=MappingProxyType(rates), fetched_at=fetched_at, base=base, sequence=sequence)

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) < ttl

    def is_newer_than(self, other: "RateSnapshot | None") -> bool:
        if other is None:
            return True
        return (self.fetched_at, self.sequence) > (other.fetched_at, other.sequence)

    def convert(self, amount: float, from_currency: Currency, to_currency: Currency) -> float:
        """Convert through the base currency."""
        if from_currency == to_currency:
            return amount
        rates = self.rates
        if from_currency not in rates or to_currency not in rates:
            raise RatesUnavailable(f"No rate available for {from_currency} -> {to_currency}")

        amount_in_base = amount if from_currency == self.base else amount / rates[from_currency]
        return amount_in_base if to_currency == self.base else amount_in_base * rates[to_currency]


def raw_sum(entries: Iterable[MoneyAmount]) -> float:
    """Sum amounts ignoring currency (degraded mode)."""
    return sum(float(entry.amount) for entry in entries)


def as_money(entry) -> MoneyAmount:
    """Accept MoneyAmount, ``(amount, currency)`` pairs or objects with ``value``/``amount`` and ``currency``."""
    if isinstance(entry, MoneyAmount):
        return entry
    if isinstance(entry, tuple):
        amount, currency = entry
        return MoneyAmount(float(amount), Currency.parse(currency))
    amount = getattr(entry, "amount", None)
    if amount is None:
        amount = getattr(entry, "value")
    return MoneyAmount(float(amount), Currency.parse(entry.currency))
