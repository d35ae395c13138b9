"""
Currency Normalizer

Converts amounts between currencies using a fixed rate table.

Each currency has one table rate, with CNY = 1 as the reference.
Converting from one currency to another scales by
rate(target) / rate(source). The same rule is used everywhere: reporting
totals, pending income, and transfer credits.

The table is static. There is no live feed and no history.
"""

from decimal import Decimal
from typing import Union

from treasury.models.finance import Currency


REFERENCE_CURRENCY = Currency.CNY

EXCHANGE_RATES: dict[Currency, Decimal] = {
    REFERENCE_CURRENCY: Decimal("1"),
    Currency.USD: Decimal("7.2"),
    Currency.EUR: Decimal("7.8"),
    Currency.JPY: Decimal("0.048"),
    Currency.HKD: Decimal("0.92"),
    Currency.KRW: Decimal("0.0052"),
}


class UnsupportedCurrencyError(ValueError):
    """A currency with no entry in the rate table. This is a configuration error."""

    def __init__(self, currency):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency!r}")


def _coerce(currency: Union[Currency, str]) -> Currency:
    try:
        currency = Currency(currency)
    except ValueError:
        raise UnsupportedCurrencyError(currency) from None
    if currency not in EXCHANGE_RATES:
        raise UnsupportedCurrencyError(currency)
    return currency


def rate_for(currency: Union[Currency, str]) -> Decimal:
    """Table rate for a currency; fails fast on anything unknown."""
    return EXCHANGE_RATES[_coerce(currency)]


def conversion_rate(
    from_currency: Union[Currency, str],
    to_currency: Union[Currency, str],
) -> Decimal:
    """Multiplier that turns an amount in from_currency into to_currency."""
    source = _coerce(from_currency)
    target = _coerce(to_currency)
    if source == target:
        return Decimal("1")
    return EXCHANGE_RATES[target] / EXCHANGE_RATES[source]


def normalize(
    amount: Union[Decimal, int, float, str],
    from_currency: Union[Currency, str],
    to_currency: Union[Currency, str],
) -> Decimal:
    """Convert an amount denominated in from_currency into to_currency."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount * conversion_rate(from_currency, to_currency)
