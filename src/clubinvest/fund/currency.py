"""
Fixed-table currency conversion.

Rates are looked up for the ordered pair (from, to) and are deliberately
not required to be inverses of one another: USD->EUR at 0.95 followed by
EUR->USD at 1.05 does not round-trip to the original amount.

A pair with no rate converts at identity and logs a warning. Pass
``strict=True`` to raise UnknownCurrencyPair instead.
"""

from decimal import Decimal
from enum import StrEnum

from loguru import logger

from clubinvest.core.exceptions import UnknownCurrencyPair


class Currency(StrEnum):
    """Settlement and quote currencies supported by the rate table."""

    EUR = "EUR"
    USD = "USD"


DEFAULT_RATES: dict[tuple[Currency, Currency], Decimal] = {
    (Currency.USD, Currency.EUR): Decimal("0.95"),
    (Currency.EUR, Currency.USD): Decimal("1.05"),
}


class CurrencyConverter:
    """Pure converter over a fixed rate table."""

    def __init__(
        self,
        rates: dict[tuple[Currency, Currency], Decimal] | None = None,
        strict: bool = False,
    ):
        self.rates = dict(DEFAULT_RATES if rates is None else rates)
        self.strict = strict

    def rate(self, from_currency: Currency | str, to_currency: Currency | str) -> Decimal | None:
        """Return the rate for the ordered pair, or None when the table has no entry."""
        if from_currency == to_currency:
            return Decimal(1)
        return self.rates.get((Currency(from_currency), Currency(to_currency)))

    def convert(
        self,
        amount: Decimal,
        from_currency: Currency | str,
        to_currency: Currency | str,
        strict: bool | None = None,
    ) -> Decimal:
        """Convert *amount* between currencies.

        Same-currency conversion returns *amount* itself, unrounded.
        """
        if from_currency == to_currency:
            return amount
        rate = self.rates.get((Currency(from_currency), Currency(to_currency)))
        if rate is None:
            if self.strict if strict is None else strict:
                raise UnknownCurrencyPair(str(from_currency), str(to_currency))
            logger.warning(f"No rate for {from_currency}->{to_currency}; converting at identity")
            return amount
        return amount * rate


_default_converter = CurrencyConverter()


def convert(
    amount: Decimal,
    from_currency: Currency | str,
    to_currency: Currency | str,
    strict: bool = False,
) -> Decimal:
    """Convert with the default rate table."""
    return _default_converter.convert(amount, from_currency, to_currency, strict=strict)


def get_default_converter() -> CurrencyConverter:
    return _default_converter
