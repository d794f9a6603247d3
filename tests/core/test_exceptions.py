"""Tests for clubinvest.core.exceptions."""

from decimal import Decimal

from clubinvest.core.exceptions import (
    APIError,
    ClubInvestError,
    ClubNotFound,
    ConcurrencyConflict,
    ConfigurationError,
    InsufficientFunds,
    InsufficientHoldings,
    InsufficientShares,
    InsufficientTreasury,
    IntegrityError,
    InvalidAmount,
    InvalidName,
    InvalidTicker,
    LedgerError,
    MemberNotFound,
    MembershipError,
    PriceOracleError,
    StorageError,
    UnknownCurrencyPair,
)


def test_hierarchy():
    """All exceptions should inherit from ClubInvestError."""
    for exc_cls in [ConfigurationError, APIError, LedgerError, StorageError]:
        assert issubclass(exc_cls, ClubInvestError)


def test_ledger_errors():
    for exc_cls in [
        InvalidAmount,
        InsufficientFunds,
        InsufficientHoldings,
        InsufficientTreasury,
        InsufficientShares,
        UnknownCurrencyPair,
        ClubNotFound,
        MemberNotFound,
        MembershipError,
        InvalidTicker,
        InvalidName,
    ]:
        assert issubclass(exc_cls, LedgerError)


def test_input_errors_are_value_errors():
    assert issubclass(InvalidTicker, ValueError)
    assert issubclass(InvalidName, ValueError)


def test_price_oracle_error_is_api_error():
    assert issubclass(PriceOracleError, APIError)


def test_storage_errors():
    assert issubclass(IntegrityError, StorageError)
    assert issubclass(ConcurrencyConflict, StorageError)


def test_insufficient_funds_shortfall():
    err = InsufficientFunds(required=Decimal("1500"), available=Decimal("1000"), currency="EUR")
    assert err.shortfall == Decimal("500")
    assert "shortfall: 500.00 EUR" in str(err)


def test_invalid_amount_message():
    err = InvalidAmount("quantity", -3)
    assert err.field == "quantity"
    assert "-3" in str(err)


def test_concurrency_conflict_message():
    err = ConcurrencyConflict("club-1", expected=4, actual=5)
    assert "expected version 4, found 5" in str(err)
