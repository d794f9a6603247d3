"""
clubinvest exception hierarchy.

All clubinvest exceptions inherit from ClubInvestError, making it easy for
callers to catch library-level errors while still distinguishing specific
failure modes. Ledger errors are raised before any new state is produced,
so catching one never leaves a half-applied operation behind.
"""

from decimal import Decimal


class ClubInvestError(Exception):
    """Base exception class for all clubinvest errors."""


class ConfigurationError(ClubInvestError):
    """Raised for configuration errors (missing keys, invalid values)."""


class APIError(ClubInvestError):
    """Raised for external API communication errors."""


class PriceOracleError(APIError):
    """Raised when a market price provider cannot be reached or parsed."""


# ---------------------------------------------------------------------------
# Ledger errors
# ---------------------------------------------------------------------------


class LedgerError(ClubInvestError):
    """Base class for rejected ledger operations."""


class InvalidAmount(LedgerError):
    """Raised for non-positive, NaN or infinite amounts, quantities or prices."""

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r} (must be a positive finite number)")


class InvalidTicker(LedgerError, ValueError):
    """Raised for a blank ticker symbol."""


class InvalidName(LedgerError, ValueError):
    """Raised for a blank club name."""


class InsufficientFunds(LedgerError):
    """Raised when a buy order costs more than the club's cash."""

    def __init__(self, required: Decimal, available: Decimal, currency: str = ""):
        self.required = required
        self.available = available
        self.shortfall = required - available
        self.currency = currency
        unit = f" {currency}" if currency else ""
        super().__init__(
            f"Insufficient funds. Required: {required:.2f}{unit}, "
            f"available: {available:.2f}{unit}, shortfall: {self.shortfall:.2f}{unit}"
        )


class InsufficientHoldings(LedgerError):
    """Raised when a sell order exceeds the quantity held."""

    def __init__(self, ticker: str, held: Decimal, requested: Decimal):
        self.ticker = ticker
        self.held = held
        self.requested = requested
        super().__init__(f"Insufficient holdings of {ticker}. Held: {held}, requested: {requested}")


class InsufficientTreasury(LedgerError):
    """Raised when a withdrawal exceeds the club's cash."""

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient treasury for withdrawal of {requested:.2f} (available: {available:.2f})")


class InsufficientShares(LedgerError):
    """Raised when a withdrawal would burn more shares than the member owns."""

    def __init__(self, owned: Decimal, required: Decimal):
        self.owned = owned
        self.required = required
        super().__init__(f"Member owns only {owned:.2f} shares; the withdrawal requires {required:.2f} shares")


class UnknownCurrencyPair(LedgerError):
    """Raised by strict conversion when no rate exists for a currency pair."""

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"No conversion rate for {from_currency} -> {to_currency}")


class ClubNotFound(LedgerError):
    """Raised when a club id or invite code does not resolve."""


class MemberNotFound(LedgerError):
    """Raised when a member id does not belong to the club."""


class MembershipError(LedgerError):
    """Raised for invalid membership changes (duplicate join, self-removal)."""


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class StorageError(ClubInvestError):
    """Base exception for persistence failures. Callers must not assume any write happened."""


class StoragePermissionError(StorageError):
    """Raised when a storage operation is not permitted."""


class IntegrityError(StorageError):
    """Raised when a write would break a uniqueness constraint (e.g. invite codes)."""


class ConcurrencyConflict(StorageError):
    """Raised when a commit's expected club version no longer matches the stored one."""

    def __init__(self, club_id: str, expected: int, actual: int):
        self.club_id = club_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Club {club_id} changed concurrently (expected version {expected}, found {actual})")
