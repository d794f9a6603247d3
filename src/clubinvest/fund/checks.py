"""Input validation shared by the engines."""

from decimal import Decimal, InvalidOperation

from clubinvest.core.exceptions import InvalidAmount, InvalidTicker
from clubinvest.core.types import Numeric


def require_positive(field: str, value: Numeric) -> Decimal:
    """Return *value* as a Decimal, or raise InvalidAmount unless it is finite and > 0."""
    if isinstance(value, bool):
        raise InvalidAmount(field, value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(field, value) from e
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(field, value)
    return amount


def normalize_ticker(ticker: str) -> str:
    symbol = (ticker or "").strip().upper()
    if not symbol:
        raise InvalidTicker("Ticker cannot be empty")
    return symbol
