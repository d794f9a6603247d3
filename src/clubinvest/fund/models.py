"""Core ledger records.

Club is the root; members, assets, transactions and NAV entries each refer
to their club by id and own nothing themselves. Every record is frozen:
engine operations return new instances (``dataclasses.replace``) rather
than mutating what they were given.

Monetary and quantity fields are Decimal. Plain ints, floats and strings
are accepted and coerced on construction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum

from clubinvest.core.exceptions import InvalidName

from .currency import Currency


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _coerce(record, *field_names: str) -> None:
    """Coerce the named fields of a frozen dataclass to Decimal in place."""
    for name in field_names:
        val = getattr(record, name)
        if val is not None and not isinstance(val, Decimal):
            object.__setattr__(record, name, _to_decimal(val))


class Role(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class TransactionType(StrEnum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Club:
    """A pooled fund.

    Attributes:
        id: Unique identifier.
        name: Display name.
        invite_code: Code members use to join.
        currency: Settlement currency; all cash figures are in it.
        cash_balance: Uninvested cash.
        total_shares: Shares outstanding (sum of members' shares_owned).
        tax_liability: Provision for tax accrued on gains. Never decreases.
        linked_bank: Label of a connected external bank, if any.
        version: Bumped on every committed mutation; stores reject stale writes.
    """

    id: str
    name: str
    invite_code: str
    currency: Currency = Currency.EUR
    cash_balance: Decimal = Decimal(0)
    total_shares: Decimal = Decimal(0)
    tax_liability: Decimal = Decimal(0)
    linked_bank: str | None = None
    version: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        _coerce(self, "cash_balance", "total_shares", "tax_liability")
        object.__setattr__(self, "currency", Currency(self.currency))
        if not self.name.strip():
            raise InvalidName("Club name cannot be empty")


@dataclass(frozen=True)
class Member:
    """A participant's stake in one club."""

    id: str
    user_id: str
    club_id: str
    full_name: str = ""
    role: Role = Role.MEMBER
    shares_owned: Decimal = Decimal(0)
    total_invested_fiat: Decimal = Decimal(0)
    joined_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        _coerce(self, "shares_owned", "total_invested_fiat")
        object.__setattr__(self, "role", Role(self.role))

    @property
    def average_cost(self) -> Decimal:
        """Personal average cost per share (0 while no shares are held)."""
        if self.shares_owned == 0:
            return Decimal(0)
        return self.total_invested_fiat / self.shares_owned

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Asset:
    """A holding of one ticker. Prices are in the asset's own currency."""

    id: str
    club_id: str
    ticker: str
    quantity: Decimal
    avg_buy_price: Decimal
    currency: Currency = Currency.USD

    def __post_init__(self):
        _coerce(self, "quantity", "avg_buy_price")
        object.__setattr__(self, "currency", Currency(self.currency))

    @property
    def cost_basis(self) -> Decimal:
        """Acquisition cost of the whole position, native currency."""
        return self.quantity * self.avg_buy_price


@dataclass(frozen=True)
class Transaction:
    """Append-only ledger event. ``amount_fiat`` is in the club's currency."""

    club_id: str
    type: TransactionType
    amount_fiat: Decimal
    user_id: str | None = None
    shares_change: Decimal = Decimal(0)
    asset_ticker: str | None = None
    price_at_transaction: Decimal | None = None
    realized_gain: Decimal | None = None
    tax_estimate: Decimal | None = None
    sequence: int = 0
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        _coerce(self, "amount_fiat", "shares_change", "price_at_transaction", "realized_gain", "tax_estimate")
        object.__setattr__(self, "type", TransactionType(self.type))


@dataclass(frozen=True)
class NavEntry:
    """A frozen point of the NAV history."""

    club_id: str
    date: date
    nav_per_share: Decimal
    total_net_assets: Decimal
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        _coerce(self, "nav_per_share", "total_net_assets")


@dataclass(frozen=True)
class PortfolioSummary:
    """Valuation of a club at given prices.

    Money figures are rounded to 2 places, ``nav_per_share`` to 4.
    ``variation_percent`` is the latent P/L relative to cost basis.
    """

    total_net_assets: Decimal
    nav_per_share: Decimal
    total_latent_pl: Decimal
    variation_percent: Decimal
    total_shares: Decimal
    total_tax_liability: Decimal
    cash_balance: Decimal
