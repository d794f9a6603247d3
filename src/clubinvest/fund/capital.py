"""
Capital flows: share issuance on deposit, share burn on withdrawal.

Shares are priced at the current NAV. A deposit issues ``amount / nav``
shares and grows the member's cumulative invested amount. A withdrawal
burns ``amount / nav`` shares and estimates tax on the part of the payout
that exceeds the member's personal average cost.

Known approximation: ``total_invested_fiat`` only ever grows. Withdrawals
do not reduce it, so the personal average cost drifts upwards after
repeated withdrawals.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from loguru import logger

from clubinvest.core.exceptions import InsufficientShares, InsufficientTreasury
from clubinvest.core.types import Numeric

from .checks import require_positive
from .constants import WITHDRAWAL_TAX_RATE
from .models import Club, Member, Transaction, TransactionType


@dataclass(frozen=True)
class CapitalFlowResult:
    """New club and member states after a capital flow, with one entry per member touched."""

    club: Club
    members: list[Member]
    transactions: list[Transaction]

    @property
    def member(self) -> Member:
        """The single member affected (single-member flows only)."""
        if len(self.members) != 1:
            raise ValueError(f"Flow touched {len(self.members)} members, not one")
        return self.members[0]

    @property
    def transaction(self) -> Transaction:
        if len(self.transactions) != 1:
            raise ValueError(f"Flow emitted {len(self.transactions)} transactions, not one")
        return self.transactions[0]


@dataclass(frozen=True)
class WithdrawalTaxBreakdown:
    """How a withdrawal splits into returned capital and taxable gain."""

    shares_to_burn: Decimal
    member_average_cost: Decimal
    capital_portion: Decimal
    gain_portion: Decimal
    tax_estimate: Decimal


def _deposit_member(member: Member, amount: Decimal, shares: Decimal) -> Member:
    return replace(
        member,
        shares_owned=member.shares_owned + shares,
        total_invested_fiat=member.total_invested_fiat + amount,
    )


def _deposit_transaction(club: Club, member: Member, amount: Decimal, shares: Decimal) -> Transaction:
    return Transaction(
        club_id=club.id,
        user_id=member.user_id,
        type=TransactionType.DEPOSIT,
        amount_fiat=amount,
        shares_change=shares,
    )


def execute_deposit(club: Club, member: Member, amount: Numeric, current_nav: Numeric) -> CapitalFlowResult:
    """Credit *amount* from *member* and issue shares at *current_nav*.

    Raises:
        InvalidAmount: amount or NAV is not a positive finite number.
    """
    amount = require_positive("amount", amount)
    nav = require_positive("nav", current_nav)
    shares = amount / nav

    updated_club = replace(
        club,
        cash_balance=club.cash_balance + amount,
        total_shares=club.total_shares + shares,
    )
    logger.debug(f"DEPOSIT {amount} by {member.user_id} in club {club.id}: {shares} shares @ {nav}")
    return CapitalFlowResult(
        club=updated_club,
        members=[_deposit_member(member, amount, shares)],
        transactions=[_deposit_transaction(club, member, amount, shares)],
    )


def execute_collective_deposit(
    club: Club,
    members: Sequence[Member],
    amount_per_member: Numeric,
    current_nav: Numeric,
) -> CapitalFlowResult:
    """Credit the same *amount_per_member* for every member of the club.

    Each member gets ``amount / nav`` shares and their own DEPOSIT entry.
    A club without members is returned unchanged.
    """
    amount = require_positive("amount", amount_per_member)
    nav = require_positive("nav", current_nav)
    if not members:
        return CapitalFlowResult(club=club, members=[], transactions=[])

    shares = amount / nav
    count = len(members)
    updated_club = replace(
        club,
        cash_balance=club.cash_balance + amount * count,
        total_shares=club.total_shares + shares * count,
    )
    logger.debug(f"Collective DEPOSIT {amount} x {count} in club {club.id}: {shares} shares each @ {nav}")
    return CapitalFlowResult(
        club=updated_club,
        members=[_deposit_member(m, amount, shares) for m in members],
        transactions=[_deposit_transaction(club, m, amount, shares) for m in members],
    )


def estimate_withdrawal_tax(member: Member, amount: Numeric, current_nav: Numeric) -> WithdrawalTaxBreakdown:
    """Split a withdrawal of *amount* into capital and gain, and estimate the tax.

    Does not check the member's share count; see execute_withdrawal.
    """
    amount = require_positive("amount", amount)
    nav = require_positive("nav", current_nav)
    shares_to_burn = amount / nav
    average_cost = member.average_cost
    capital = shares_to_burn * average_cost
    gain = amount - capital
    tax = gain * WITHDRAWAL_TAX_RATE if gain > 0 else Decimal(0)
    return WithdrawalTaxBreakdown(
        shares_to_burn=shares_to_burn,
        member_average_cost=average_cost,
        capital_portion=capital,
        gain_portion=gain,
        tax_estimate=tax,
    )


def execute_withdrawal(club: Club, member: Member, amount: Numeric, current_nav: Numeric) -> CapitalFlowResult:
    """Pay *amount* out to *member*, burning shares at *current_nav*.

    The estimated tax is added to the club's liability immediately.

    Raises:
        InvalidAmount: amount or NAV is not a positive finite number.
        InsufficientTreasury: the club holds less cash than *amount*.
        InsufficientShares: the member owns fewer shares than must be burnt.
    """
    amount = require_positive("amount", amount)
    nav = require_positive("nav", current_nav)

    if club.cash_balance < amount:
        raise InsufficientTreasury(requested=amount, available=club.cash_balance)

    breakdown = estimate_withdrawal_tax(member, amount, nav)
    if member.shares_owned < breakdown.shares_to_burn:
        raise InsufficientShares(owned=member.shares_owned, required=breakdown.shares_to_burn)

    updated_club = replace(
        club,
        cash_balance=club.cash_balance - amount,
        total_shares=club.total_shares - breakdown.shares_to_burn,
        tax_liability=club.tax_liability + breakdown.tax_estimate,
    )
    updated_member = replace(member, shares_owned=member.shares_owned - breakdown.shares_to_burn)
    transaction = Transaction(
        club_id=club.id,
        user_id=member.user_id,
        type=TransactionType.WITHDRAWAL,
        amount_fiat=amount,
        shares_change=-breakdown.shares_to_burn,
        tax_estimate=breakdown.tax_estimate,
    )
    logger.debug(
        f"WITHDRAWAL {amount} by {member.user_id} in club {club.id}: "
        f"{breakdown.shares_to_burn} shares burnt, tax {breakdown.tax_estimate}"
    )
    return CapitalFlowResult(club=updated_club, members=[updated_member], transactions=[transaction])
