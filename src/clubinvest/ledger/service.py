"""
Club service, the single writer for each club.

Every mutating operation on a club runs under that club's lock: load the
current ledger, run the pure engine operation, stamp the new state with
the next version and transaction sequence numbers, then commit everything
as one ChangeSet. Two operations on the same club therefore never
interleave. Writers in other processes are caught by the store's
version check, and the losing operation is re-run on the fresh ledger.

Deposits and withdrawals are priced at the NAV computed from the same
snapshot they are applied to.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import date, datetime
from typing import TypeVar

from loguru import logger

from clubinvest.core.exceptions import (
    ClubNotFound,
    ConcurrencyConflict,
    IntegrityError,
    MemberNotFound,
    MembershipError,
)
from clubinvest.core.types import Numeric, PriceMap
from clubinvest.fund.capital import (
    CapitalFlowResult,
    execute_collective_deposit,
    execute_deposit,
    execute_withdrawal,
)
from clubinvest.fund.currency import Currency, CurrencyConverter, get_default_converter
from clubinvest.fund.invite import generate_invite_code, normalize_invite_code
from clubinvest.fund.models import Club, Member, NavEntry, PortfolioSummary, Role, Transaction, _new_id
from clubinvest.fund.orders import OrderResult, execute_buy, execute_sell
from clubinvest.fund.snapshot import ChartRange, NavPoint, build_nav_history, create_nav_snapshot
from clubinvest.fund.valuation import calculate_portfolio_summary, effective_nav

from .store import ChangeSet, ClubLedger, LedgerStore

ALL_MEMBERS = "ALL"

T = TypeVar("T")


def _stamp(ledger: ClubLedger, club: Club, transactions: list[Transaction]) -> tuple[Club, list[Transaction]]:
    """Bump the club version and number *transactions* after the last accepted one."""
    last = max((t.sequence for t in ledger.transactions), default=0)
    numbered = [replace(t, sequence=last + i) for i, t in enumerate(transactions, start=1)]
    return replace(club, version=ledger.club.version + 1), numbered


def _find_member(ledger: ClubLedger, member_id: str) -> Member:
    for member in ledger.members:
        if member.id == member_id:
            return member
    raise MemberNotFound(f"Member {member_id} is not part of club {ledger.club.id}")


class ClubService:
    """Async facade over a LedgerStore that serializes writes per club.

    Within one process, writes to a club queue on the club's lock. A writer
    in another process can still commit first; the store then raises
    ConcurrencyConflict and the operation is re-run against the fresh
    ledger, up to ``max_attempts`` times.
    """

    def __init__(self, store: LedgerStore, converter: CurrencyConverter | None = None, max_attempts: int = 3):
        self.store = store
        self.converter = converter or get_default_converter()
        self.max_attempts = max_attempts
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, club_id: str) -> asyncio.Lock:
        if club_id not in self._locks:
            self._locks[club_id] = asyncio.Lock()
        return self._locks[club_id]

    def _summary(self, ledger: ClubLedger, prices: PriceMap | None) -> PortfolioSummary:
        return calculate_portfolio_summary(ledger.club, ledger.assets, prices or {}, converter=self.converter)

    async def _serialized(self, club_id: str, operation: Callable[[ClubLedger], Awaitable[T]]) -> T:
        """Run *operation* on a freshly loaded ledger under the club lock."""
        async with self._lock(club_id):
            attempt = 1
            while True:
                ledger = await self.store.load_ledger(club_id)
                try:
                    return await operation(ledger)
                except ConcurrencyConflict as e:
                    if attempt >= self.max_attempts:
                        raise
                    logger.warning(f"{e}; retrying ({attempt}/{self.max_attempts})")
                    attempt += 1

    async def _commit(self, ledger: ClubLedger, club: Club, **changes) -> Club:
        """Commit *changes* with *club* stamped as the next version. Returns the stored club."""
        new_club, _ = _stamp(ledger, club, [])
        await self.store.commit(ChangeSet(club=new_club, expected_version=ledger.club.version, **changes))
        return new_club

    # -- membership ----------------------------------------------------------

    async def create_club(
        self,
        name: str,
        admin_user_id: str,
        admin_name: str = "",
        currency: Currency | str = Currency.EUR,
        max_attempts: int = 5,
    ) -> tuple[Club, Member]:
        """Create a club with its founding admin.

        Retries with a fresh invite code when the generated one is taken.
        """
        club_id = _new_id()
        for attempt in range(1, max_attempts + 1):
            club = Club(id=club_id, name=name, invite_code=generate_invite_code(), currency=currency, version=1)
            admin = Member(
                id=_new_id(), user_id=admin_user_id, club_id=club_id, full_name=admin_name, role=Role.ADMIN
            )
            try:
                await self.store.commit(ChangeSet(club=club, expected_version=None, upsert_members=[admin]))
            except IntegrityError as e:
                logger.warning(f"Club creation attempt {attempt}/{max_attempts} rejected: {e}")
                continue
            logger.info(f"Created club {club.name!r} ({club.id}) with invite code {club.invite_code}")
            return club, admin
        raise IntegrityError(f"Could not allocate a unique invite code after {max_attempts} attempts")

    async def join_club(self, invite_code: str, user_id: str, full_name: str = "") -> Member:
        code = normalize_invite_code(invite_code)
        club = await self.store.find_club_by_invite_code(code)
        if club is None:
            raise ClubNotFound(f"Invalid invite code: {code}")

        async def _join(ledger: ClubLedger) -> Member:
            if any(m.user_id == user_id for m in ledger.members):
                raise MembershipError(f"User {user_id} is already a member of {ledger.club.name}")
            member = Member(id=_new_id(), user_id=user_id, club_id=club.id, full_name=full_name)
            await self._commit(ledger, ledger.club, upsert_members=[member])
            return member

        member = await self._serialized(club.id, _join)
        logger.info(f"User {user_id} joined club {club.id}")
        return member

    async def remove_member(self, club_id: str, member_id: str, acting_user_id: str) -> None:
        """Remove a member who no longer holds shares.

        A member with shares cannot be removed: their shares would vanish
        from the register while still counting in ``total_shares``.
        """

        async def _remove(ledger: ClubLedger) -> None:
            member = _find_member(ledger, member_id)
            if member.user_id == acting_user_id:
                raise MembershipError("A member cannot remove themselves")
            if member.shares_owned > 0:
                raise MembershipError(
                    f"Member {member_id} still owns {member.shares_owned:.4f} shares; withdraw them first"
                )
            await self._commit(ledger, ledger.club, delete_member_ids=[member_id])

        await self._serialized(club_id, _remove)
        logger.info(f"Removed member {member_id} from club {club_id}")

    async def link_bank(self, club_id: str, bank_name: str) -> Club:
        async def _link(ledger: ClubLedger) -> Club:
            return await self._commit(ledger, replace(ledger.club, linked_bank=bank_name))

        return await self._serialized(club_id, _link)

    # -- valuation -----------------------------------------------------------

    async def portfolio_summary(self, club_id: str, prices: PriceMap | None = None) -> PortfolioSummary:
        return self._summary(await self.store.load_ledger(club_id), prices)

    async def nav_history(
        self,
        club_id: str,
        prices: PriceMap | None = None,
        chart_range: ChartRange | str = ChartRange.MAX,
        now: datetime | None = None,
    ) -> list[NavPoint]:
        ledger = await self.store.load_ledger(club_id)
        history = sorted(ledger.nav_history, key=lambda n: n.date)
        return build_nav_history(history, self._summary(ledger, prices), chart_range=chart_range, now=now)

    async def freeze_nav(self, club_id: str, prices: PriceMap | None = None, today: date | None = None) -> NavEntry:
        """Append a snapshot of the current NAV to the club's history."""

        async def _freeze(ledger: ClubLedger) -> NavEntry:
            entry = create_nav_snapshot(club_id, self._summary(ledger, prices), today=today)
            await self._commit(ledger, ledger.club, nav_entries=[entry])
            return entry

        entry = await self._serialized(club_id, _freeze)
        logger.info(f"Froze NAV {entry.nav_per_share} for club {club_id} on {entry.date}")
        return entry

    # -- capital flows -------------------------------------------------------

    async def _commit_flow(self, ledger: ClubLedger, result: CapitalFlowResult) -> CapitalFlowResult:
        new_club, transactions = _stamp(ledger, result.club, result.transactions)
        await self.store.commit(
            ChangeSet(
                club=new_club,
                expected_version=ledger.club.version,
                upsert_members=result.members,
                transactions=transactions,
            )
        )
        return CapitalFlowResult(club=new_club, members=result.members, transactions=transactions)

    async def deposit(
        self,
        club_id: str,
        member_id: str,
        amount: Numeric,
        prices: PriceMap | None = None,
    ) -> CapitalFlowResult:
        """Deposit *amount* for one member, or for every member when *member_id* is ALL_MEMBERS."""

        async def _deposit(ledger: ClubLedger) -> CapitalFlowResult:
            nav = effective_nav(self._summary(ledger, prices))
            if member_id == ALL_MEMBERS:
                result = execute_collective_deposit(ledger.club, ledger.members, amount, nav)
                if not result.members:
                    logger.info(f"Collective deposit on club {club_id} with no members; nothing to do")
                    return result
            else:
                result = execute_deposit(ledger.club, _find_member(ledger, member_id), amount, nav)
            return await self._commit_flow(ledger, result)

        committed = await self._serialized(club_id, _deposit)
        logger.info(f"Deposit of {amount} accepted on club {club_id} ({len(committed.transactions)} entries)")
        return committed

    async def withdraw(
        self,
        club_id: str,
        member_id: str,
        amount: Numeric,
        prices: PriceMap | None = None,
    ) -> CapitalFlowResult:
        async def _withdraw(ledger: ClubLedger) -> CapitalFlowResult:
            nav = effective_nav(self._summary(ledger, prices))
            result = execute_withdrawal(ledger.club, _find_member(ledger, member_id), amount, nav)
            return await self._commit_flow(ledger, result)

        committed = await self._serialized(club_id, _withdraw)
        logger.info(f"Withdrawal of {amount} accepted on club {club_id}")
        return committed

    # -- orders --------------------------------------------------------------

    async def _trade(self, engine, club_id: str, acting_member_id: str, *args) -> OrderResult:
        async def _execute(ledger: ClubLedger) -> OrderResult:
            actor = _find_member(ledger, acting_member_id)
            if not actor.is_admin:
                raise MembershipError(f"Only an admin can place orders (member {acting_member_id} is not)")
            result: OrderResult = engine(ledger.club, ledger.assets, *args, actor, converter=self.converter)

            kept_ids = {a.id for a in result.assets}
            new_club, transactions = _stamp(ledger, result.club, [result.transaction])
            await self.store.commit(
                ChangeSet(
                    club=new_club,
                    expected_version=ledger.club.version,
                    upsert_assets=[a for a in result.assets if a not in ledger.assets],
                    delete_asset_ids=[a.id for a in ledger.assets if a.id not in kept_ids],
                    transactions=transactions,
                )
            )
            return OrderResult(club=new_club, assets=result.assets, transaction=transactions[0])

        return await self._serialized(club_id, _execute)

    async def buy(
        self,
        club_id: str,
        acting_member_id: str,
        ticker: str,
        quantity: Numeric,
        price_per_share: Numeric,
        price_currency: Currency | str = Currency.USD,
    ) -> OrderResult:
        result = await self._trade(
            execute_buy, club_id, acting_member_id, ticker, quantity, price_per_share, price_currency
        )
        logger.info(f"Buy of {quantity} {ticker} accepted on club {club_id}")
        return result

    async def sell(
        self,
        club_id: str,
        acting_member_id: str,
        ticker: str,
        quantity: Numeric,
        price_per_share: Numeric,
        price_currency: Currency | str = Currency.USD,
    ) -> OrderResult:
        result = await self._trade(
            execute_sell, club_id, acting_member_id, ticker, quantity, price_per_share, price_currency
        )
        logger.info(f"Sell of {quantity} {ticker} accepted on club {club_id}")
        return result

    async def transactions(self, club_id: str) -> list[Transaction]:
        return await self.store.load_transactions(club_id)
