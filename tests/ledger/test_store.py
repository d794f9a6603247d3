"""Tests for clubinvest.ledger.store."""

import asyncio
import os
import time
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from clubinvest.core.exceptions import (
    ClubNotFound,
    ConcurrencyConflict,
    IntegrityError,
    StorageError,
    StoragePermissionError,
)
from clubinvest.fund.models import NavEntry, Transaction
from clubinvest.ledger.store import ChangeSet, InMemoryLedgerStore, JsonLedgerStore


@pytest.fixture(params=["memory", "json"])
def any_store(request, tmp_dir):
    if request.param == "memory":
        return InMemoryLedgerStore()
    return JsonLedgerStore(base_path=os.path.join(tmp_dir, "ledger"))


@pytest.fixture
def versioned_club(club):
    return replace(club, version=1)


async def _create(store, club, members=()):
    await store.commit(ChangeSet(club=club, expected_version=None, upsert_members=list(members)))


class TestCommit:
    @pytest.mark.asyncio
    async def test_create_and_load(self, any_store, versioned_club, admin, member):
        await _create(any_store, versioned_club, [admin, member])
        ledger = await any_store.load_ledger(versioned_club.id)
        assert ledger.club == versioned_club
        assert ledger.members == [admin, member]
        assert ledger.assets == []

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        with pytest.raises(IntegrityError):
            await _create(any_store, replace(versioned_club, invite_code="ZZZ999"))

    @pytest.mark.asyncio
    async def test_duplicate_invite_code_rejected(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        with pytest.raises(IntegrityError, match="Invite code"):
            await _create(any_store, replace(versioned_club, id="club-2"))

    @pytest.mark.asyncio
    async def test_version_guard(self, any_store, versioned_club, admin):
        await _create(any_store, versioned_club, [admin])
        richer = replace(versioned_club, cash_balance=Decimal("1"), version=2)
        await any_store.commit(ChangeSet(club=richer, expected_version=1))

        stale = replace(versioned_club, cash_balance=Decimal("999"), version=2)
        with pytest.raises(ConcurrencyConflict) as exc_info:
            await any_store.commit(ChangeSet(club=stale, expected_version=1, delete_member_ids=[admin.id]))
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2

        ledger = await any_store.load_ledger(versioned_club.id)
        assert ledger.club.cash_balance == Decimal("1")
        assert ledger.members == [admin]

    @pytest.mark.asyncio
    async def test_commit_unknown_club(self, any_store, versioned_club):
        with pytest.raises(ClubNotFound):
            await any_store.commit(ChangeSet(club=versioned_club, expected_version=1))

    @pytest.mark.asyncio
    async def test_apply_all_parts(self, any_store, versioned_club, admin, member, make_asset):
        apple, msft = make_asset(), make_asset(ticker="MSFT")
        await _create(any_store, versioned_club, [admin, member])
        await any_store.commit(
            ChangeSet(club=replace(versioned_club, version=2), expected_version=1, upsert_assets=[apple, msft])
        )
        grown = replace(apple, quantity=Decimal("20"))
        tx = Transaction(club_id=versioned_club.id, type="BUY", amount_fiat=1000, asset_ticker="AAPL", sequence=1)
        entry = NavEntry(club_id=versioned_club.id, date=date(2026, 1, 2), nav_per_share=100, total_net_assets=10000)
        await any_store.commit(
            ChangeSet(
                club=replace(versioned_club, version=3),
                expected_version=2,
                upsert_members=[replace(member, shares_owned=Decimal("41"))],
                delete_member_ids=[admin.id],
                upsert_assets=[grown],
                delete_asset_ids=[msft.id],
                transactions=[tx],
                nav_entries=[entry],
            )
        )
        ledger = await any_store.load_ledger(versioned_club.id)
        assert ledger.club.version == 3
        assert [m.shares_owned for m in ledger.members] == [Decimal("41")]
        assert ledger.assets == [grown]
        assert ledger.transactions == [tx]
        assert ledger.nav_history == [entry]


class TestReads:
    @pytest.mark.asyncio
    async def test_missing_club(self, any_store):
        with pytest.raises(ClubNotFound):
            await any_store.load_club("nope")

    @pytest.mark.asyncio
    async def test_find_by_invite_code(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        found = await any_store.find_club_by_invite_code("ABC234")
        assert found.id == versioned_club.id
        assert await any_store.find_club_by_invite_code("XXXXXX") is None

    @pytest.mark.asyncio
    async def test_transactions_in_sequence_order(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        for seq in (3, 1, 2):
            await any_store.append_transaction(
                Transaction(club_id=versioned_club.id, type="DEPOSIT", amount_fiat=seq, sequence=seq)
            )
        assert [t.sequence for t in await any_store.load_transactions(versioned_club.id)] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_nav_history_by_date(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        for day in (date(2026, 2, 1), date(2026, 1, 1)):
            await any_store.append_nav_entry(
                NavEntry(club_id=versioned_club.id, date=day, nav_per_share=100, total_net_assets=1)
            )
        history = await any_store.load_nav_history(versioned_club.id)
        assert [n.date for n in history] == [date(2026, 1, 1), date(2026, 2, 1)]


class TestPrimitives:
    @pytest.mark.asyncio
    async def test_member_upsert_and_delete(self, any_store, versioned_club, admin, member):
        await _create(any_store, versioned_club, [admin])
        await any_store.upsert_member(member)
        await any_store.upsert_member(replace(member, full_name="Robert"))
        members = await any_store.load_members(versioned_club.id)
        assert [m.full_name for m in members] == ["Alice", "Robert"]

        await any_store.delete_member(versioned_club.id, admin.id)
        assert [m.id for m in await any_store.load_members(versioned_club.id)] == [member.id]

    @pytest.mark.asyncio
    async def test_asset_upsert_and_delete(self, any_store, versioned_club, make_asset):
        await _create(any_store, versioned_club)
        asset = make_asset()
        await any_store.upsert_asset(asset)
        assert await any_store.load_assets(versioned_club.id) == [asset]
        await any_store.delete_asset(versioned_club.id, asset.id)
        assert await any_store.load_assets(versioned_club.id) == []

    @pytest.mark.asyncio
    async def test_save_club(self, any_store, versioned_club):
        await _create(any_store, versioned_club)
        await any_store.save_club(replace(versioned_club, linked_bank="Boursorama"))
        assert (await any_store.load_club(versioned_club.id)).linked_bank == "Boursorama"


class TestInMemoryLedgerStore:
    @pytest.mark.asyncio
    async def test_reads_are_isolated(self, versioned_club, admin):
        store = InMemoryLedgerStore()
        await _create(store, versioned_club, [admin])
        members = await store.load_members(versioned_club.id)
        members.clear()
        assert len(await store.load_members(versioned_club.id)) == 1


class TestJsonLedgerStore:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_dir, versioned_club, admin):
        base = os.path.join(tmp_dir, "ledger")
        await _create(JsonLedgerStore(base_path=base), versioned_club, [admin])

        reopened = JsonLedgerStore(base_path=base)
        ledger = await reopened.load_ledger(versioned_club.id)
        assert ledger.club == versioned_club
        assert ledger.members == [admin]
        assert isinstance(ledger.club.cash_balance, Decimal)

    @pytest.mark.asyncio
    async def test_no_temp_file_left(self, tmp_dir, versioned_club):
        store = JsonLedgerStore(base_path=tmp_dir)
        await _create(store, versioned_club)
        assert sorted(os.listdir(store.clubs_dir)) == ["club-1.json"]

    @pytest.mark.parametrize("club_id", ["", "../escape", "a/b", ".hidden", "a\\b"])
    def test_unsafe_ids_rejected(self, tmp_dir, club_id):
        store = JsonLedgerStore(base_path=tmp_dir)
        with pytest.raises(StoragePermissionError):
            store._get_full_path(club_id)

    @pytest.mark.asyncio
    async def test_corrupt_document(self, tmp_dir):
        store = JsonLedgerStore(base_path=tmp_dir)
        (store.clubs_dir / "broken.json").write_text("{not json")
        with pytest.raises(StorageError, match="Corrupt"):
            await store.load_ledger("broken")


class TestJsonLedgerStoreLocking:
    """Two stores over one directory stand in for two processes."""

    @pytest.mark.asyncio
    async def test_concurrent_commits_on_same_version(self, tmp_dir, versioned_club):
        base = os.path.join(tmp_dir, "ledger")
        await _create(JsonLedgerStore(base_path=base), versioned_club)
        first, second = JsonLedgerStore(base_path=base), JsonLedgerStore(base_path=base)

        one = replace(versioned_club, cash_balance=Decimal("1"), version=2)
        two = replace(versioned_club, cash_balance=Decimal("2"), version=2)
        results = await asyncio.gather(
            first.commit(ChangeSet(club=one, expected_version=1)),
            second.commit(ChangeSet(club=two, expected_version=1)),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, ConcurrencyConflict)]
        assert len(conflicts) == 1
        assert results.count(None) == 1

        ledger = await JsonLedgerStore(base_path=base).load_ledger(versioned_club.id)
        assert ledger.club.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_from_other_store(self, tmp_dir, versioned_club):
        base = os.path.join(tmp_dir, "ledger")
        first, second = JsonLedgerStore(base_path=base), JsonLedgerStore(base_path=base)
        await _create(first, versioned_club)
        await first.commit(ChangeSet(club=replace(versioned_club, version=2), expected_version=1))

        with pytest.raises(ConcurrencyConflict):
            await second.commit(ChangeSet(club=replace(versioned_club, version=2), expected_version=1))

    @pytest.mark.asyncio
    async def test_lock_released_after_commit(self, tmp_dir, versioned_club):
        store = JsonLedgerStore(base_path=tmp_dir)
        await _create(store, versioned_club)
        await store.commit(ChangeSet(club=replace(versioned_club, version=2), expected_version=1))
        assert os.listdir(store.locks_dir) == []

    @pytest.mark.asyncio
    async def test_lock_released_after_conflict(self, tmp_dir, versioned_club):
        store = JsonLedgerStore(base_path=tmp_dir)
        await _create(store, versioned_club)
        with pytest.raises(ConcurrencyConflict):
            await store.commit(ChangeSet(club=replace(versioned_club, version=5), expected_version=4))
        assert os.listdir(store.locks_dir) == []

    @pytest.mark.asyncio
    async def test_held_lock_times_out(self, tmp_dir, versioned_club):
        store = JsonLedgerStore(base_path=tmp_dir, lock_timeout=0.05)
        await _create(store, versioned_club)
        (store.locks_dir / "club-1.lock").write_text("12345")

        with pytest.raises(StorageError, match="Timed out"):
            await store.commit(ChangeSet(club=replace(versioned_club, version=2), expected_version=1))
        assert (await store.load_club(versioned_club.id)).version == 1

    @pytest.mark.asyncio
    async def test_stale_lock_is_broken(self, tmp_dir, versioned_club):
        store = JsonLedgerStore(base_path=tmp_dir, lock_timeout=0.05, stale_lock_after=30)
        await _create(store, versioned_club)
        lock = store.locks_dir / "club-1.lock"
        lock.write_text("12345")
        old = time.time() - 60
        os.utime(lock, (old, old))

        await store.commit(ChangeSet(club=replace(versioned_club, version=2), expected_version=1))
        assert (await store.load_club(versioned_club.id)).version == 2
        assert not lock.exists()
