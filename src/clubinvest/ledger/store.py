"""
Ledger persistence.

A store keeps, per club, the club record plus its members, holdings,
transaction log and NAV history. Engines never touch a store; the club
service loads a snapshot, runs a pure engine operation and hands the
outcome back as a single ChangeSet.

``commit`` applies a ChangeSet atomically and only if the stored club
version still equals ``expected_version``; otherwise it raises
ConcurrencyConflict and writes nothing. The read, the version check and
the write happen under one exclusive guard, which for JsonLedgerStore is a
lock file shared by every process using the same directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field, replace
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from clubinvest.core.exceptions import (
    ClubNotFound,
    ConcurrencyConflict,
    IntegrityError,
    StorageError,
    StoragePermissionError,
)
from clubinvest.fund.models import Asset, Club, Member, NavEntry, Transaction

from . import codec

# Lock name serializing club creation (never a valid club id)
CREATE_LOCK_NAME = ".create"


@dataclass
class ClubLedger:
    """Everything stored for one club."""

    club: Club
    members: list[Member] = field(default_factory=list)
    assets: list[Asset] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    nav_history: list[NavEntry] = field(default_factory=list)

    def copy(self) -> ClubLedger:
        # Records are frozen; only the containers need copying
        return ClubLedger(
            club=self.club,
            members=list(self.members),
            assets=list(self.assets),
            transactions=list(self.transactions),
            nav_history=list(self.nav_history),
        )

    def to_dict(self) -> dict:
        return {
            "club": codec.encode(self.club),
            "members": [codec.encode(m) for m in self.members],
            "assets": [codec.encode(a) for a in self.assets],
            "transactions": [codec.encode(t) for t in self.transactions],
            "nav_history": [codec.encode(n) for n in self.nav_history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ClubLedger:
        return cls(
            club=codec.decode_club(data["club"]),
            members=[codec.decode_member(m) for m in data.get("members", [])],
            assets=[codec.decode_asset(a) for a in data.get("assets", [])],
            transactions=[codec.decode_transaction(t) for t in data.get("transactions", [])],
            nav_history=[codec.decode_nav_entry(n) for n in data.get("nav_history", [])],
        )


@dataclass
class ChangeSet:
    """All writes produced by one accepted operation.

    Attributes:
        club: New club record. Its ``version`` is what gets stored.
        expected_version: Version the change was computed from. None means
            the club is being created and must not exist yet.
    """

    club: Club
    expected_version: int | None
    upsert_members: list[Member] = field(default_factory=list)
    delete_member_ids: list[str] = field(default_factory=list)
    upsert_assets: list[Asset] = field(default_factory=list)
    delete_asset_ids: list[str] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    nav_entries: list[NavEntry] = field(default_factory=list)


def _upsert(records: list, record) -> list:
    for i, existing in enumerate(records):
        if existing.id == record.id:
            records[i] = record
            return records
    records.append(record)
    return records


def _apply(ledger: ClubLedger, change: ChangeSet) -> ClubLedger:
    ledger.club = change.club
    for member in change.upsert_members:
        _upsert(ledger.members, member)
    if change.delete_member_ids:
        ledger.members = [m for m in ledger.members if m.id not in change.delete_member_ids]
    for asset in change.upsert_assets:
        _upsert(ledger.assets, asset)
    if change.delete_asset_ids:
        ledger.assets = [a for a in ledger.assets if a.id not in change.delete_asset_ids]
    ledger.transactions.extend(change.transactions)
    ledger.nav_history.extend(change.nav_entries)
    return ledger


class LedgerStore(ABC):
    """Abstract base class for ledger stores.

    Subclasses provide document-level reads and writes; this class builds
    the record-level interface and the guarded commit on top of them.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()

    # -- backend hooks -------------------------------------------------------

    @abstractmethod
    async def _read(self, club_id: str) -> ClubLedger | None:
        """Return the stored ledger for *club_id*, or None."""

    @abstractmethod
    async def _write(self, ledger: ClubLedger) -> None:
        """Replace the stored ledger for ``ledger.club.id`` in one step."""

    @abstractmethod
    async def _club_ids(self) -> list[str]:
        """Ids of every stored club."""

    # -- reads ---------------------------------------------------------------

    async def load_ledger(self, club_id: str) -> ClubLedger:
        ledger = await self._read(club_id)
        if ledger is None:
            raise ClubNotFound(f"Club not found: {club_id}")
        return ledger

    async def load_club(self, club_id: str) -> Club:
        return (await self.load_ledger(club_id)).club

    async def load_members(self, club_id: str) -> list[Member]:
        return (await self.load_ledger(club_id)).members

    async def load_assets(self, club_id: str) -> list[Asset]:
        return (await self.load_ledger(club_id)).assets

    async def load_transactions(self, club_id: str) -> list[Transaction]:
        """Transactions in acceptance order."""
        return sorted((await self.load_ledger(club_id)).transactions, key=lambda t: t.sequence)

    async def load_nav_history(self, club_id: str) -> list[NavEntry]:
        """NAV entries ordered by date; same-day entries keep insertion order."""
        return sorted((await self.load_ledger(club_id)).nav_history, key=lambda n: n.date)

    async def find_club_by_invite_code(self, invite_code: str) -> Club | None:
        for club_id in await self._club_ids():
            ledger = await self._read(club_id)
            if ledger is not None and ledger.club.invite_code == invite_code:
                return ledger.club
        return None

    # -- writes --------------------------------------------------------------

    def _exclusive(self, name: str) -> AbstractAsyncContextManager:
        """Guard held across read, version check and write of *name*.

        Process-local stores are fully covered by the asyncio locks. Stores
        shared between processes override this with an inter-process lock.
        """
        return contextlib.nullcontext()

    def _lock_for(self, club_id: str) -> asyncio.Lock:
        if club_id not in self._locks:
            self._locks[club_id] = asyncio.Lock()
        return self._locks[club_id]

    async def commit(self, change: ChangeSet) -> None:
        """Apply *change* atomically.

        Raises:
            ConcurrencyConflict: The stored version differs from ``expected_version``.
            IntegrityError: A new club reuses an existing id or invite code.
            StorageError: The backend failed; nothing was written.
        """
        club_id = change.club.id
        if change.expected_version is None:
            async with self._create_lock, self._exclusive(CREATE_LOCK_NAME):
                if await self._read(club_id) is not None:
                    raise IntegrityError(f"Club already exists: {club_id}")
                if await self.find_club_by_invite_code(change.club.invite_code) is not None:
                    raise IntegrityError(f"Invite code already in use: {change.club.invite_code}")
                await self._write(_apply(ClubLedger(club=change.club), change))
            return

        async with self._lock_for(club_id), self._exclusive(club_id):
            current = await self._read(club_id)
            if current is None:
                raise ClubNotFound(f"Club not found: {club_id}")
            if current.club.version != change.expected_version:
                raise ConcurrencyConflict(club_id, change.expected_version, current.club.version)
            await self._write(_apply(current.copy(), change))

    async def _mutate(self, club_id: str, fn: Callable[[ClubLedger], ClubLedger]) -> None:
        async with self._lock_for(club_id), self._exclusive(club_id):
            await self._write(fn((await self.load_ledger(club_id)).copy()))

    async def save_club(self, club: Club) -> None:
        """Overwrite the club record without a version check."""

        def _set(ledger: ClubLedger) -> ClubLedger:
            ledger.club = club
            return ledger

        await self._mutate(club.id, _set)

    async def upsert_member(self, member: Member) -> None:
        await self._mutate(member.club_id, lambda ledger: replace(ledger, members=_upsert(ledger.members, member)))

    async def delete_member(self, club_id: str, member_id: str) -> None:
        await self._mutate(
            club_id, lambda ledger: replace(ledger, members=[m for m in ledger.members if m.id != member_id])
        )

    async def upsert_asset(self, asset: Asset) -> None:
        await self._mutate(asset.club_id, lambda ledger: replace(ledger, assets=_upsert(ledger.assets, asset)))

    async def delete_asset(self, club_id: str, asset_id: str) -> None:
        await self._mutate(
            club_id, lambda ledger: replace(ledger, assets=[a for a in ledger.assets if a.id != asset_id])
        )

    async def append_transaction(self, transaction: Transaction) -> None:
        await self._mutate(
            transaction.club_id, lambda ledger: replace(ledger, transactions=[*ledger.transactions, transaction])
        )

    async def append_nav_entry(self, entry: NavEntry) -> None:
        await self._mutate(entry.club_id, lambda ledger: replace(ledger, nav_history=[*ledger.nav_history, entry]))


class InMemoryLedgerStore(LedgerStore):
    """Process-local store, used by tests and one-shot tooling."""

    def __init__(self):
        super().__init__()
        self._ledgers: dict[str, ClubLedger] = {}

    async def _read(self, club_id: str) -> ClubLedger | None:
        ledger = self._ledgers.get(club_id)
        return ledger.copy() if ledger is not None else None

    async def _write(self, ledger: ClubLedger) -> None:
        self._ledgers[ledger.club.id] = ledger.copy()

    async def _club_ids(self) -> list[str]:
        return list(self._ledgers)


class JsonLedgerStore(LedgerStore):
    """One JSON document per club under ``base_path/clubs``.

    Writes go to a temporary file that is then renamed over the document,
    so a reader sees either the old or the new ledger, never a mix.

    Every read-check-write holds ``base_path/locks/<club id>.lock``, created
    with ``O_CREAT | O_EXCL``, so separate processes sharing the directory
    (e.g. two CLI invocations) cannot both commit against the same version.
    A lock file older than ``stale_lock_after`` seconds is assumed to belong
    to a crashed process and is broken.
    """

    def __init__(
        self,
        base_path: str = "~/.clubinvest-data/ledger",
        lock_timeout: float = 10.0,
        stale_lock_after: float = 60.0,
        poll_interval: float = 0.02,
    ):
        super().__init__()
        self.base_path = Path(base_path).expanduser().resolve()
        self.clubs_dir = self.base_path / "clubs"
        self.locks_dir = self.base_path / "locks"
        self.clubs_dir.mkdir(parents=True, exist_ok=True)
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        self.lock_timeout = lock_timeout
        self.stale_lock_after = stale_lock_after
        self.poll_interval = poll_interval

    def _lock_path(self, name: str) -> Path:
        if name != CREATE_LOCK_NAME:
            self._get_full_path(name)
        return self.locks_dir / f"{name.strip()}.lock"

    def _break_if_stale(self, path: Path) -> bool:
        """Remove *path* if its holder looks dead. True means "try again now"."""
        try:
            age = time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < self.stale_lock_after:
            return False
        logger.warning(f"Breaking stale ledger lock {path} ({age:.0f}s old)")
        path.unlink(missing_ok=True)
        return True

    @contextlib.asynccontextmanager
    async def _exclusive(self, name: str) -> AsyncIterator[None]:
        path = self._lock_path(name)
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._break_if_stale(path):
                    continue
                if time.monotonic() >= deadline:
                    raise StorageError(
                        f"Timed out after {self.lock_timeout}s waiting for {path}; "
                        "remove it if no other clubinvest process is running"
                    ) from None
                await asyncio.sleep(self.poll_interval)
                continue
            except PermissionError as e:
                raise StoragePermissionError(f"Cannot create lock {path}: {e}") from e
            except OSError as e:
                raise StorageError(f"Cannot create lock {path}: {e}") from e
            break

        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        try:
            yield
        finally:
            path.unlink(missing_ok=True)

    def _get_full_path(self, club_id: str) -> Path:
        """Resolve a club id to its document path, rejecting ids that could escape ``clubs_dir``."""
        raw = club_id.strip()
        if not raw:
            raise StoragePermissionError("Club id cannot be empty.")
        if "\x00" in raw or "/" in raw or "\\" in raw or raw.startswith("."):
            raise StoragePermissionError(f"Unsafe club id '{club_id}'.")
        return self.clubs_dir / f"{raw}.json"

    async def _read(self, club_id: str) -> ClubLedger | None:
        path = self._get_full_path(club_id)
        if not path.exists():
            return None
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot read {path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        try:
            return ClubLedger.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt ledger document {path}: {e}") from e

    async def _write(self, ledger: ClubLedger) -> None:
        path = self._get_full_path(ledger.club.id)
        tmp_path = path.with_suffix(".json.tmp")
        payload = json.dumps(ledger.to_dict(), indent=2, sort_keys=True)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, path)
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot write to {path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot write to {path}: {e}") from e
        logger.debug(f"Wrote ledger for club {ledger.club.id} (version {ledger.club.version})")

    async def _club_ids(self) -> list[str]:
        return sorted(p.stem for p in self.clubs_dir.glob("*.json"))
