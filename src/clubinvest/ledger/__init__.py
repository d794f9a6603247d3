"""Ledger persistence and the per-club serialized service."""

from .service import ALL_MEMBERS, ClubService
from .store import ChangeSet, ClubLedger, InMemoryLedgerStore, JsonLedgerStore, LedgerStore

__all__ = [
    "ALL_MEMBERS",
    "ChangeSet",
    "ClubLedger",
    "ClubService",
    "InMemoryLedgerStore",
    "JsonLedgerStore",
    "LedgerStore",
]
