"""JSON-friendly encoding of ledger records.

Decimals are stored as strings so no precision is lost on the round trip;
datetimes and dates use ISO-8601.
"""

from __future__ import annotations

from dataclasses import fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from clubinvest.fund.models import Asset, Club, Member, NavEntry, Transaction


def _encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def encode(record) -> dict[str, Any]:
    """Flatten a ledger record into a JSON-serializable dict."""
    return {f.name: _encode_value(getattr(record, f.name)) for f in fields(record)}


def _with_datetime(data: dict[str, Any], key: str) -> dict[str, Any]:
    """Copy of *data* with *key* parsed back into a datetime (dropped when null)."""
    out = dict(data)
    value = out.get(key)
    if isinstance(value, str):
        out[key] = datetime.fromisoformat(value)
    elif value is None:
        out.pop(key, None)
    return out


def decode_club(data: dict[str, Any]) -> Club:
    return Club(**_with_datetime(data, "created_at"))


def decode_member(data: dict[str, Any]) -> Member:
    return Member(**_with_datetime(data, "joined_at"))


def decode_asset(data: dict[str, Any]) -> Asset:
    return Asset(**data)


def decode_transaction(data: dict[str, Any]) -> Transaction:
    return Transaction(**_with_datetime(data, "created_at"))


def decode_nav_entry(data: dict[str, Any]) -> NavEntry:
    raw = data["date"]
    day = raw if isinstance(raw, date) else date.fromisoformat(raw)
    return NavEntry(**{**data, "date": day})
