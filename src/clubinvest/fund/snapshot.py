"""NAV snapshots and the history series built from them.

Snapshots are appended unconditionally: freezing twice on the same day
yields two entries with the same date.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from enum import StrEnum

from .models import NavEntry, PortfolioSummary

LIVE_POINT_ID = "live"


class ChartRange(StrEnum):
    DAY = "1D"
    WEEK = "1W"
    MONTH = "1M"
    YEAR = "1Y"
    MAX = "MAX"


@dataclass(frozen=True)
class NavPoint:
    """One point of a NAV chart. ``live`` marks the point computed from current state."""

    at: datetime
    nav_per_share: Decimal
    total_net_assets: Decimal
    live: bool = False


def create_nav_snapshot(club_id: str, summary: PortfolioSummary, today: date | None = None) -> NavEntry:
    """Freeze *summary* into a NavEntry dated *today* (UTC date when omitted)."""
    return NavEntry(
        club_id=club_id,
        date=today or datetime.now(UTC).date(),
        nav_per_share=summary.nav_per_share,
        total_net_assets=summary.total_net_assets,
    )


def _months_back(moment: datetime, months: int) -> datetime:
    year, month = divmod(moment.month - 1 - months, 12)
    target_year = moment.year + year
    target_month = month + 1
    day = moment.day
    while True:
        try:
            return moment.replace(year=target_year, month=target_month, day=day)
        except ValueError:
            day -= 1


def range_cutoff(chart_range: ChartRange | str, now: datetime) -> datetime | None:
    """Earliest timestamp shown for *chart_range*; None means no lower bound."""
    chart_range = ChartRange(chart_range)
    if chart_range == ChartRange.DAY:
        return now - timedelta(days=1)
    if chart_range == ChartRange.WEEK:
        return now - timedelta(days=7)
    if chart_range == ChartRange.MONTH:
        return _months_back(now, 1)
    if chart_range == ChartRange.YEAR:
        return _months_back(now, 12)
    return None


def build_nav_history(
    entries: Iterable[NavEntry],
    summary: PortfolioSummary,
    chart_range: ChartRange | str = ChartRange.MAX,
    now: datetime | None = None,
) -> list[NavPoint]:
    """Chart series: frozen entries plus a live point, oldest first, clipped to *chart_range*.

    Entries are dated at midnight UTC of their day.
    """
    now = now or datetime.now(UTC)
    points = [
        NavPoint(
            at=datetime(e.date.year, e.date.month, e.date.day, tzinfo=UTC),
            nav_per_share=e.nav_per_share,
            total_net_assets=e.total_net_assets,
        )
        for e in entries
    ]
    points.append(
        NavPoint(
            at=now,
            nav_per_share=summary.nav_per_share,
            total_net_assets=summary.total_net_assets,
            live=True,
        )
    )
    points.sort(key=lambda p: p.at)

    cutoff = range_cutoff(chart_range, now)
    if cutoff is None:
        return points
    return [p for p in points if p.at >= cutoff]
