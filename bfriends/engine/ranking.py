"""
bfriends.engine.ranking — Rank Modes, Calendar Windows & Paging Math
=====================================================================

Pure helpers for the feed query engine.  No DB I/O.

``Top*`` modes look only at posts created inside the *current* calendar
window (today, this ISO week starting Monday, this month, this year) as seen
from the configured timezone.  Windows are half-open ``[start, end)`` and
returned in UTC so they compare cleanly against stored timestamps.
"""

from __future__ import annotations

import enum
import math
from datetime import UTC, datetime, timedelta, tzinfo

__all__ = [
    "RankMode",
    "clamp_page",
    "page_offset",
    "parse_rank_mode",
    "total_pages",
    "window_bounds",
]


class RankMode(enum.StrEnum):
    RECENT = "recent"
    TOP_TODAY = "top-today"
    TOP_WEEK = "top-week"
    TOP_MONTH = "top-month"
    TOP_YEAR = "top-year"

    @property
    def is_top(self) -> bool:
        return self is not RankMode.RECENT


def parse_rank_mode(raw: str | RankMode | None) -> RankMode:
    """Unknown or missing sort values fall back to :attr:`RankMode.RECENT`."""
    if isinstance(raw, RankMode):
        return raw
    try:
        return RankMode((raw or "").strip().lower())
    except ValueError:
        return RankMode.RECENT


def window_bounds(
    mode: RankMode, now: datetime, tz: tzinfo = UTC
) -> tuple[datetime, datetime] | None:
    """Return the ``[start, end)`` UTC window for *mode*, or None for Recent.

    *now* may be naive (treated as UTC) or aware; it is converted to *tz*
    before the calendar boundaries are taken.
    """
    if mode is RankMode.RECENT:
        return None
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)

    if mode is RankMode.TOP_TODAY:
        start = midnight
        end = _add_days(start, 1, tz)
    elif mode is RankMode.TOP_WEEK:
        start = _add_days(midnight, -midnight.weekday(), tz)
        end = _add_days(start, 7, tz)
    elif mode is RankMode.TOP_MONTH:
        start = midnight.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
    else:
        start = midnight.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)

    return start.astimezone(UTC), end.astimezone(UTC)


def _add_days(dt: datetime, days: int, tz: tzinfo) -> datetime:
    # Wall-clock arithmetic so DST shifts don't move midnight.
    naive = dt.replace(tzinfo=None) + timedelta(days=days)
    return naive.replace(tzinfo=tz)


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------
def clamp_page(raw: int | str | None) -> int:
    """Pages are 1-based; anything unparsable or below 1 becomes 1."""
    try:
        page = int(raw) if raw is not None else 1
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total / page_size)
