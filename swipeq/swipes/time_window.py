"""
Quota week calendar math.

The meal-swipe quota resets at local midnight on a fixed weekday (Thursday
unless configured otherwise), so the week is a calendar-anchored
[start, start + 7 days) window rather than "the last 7 days".

Without SWIPEQ_TIMEZONE the reference zone is the system's local time. Its
UTC offset is looked up per date, so a reset day on the other side of a DST
change still starts at its own local midnight.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from swipeq.config import RESET_WEEKDAY, TIMEZONE

WEEK = timedelta(days=7)


def reference_now() -> datetime:
    """Current time: aware in SWIPEQ_TIMEZONE when set, else naive local wall time."""
    if TIMEZONE:
        return datetime.now(ZoneInfo(TIMEZONE))
    return datetime.now()


def localize(wall: datetime) -> datetime:
    """Attach the reference zone to a naive wall time, using that date's offset."""
    if wall.tzinfo is not None:
        return wall
    if TIMEZONE:
        return wall.replace(tzinfo=ZoneInfo(TIMEZONE))
    return wall.astimezone()


def current_week_start(now: datetime | None = None, reset_weekday: int = RESET_WEEKDAY) -> datetime:
    """
    Midnight of the most recent reset weekday on or before ``now``.

    Args:
        now: Reference instant. Naive values are read as reference-zone wall time.
        reset_weekday: 0=Monday .. 6=Sunday

    Returns:
        Timezone-aware datetime at 00:00 in ``now``'s zone, or in the
        reference zone when ``now`` is naive or omitted.
    """
    if not 0 <= reset_weekday <= 6:
        raise ValueError(f"reset_weekday must be 0..6, got {reset_weekday}")

    if now is None:
        now = reference_now()

    days_back = (now.weekday() - reset_weekday) % 7
    start_day = (now - timedelta(days=days_back)).date()
    # Rebuild from the calendar date so a DST change between now and the
    # reset day doesn't shift midnight by an hour.
    midnight = datetime(start_day.year, start_day.month, start_day.day)
    if now.tzinfo is None:
        return localize(midnight)
    return midnight.replace(tzinfo=now.tzinfo)


def window_end(week_start: datetime) -> datetime:
    """Exclusive upper bound of the quota window."""
    return week_start + WEEK


@dataclass(frozen=True)
class QuotaWindow:
    start: datetime
    end: datetime

    @classmethod
    def current(cls, now: datetime | None = None, reset_weekday: int = RESET_WEEKDAY) -> QuotaWindow:
        start = current_week_start(now, reset_weekday)
        return cls(start=start, end=window_end(start))

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end
