# src/tactical_planner/core/clock.py

"""
Time helpers.

All timestamps inside the core are timezone-aware. Naive values coming from
callers are interpreted as local time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, tzinfo

Clock = Callable[[], datetime]

ONE_DAY = timedelta(days=1)


def local_now() -> datetime:
    return datetime.now().astimezone()


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        return value.astimezone()
    return value


def _day_of(day: date | datetime) -> tuple[date, tzinfo | None]:
    # Naive datetimes and plain dates resolve in local time.
    if isinstance(day, datetime):
        if day.tzinfo is None or day.utcoffset() is None:
            return day.date(), None
        return day.date(), day.tzinfo
    return day, None


def _midnight(day: date, tz: tzinfo | None) -> datetime:
    if tz is None:
        return datetime.combine(day, time.min).astimezone()
    return datetime.combine(day, time.min, tzinfo=tz)


def start_of_day(day: date | datetime) -> datetime:
    """Midnight that opens the given calendar day (keeps the tz of an aware datetime)."""
    d, tz = _day_of(day)
    return _midnight(d, tz)


def day_window(day: date | datetime) -> tuple[datetime, datetime]:
    """
    [midnight, next midnight) of the calendar day.

    Each end is resolved on its own date, so a day on which the clocks change
    is 23 or 25 hours long and consecutive windows never leave a gap.
    """
    d, tz = _day_of(day)
    return _midnight(d, tz), _midnight(d + ONE_DAY, tz)


def parse_timestamp(raw: str) -> datetime:
    """Parse ISO-8601 text ("2026-10-20", "2026-10-20T15:30", with or without offset)."""
    return ensure_aware(datetime.fromisoformat(raw.strip()))
