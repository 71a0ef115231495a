"""Calendar-month accounting periods, pinned to UTC."""

from datetime import datetime, timezone
from typing import Optional, Tuple


def normalize_now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


def as_utc(value: datetime) -> datetime:
    # Naive values are UTC by convention (SQLite hands them back naive)
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_start(now: Optional[datetime] = None) -> datetime:
    current = normalize_now(now)
    return datetime(current.year, current.month, 1, tzinfo=timezone.utc)


def month_window(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return [start, end) of the month containing `now`."""
    start = month_start(now)
    if start.month == 12:
        end = datetime(start.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(start.year, start.month + 1, 1, tzinfo=timezone.utc)
    return start, end


def days_remaining(now: Optional[datetime] = None) -> int:
    current = normalize_now(now)
    _, end = month_window(current)
    seconds = (end - current).total_seconds()
    return max(0, int(-(-seconds // 86400)))
