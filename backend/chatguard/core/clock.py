"""
UTC clock and calendar window helpers.
"""
from datetime import datetime, time, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Ensure timezone-aware (assume UTC if naive, as stored by SQLite)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Start and end of the UTC calendar day containing `now`."""
    now = as_utc(now) or utc_now()
    start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    end = datetime.combine(now.date(), time.max, tzinfo=timezone.utc)
    return start, end


def month_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Start and end of the UTC calendar month containing `now`."""
    now = as_utc(now) or utc_now()
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    if now.month == 12:
        next_month = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_month = datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)
    end = next_month - timedelta(microseconds=1)
    return start, end


def is_new_day(last_reset: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Compare calendar dates (year/month/day), not elapsed time."""
    if last_reset is None:
        return True
    last_reset = as_utc(last_reset)
    now = as_utc(now) or utc_now()
    return (now.year, now.month, now.day) != (last_reset.year, last_reset.month, last_reset.day)


def is_new_month(last_reset: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if last_reset is None:
        return True
    last_reset = as_utc(last_reset)
    now = as_utc(now) or utc_now()
    return (now.year, now.month) != (last_reset.year, last_reset.month)
