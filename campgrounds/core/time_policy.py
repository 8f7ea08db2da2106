# campgrounds/core/time_policy.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


_TEST_NOW_UTC: Optional[datetime] = None


def _utcnow() -> datetime:
    """
    Shared UTC "now" for all business logic.

    Returns the test override when one is installed with set_test_now_utc().
    """
    if _TEST_NOW_UTC is not None:
        return _TEST_NOW_UTC
    return datetime.now(timezone.utc)


def set_test_now_utc(dt: Optional[datetime]) -> None:
    """Pin the current time for tests. None clears the override."""
    global _TEST_NOW_UTC
    _TEST_NOW_UTC = _as_utc(dt)


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime coming out of the DB to an aware UTC value.

    - None stays None
    - naive datetimes are assumed to be UTC
    - aware datetimes are converted to UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def elapsed_between(start: datetime, end: datetime) -> timedelta:
    # absolute distance, a clock-skewed created_at in the future still counts
    return abs(_as_utc(end) - _as_utc(start))


def hours_of(delta: timedelta) -> float:
    return delta.total_seconds() / 3600.0
