"""Timezone helpers.

SQLite hands timezone-aware columns back as naive values, so anything read
from the database goes through ensure_utc before arithmetic.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_days(start: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days (floored) between start and now, or None without a start."""
    if start is None:
        return None
    delta = ensure_utc(now or utc_now()) - ensure_utc(start)
    return delta.days
