from datetime import datetime, timezone
from typing import Optional


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """A puzzle without an expiry never closes; otherwise it closes once
    ``expires_at`` is strictly before ``now``."""
    if expires_at is None:
        return False
    return as_utc(expires_at) < as_utc(now)


def seconds_between(start: datetime, end: datetime) -> int:
    return int((as_utc(end) - as_utc(start)).total_seconds())
