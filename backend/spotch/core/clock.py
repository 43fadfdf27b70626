from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_active_until(expires_at: datetime | None, now: datetime | None = None) -> bool:
    expires = as_utc(expires_at)
    if expires is None:
        return False
    return expires > (now or utcnow())


def week_start(now: datetime | None = None) -> datetime:
    """Sunday 00:00 UTC of the week containing ``now``."""
    current = as_utc(now) or utcnow()
    midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
    days_since_sunday = (midnight.weekday() + 1) % 7
    return midnight - timedelta(days=days_since_sunday)
