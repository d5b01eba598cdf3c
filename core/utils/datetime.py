"""Datetime utilities. All timestamps in the service are UTC-aware."""

from datetime import datetime, timedelta, timezone


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values even for ``DateTime(timezone=True)``
    columns; PostgreSQL returns aware ones. Normalize before comparing.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def expires_in(minutes: int) -> datetime:
    return now() + timedelta(minutes=minutes)


def is_past(dt: datetime) -> bool:
    """Check if a datetime lies in the past."""
    return ensure_utc(dt) <= now()


def to_unix_ms(dt: datetime) -> int:
    """Milliseconds since epoch, used in generated blob paths."""
    return int(ensure_utc(dt).timestamp() * 1000)
