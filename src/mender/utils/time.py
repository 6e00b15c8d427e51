"""Time utilities for Mender.

All store timestamps are timezone-aware UTC datetimes.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        datetime: Current UTC time with tzinfo=UTC
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def age_of(timestamp: datetime, now: datetime) -> timedelta:
    """How long ago ``timestamp`` was, measured from ``now``."""
    return ensure_utc(now) - ensure_utc(timestamp)
