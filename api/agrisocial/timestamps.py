"""Timestamp helpers shared by the services."""

from datetime import datetime, timedelta, timezone

# Smallest step used to keep per-conversation timestamps strictly increasing
TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a stored timestamp to aware UTC.

    Some backends (SQLite) hand back naive datetimes for TIMESTAMP WITH TIME
    ZONE columns; those are UTC by construction.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Render a stored timestamp as an ISO 8601 UTC string."""
    normalized = as_utc(value)
    return normalized.isoformat() if normalized else None
