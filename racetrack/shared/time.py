"""
Time helpers.

All timestamps are stored as naive UTC datetimes.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat_utc(value: datetime | date | None) -> str | None:
    """Serialize a naive UTC datetime (or date) for API responses."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value).isoformat() + "Z"
    return value.isoformat()
