"""UTC helpers shared by the jobs and services."""

from datetime import UTC, date, datetime
from uuid import UUID


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_date(value: datetime) -> date:
    """Date-only value of a timestamp, taken in UTC."""
    return as_utc(value).date()


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string; naive values are treated as UTC."""
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def to_uuid(value) -> UUID | None:
    """Convert a string (or UUID) to UUID, returning None on failure."""
    if isinstance(value, UUID):
        return value
    if not value:
        return None
    try:
        return UUID(str(value))
    except (ValueError, AttributeError):
        return None
