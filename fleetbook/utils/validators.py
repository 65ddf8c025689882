"""Timestamp parsing and normalisation utilities."""

from datetime import datetime
from zoneinfo import ZoneInfo

from fleetbook.config import settings


def local_zone() -> ZoneInfo:
    """Zone in which naive timestamps are interpreted."""
    return ZoneInfo(settings.local_timezone)


def now_local() -> datetime:
    """Current wall-clock time as a naive local timestamp."""
    return datetime.now(local_zone()).replace(tzinfo=None)


def normalize_timestamp(value: datetime) -> datetime:
    """Convert a datetime to the internal naive local representation.

    Aware values are shifted into the local zone before the offset is
    dropped; naive values are already local and pass through.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(local_zone()).replace(tzinfo=None)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp with or without a zone designator.

    Accepts forms such as ``2030-05-01T08:00:00``, ``2030-05-01T08:00:00.000Z``
    and ``2030-05-01T08:00:00+05:00``.

    Args:
        value: ISO-8601 string or an existing datetime

    Returns:
        datetime: Naive local timestamp

    Raises:
        ValueError: If the value parses under neither form
    """
    if isinstance(value, datetime):
        return normalize_timestamp(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Timestamp must be a non-empty ISO-8601 string")

    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(
            f"Invalid date format '{value}'. Please use ISO 8601 format."
        ) from None
    return normalize_timestamp(parsed)
