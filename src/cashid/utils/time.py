"""Time utilities for the protocol engine."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def from_unix(seconds: int) -> datetime:
    """Return a timezone-aware UTC datetime for a Unix timestamp."""
    return datetime.fromtimestamp(seconds, UTC)
