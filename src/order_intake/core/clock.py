"""Time helpers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
