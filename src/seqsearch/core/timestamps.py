"""UTC clock helpers and the fixed-width timestamp format used by the job store.

All persisted timestamps use ``YYYY-MM-DDTHH:MM:SS.ffffffZ`` so that SQL
string comparison orders them the same way as the datetimes they encode.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]

_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def to_db(dt: datetime) -> str:
    """Encode an aware (or naive-UTC) datetime for storage."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.strftime(_FORMAT)


def from_db(value: str) -> datetime:
    """Decode a stored timestamp into an aware UTC datetime."""
    return datetime.strptime(value, _FORMAT).replace(tzinfo=UTC)
