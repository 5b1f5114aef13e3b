"""
Time helpers.

All timestamps are timezone-aware UTC. SQLite hands back naive datetimes for
DateTime(timezone=True) columns, so values read from the store go through
ensure_utc() before any arithmetic.
"""
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_seconds_between(start: Optional[datetime], end: datetime) -> int:
    """Whole seconds elapsed from start to end, never negative."""
    if start is None:
        return 0
    delta = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, int(delta))
