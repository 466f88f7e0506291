"""
core/clock.py

Timezone helpers shared by models and services.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes returned by stores without timezone support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed from `start` to `end`, rounded half up."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, int(seconds / 60 + 0.5))
