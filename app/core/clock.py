# app/core/clock.py
from datetime import datetime, timezone
from typing import Optional, Protocol


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utcnow()


system_clock = SystemClock()


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    SQLite hands back naive datetimes even for timezone-aware columns.
    Everything stored here is UTC, so naive values are tagged as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
