"""
Clock collaborator used by the listing lifecycle and the expiration sweeper.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Supplies the current time as an aware UTC datetime."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    SQLite returns naive datetimes for DateTime(timezone=True) columns;
    values written by this service are always UTC, so naive means UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


system_clock = SystemClock()
