"""Time providers.

Every engine takes a clock instead of reading the wall clock, so tests can
pin or shift "now".
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


class Clock:
    """Source of the current instant."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        """Current calendar date (UTC)."""
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant until moved explicitly."""

    def __init__(self, instant: datetime):
        self._instant = as_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = as_utc(instant)

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


class OffsetClock(Clock):
    """Another clock shifted by a constant offset."""

    def __init__(self, offset: timedelta, base: Optional[Clock] = None):
        self.offset = offset
        self.base = base or SystemClock()

    def now(self) -> datetime:
        return self.base.now() + self.offset


def as_utc(instant: datetime) -> datetime:
    """Normalise an instant to UTC; naive instants are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)
