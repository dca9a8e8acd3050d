"""
Clock -- injectable source of the current time.

Services never call ``datetime.now()``.  Quote creation and approval times,
anomaly acknowledgement, audit timestamps, the date embedded in quote
numbers and the end of the price-history lookback window all come from the
Clock a service was constructed with.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    A clock that only moves when told to.

    Starts at 2026-01-15 09:00 UTC unless given another start, so quote
    numbers in tests read ``QT-20260115-...``.
    """

    DEFAULT_START = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        start = start or self.DEFAULT_START
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 0, *, days: int = 0) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(days=days, seconds=seconds)
        return self._current
