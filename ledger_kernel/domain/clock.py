"""
Injectable clocks.

The sweep decides what is due by comparing cursors with ``clock.today()``,
so nothing in the scheduling path reads the wall clock directly.  The
calendar date is always taken in UTC; a definition is due on the same day
for every worker regardless of host timezone.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

_SECONDS_PER_DAY = 24 * 60 * 60


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """A timezone-aware current time."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """The UTC calendar date used for due checks."""
        return self.now_utc().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests and replays.

    Time only moves when told to: ``advance``/``advance_days`` shift it,
    ``set_date`` jumps to noon UTC of a given day and ``tick`` steps one
    second and returns the new instant.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._base = fixed_time or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._base + self._offset

    def set_time(self, moment: datetime) -> None:
        self._base = moment
        self._offset = timedelta()

    def set_date(self, day: date) -> None:
        self.set_time(datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc))

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self.advance(days * _SECONDS_PER_DAY)

    def tick(self) -> datetime:
        self.advance()
        return self.now()
