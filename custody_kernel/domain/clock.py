"""
Injected time source.

Workflow and collaborator services take a ``Clock`` in their constructor
and never read the system time themselves, so every issued, dispatched or
returned timestamp (and the year in a register reference number) is
reproducible in tests.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware UTC; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Stands still at ``fixed_time`` (2024-01-01 12:00 UTC by default) until
    moved with ``set_time``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time
