"""
Clock -- injectable time source.

Responsibility:
    Services receive a Clock through their constructor so that no engine
    code calls ``datetime.now()`` directly.  The trigger uses it to supply
    the default ``now`` of a run; tests pin it with DeterministicClock.

Guarantees:
    Every clock returns timezone-aware UTC datetimes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time as an aware UTC datetime."""
        ...


class SystemClock(Clock):
    """Production clock returning actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.  Naive datetimes are interpreted as UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = _as_utc(
            fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        )
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        self._fixed_time = _as_utc(time)
        self._offset = timedelta(0)

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        """Advance the clock and return the new time."""
        self._offset += timedelta(days=days, seconds=seconds)
        return self.now()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
