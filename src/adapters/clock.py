from datetime import UTC, datetime, timedelta
from typing import Protocol


class ClockPort(Protocol):
    """Time provider for store-assigned timestamps."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class SteppingClock:
    """Deterministic clock that advances by a fixed step on every read."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self._current = start
        self._step = step

    def now_utc(self) -> datetime:
        now = self._current
        self._current = now + self._step
        return now
