"""Time source injected into services so "now" is never read implicitly."""

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock returning naive UTC datetimes, matching the stored columns."""

    def now(self) -> datetime:
        return datetime.now(UTC).replace(tzinfo=None)


system_clock = SystemClock()


def get_clock() -> Clock:
    """Dependency for FastAPI endpoints to get the current clock."""
    return system_clock
