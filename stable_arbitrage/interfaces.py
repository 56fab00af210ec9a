"""
Dependency injection interfaces for improved testability.

Provides a lightweight time protocol so caches and ledgers can be driven by
a fake clock in tests instead of the system clock.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...

    def current_time_ms(self) -> int:
        """Get current time in milliseconds."""
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        return time.time()

    def current_time_ms(self) -> int:
        """Get current time in milliseconds."""
        return int(time.time() * 1000)


class ManualTimeProvider:
    """Time provider whose clock only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = start

    def current_timestamp(self) -> float:
        return self._now

    def current_time_ms(self) -> int:
        return int(self._now * 1000)

    def advance(self, seconds: float) -> None:
        self._now += seconds
