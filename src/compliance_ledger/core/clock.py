"""Injectable time source.

Every "now" comparison in the ledger goes through a :class:`Clock` so that
policy evaluation is reproducible in tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from beartype import beartype


@runtime_checkable
class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC instant."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    @beartype
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant; can be advanced manually."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    @beartype
    def now(self) -> datetime:
        return self._instant

    @beartype
    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward and return the new instant."""
        self._instant = self._instant + delta
        return self._instant

    @beartype
    def set(self, instant: datetime) -> None:
        """Jump to an absolute instant."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant
