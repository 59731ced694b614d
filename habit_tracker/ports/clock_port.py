"""Clock port — supplies "today" to the core.

Tests pass a fixed clock; production uses the system UTC clock.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def today(self) -> date: ...


class SystemClock:
    """Today's date in UTC."""

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock:
    """A clock frozen on one day."""

    def __init__(self, day: date) -> None:
        self._day = day

    def today(self) -> date:
        return self._day
