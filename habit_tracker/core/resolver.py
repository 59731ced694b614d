"""
Habit Tracker — Schedule Resolver.

For a user and a day, works out which definitions apply (recurring ones
matching the weekday, temporary ones whose range contains the day) and joins
each with the check-in recorded for that day, if any.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from habit_tracker.core.dates import days_between, to_day
from habit_tracker.core.errors import InvalidArgumentError
from habit_tracker.data.models import DisplayItem, Entry

if TYPE_CHECKING:
    from habit_tracker.ports.storage_port import DefinitionStore, EntryStore

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 31


class ScheduleResolver:
    """Read-only view over definitions and entries.

    Takes the target user id explicitly, so it serves both a user's own
    check-in screen and the read-only view of someone else's schedule.
    """

    def __init__(self, definitions: DefinitionStore, entries: EntryStore) -> None:
        self._definitions = definitions
        self._entries = entries

    def resolve(self, user_id: int, day: date | datetime | str) -> list[DisplayItem]:
        """Active items for `day`, recurring first, each kind in creation order."""
        target = to_day(day)
        return self.resolve_range(user_id, target, target)[target.isoformat()]

    def resolve_range(
        self,
        user_id: int,
        start: date | datetime | str,
        end: date | datetime | str,
    ) -> dict[str, list[DisplayItem]]:
        """Resolve every day in [start, end], keyed by ISO day.

        Each store is queried once for the whole range.
        """
        first = to_day(start)
        last = to_day(end)
        if first > last:
            raise InvalidArgumentError(f"Start date {first} is after end date {last}")
        if last - first >= timedelta(days=MAX_RANGE_DAYS):
            raise InvalidArgumentError(f"Date range is limited to {MAX_RANGE_DAYS} days")

        first_iso, last_iso = first.isoformat(), last.isoformat()
        recurring = self._definitions.list_recurring(user_id)
        temporary = self._definitions.list_temporary(user_id, start=first_iso, end=last_iso)
        entries = self._entries.list_entries(user_id, first_iso, last_iso)

        by_key: dict[tuple[str, str], Entry] = {
            (e.definition_id, e.date): e for e in entries
        }

        result: dict[str, list[DisplayItem]] = {}
        for day in days_between(first, last):
            iso = day.isoformat()
            items = [
                DisplayItem.build(d, iso, by_key.get((d.id, iso)))
                for d in recurring
                if d.is_active_on(day)
            ]
            items.extend(
                DisplayItem.build(d, iso, by_key.get((d.id, iso)))
                for d in temporary
                if d.is_active_on(day)
            )
            result[iso] = items

        logger.debug(
            "Resolved %d day(s) for user %d: %d recurring, %d temporary, %d entries",
            len(result), user_id, len(recurring), len(temporary), len(entries),
        )
        return result
