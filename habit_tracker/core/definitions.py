"""
Habit Tracker — Definition management.

Validates and persists recurring and temporary schedule-item definitions.
Deletion lives in the cascade module because it also removes entries.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable

from habit_tracker.core.dates import to_iso_day
from habit_tracker.core.errors import InvalidArgumentError, NotFoundError
from habit_tracker.data.models import (
    DESCRIPTION_MAX_LENGTH,
    Definition,
    DefinitionKind,
    DefinitionPatch,
    RecurringDefinition,
    TemporaryDefinition,
)

if TYPE_CHECKING:
    from habit_tracker.ports.storage_port import DefinitionStore

logger = logging.getLogger(__name__)


def clean_description(description: str | None) -> str:
    """Trim and bound a definition description."""
    text = (description or "").strip()
    if not text:
        raise InvalidArgumentError("Description is required")
    if len(text) > DESCRIPTION_MAX_LENGTH:
        raise InvalidArgumentError(
            f"Description is limited to {DESCRIPTION_MAX_LENGTH} characters"
        )
    return text


def clean_weekdays(weekdays: Iterable[int] | None) -> list[int]:
    """Validate weekday indices (0=Sunday..6=Saturday), dropping duplicates.

    None or an empty collection means "every day" and yields [].
    """
    if weekdays is None:
        return []
    cleaned: set[int] = set()
    for day in weekdays:
        if isinstance(day, bool) or not isinstance(day, int):
            raise InvalidArgumentError(f"Weekday must be an integer 0-6, got {day!r}")
        if not 0 <= day <= 6:
            raise InvalidArgumentError(f"Weekday out of range 0-6: {day}")
        cleaned.add(day)
    if len(cleaned) == 7:
        return []
    return sorted(cleaned)


def clean_date_range(
    start_date: date | datetime | str | None,
    end_date: date | datetime | str | None,
) -> tuple[str, str]:
    if start_date is None or end_date is None:
        raise InvalidArgumentError("Temporary items need both a start and an end date")
    start = to_iso_day(start_date)
    end = to_iso_day(end_date)
    if start > end:
        raise InvalidArgumentError(f"Start date {start} is after end date {end}")
    return start, end


class DefinitionManager:
    """Create, read and edit definitions with ownership checks."""

    def __init__(self, definitions: DefinitionStore) -> None:
        self._definitions = definitions

    def create(
        self,
        user_id: int,
        kind: DefinitionKind | str,
        description: str,
        weekdays: Iterable[int] | None = None,
        start_date: date | datetime | str | None = None,
        end_date: date | datetime | str | None = None,
    ) -> Definition:
        try:
            kind = DefinitionKind(kind)
        except ValueError as exc:
            raise InvalidArgumentError(f"Unknown definition kind: {kind!r}") from exc

        text = clean_description(description)

        if kind is DefinitionKind.RECURRING:
            if start_date is not None or end_date is not None:
                raise InvalidArgumentError("Recurring items do not take a date range")
            return self._definitions.add_recurring(user_id, text, clean_weekdays(weekdays))

        if weekdays:
            raise InvalidArgumentError("Temporary items do not take weekdays")
        start, end = clean_date_range(start_date, end_date)
        return self._definitions.add_temporary(user_id, text, start, end)

    def get(self, user_id: int, definition_id: str) -> Definition:
        definition = self._definitions.get_definition(user_id, definition_id)
        if definition is None:
            raise NotFoundError(f"Schedule item {definition_id} not found")
        return definition

    def list_all(self, user_id: int) -> list[Definition]:
        """Recurring definitions first, then temporary, each in creation order."""
        return [
            *self._definitions.list_recurring(user_id),
            *self._definitions.list_temporary(user_id),
        ]

    def update(self, user_id: int, definition_id: str, patch: DefinitionPatch) -> Definition:
        """Validate `patch` against the definition's kind and apply it."""
        existing = self.get(user_id, definition_id)

        clean = DefinitionPatch()
        if patch.description is not None:
            clean.description = clean_description(patch.description)

        if isinstance(existing, RecurringDefinition):
            if patch.start_date is not None or patch.end_date is not None:
                raise InvalidArgumentError("Recurring items do not take a date range")
            if patch.weekdays is not None:
                clean.weekdays = clean_weekdays(patch.weekdays)
        elif isinstance(existing, TemporaryDefinition):
            if patch.weekdays:
                raise InvalidArgumentError("Temporary items do not take weekdays")
            if patch.start_date is not None or patch.end_date is not None:
                clean.start_date, clean.end_date = clean_date_range(
                    patch.start_date if patch.start_date is not None else existing.start_date,
                    patch.end_date if patch.end_date is not None else existing.end_date,
                )

        updated = self._definitions.update_definition(user_id, definition_id, clean)
        if updated is None:
            raise NotFoundError(f"Schedule item {definition_id} not found")
        return updated
