"""
Habit Tracker — Check-in Reconciler.

Turns a status button press into a create, update or delete of the entry for
one (user, definition, day):

    Unset   --toggle(S)-->  Set(S)    entry created
    Set(S)  --toggle(S)-->  Unset     entry deleted (un-check)
    Set(S)  --toggle(S')--> Set(S')   entry updated; reason dropped on completed

Concurrent toggles on the same triple are not coordinated: the last write
wins. The entries table rejects a second row for the same triple, and a
toggle that loses that race is replayed once against the winning row.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from habit_tracker.core.dates import to_day
from habit_tracker.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from habit_tracker.data.models import REASON_MAX_LENGTH, Definition, Entry, Status

if TYPE_CHECKING:
    from habit_tracker.ports.storage_port import DefinitionStore, EntryStore

logger = logging.getLogger(__name__)


def parse_status(value: Status | str) -> Status:
    if isinstance(value, Status):
        return value
    try:
        return Status(value)
    except ValueError as exc:
        raise InvalidArgumentError(
            f"Status must be 'completed' or 'not_completed', got {value!r}"
        ) from exc


class CheckinReconciler:
    def __init__(self, definitions: DefinitionStore, entries: EntryStore) -> None:
        self._definitions = definitions
        self._entries = entries

    def toggle(
        self,
        user_id: int,
        definition_id: str,
        day: date | datetime | str,
        desired_status: Status | str,
    ) -> Entry | None:
        """Apply a status press. Returns the resulting entry, or None when unset."""
        status = parse_status(desired_status)
        target = to_day(day)
        self._active_definition(user_id, definition_id, target)

        iso = target.isoformat()
        try:
            return self._apply(user_id, definition_id, iso, status)
        except ConflictError:
            logger.warning(
                "Concurrent check-in for definition %s on %s; replaying toggle",
                definition_id, iso,
            )
            return self._apply(user_id, definition_id, iso, status)

    def set_reason(self, user_id: int, entry_id: str, reason: str | None) -> Entry:
        """Record why an item was not completed. An empty reason clears it."""
        text = (reason or "").strip()
        if len(text) > REASON_MAX_LENGTH:
            raise InvalidArgumentError(f"Reason is limited to {REASON_MAX_LENGTH} characters")

        entry = self._entries.get_entry(user_id, entry_id)
        if entry is None:
            raise NotFoundError(f"Check-in {entry_id} not found")
        if entry.status is not Status.NOT_COMPLETED:
            raise InvalidArgumentError("A reason can only be given for an item marked not completed")

        if text:
            updated = self._entries.update_entry(user_id, entry_id, reason=text)
        else:
            updated = self._entries.update_entry(user_id, entry_id, clear_reason=True)
        if updated is None:
            raise NotFoundError(f"Check-in {entry_id} not found")
        return updated

    def _active_definition(self, user_id: int, definition_id: str, day: date) -> Definition:
        definition = self._definitions.get_definition(user_id, definition_id)
        if definition is None:
            raise NotFoundError(f"Schedule item {definition_id} not found")
        if not definition.is_active_on(day):
            raise InvalidArgumentError(
                f"'{definition.description}' is not scheduled on {day.isoformat()}"
            )
        return definition

    def _apply(self, user_id: int, definition_id: str, day: str, status: Status) -> Entry | None:
        existing = self._entries.find_entry(user_id, definition_id, day)

        if existing is None:
            return self._entries.add_entry(user_id, definition_id, day, status)

        if existing.status is status:
            self._entries.delete_entry(user_id, existing.id)
            return None

        updated = self._entries.update_entry(
            user_id,
            existing.id,
            status=status,
            clear_reason=status is Status.COMPLETED,
        )
        if updated is None:
            # Removed between read and write; the press still means "set".
            return self._entries.add_entry(user_id, definition_id, day, status)
        return updated
