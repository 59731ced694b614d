"""
Habit Tracker — Cascade Manager.

Deleting a definition also deletes every check-in that references it.
Entries go first. If the definition delete then fails, what remains is a
definition with no history, and repeating the delete finishes the job.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from habit_tracker.core.errors import NotFoundError

if TYPE_CHECKING:
    from habit_tracker.data.models import Definition
    from habit_tracker.ports.storage_port import DefinitionStore, EntryStore

logger = logging.getLogger(__name__)


class CascadeManager:
    def __init__(self, definitions: DefinitionStore, entries: EntryStore) -> None:
        self._definitions = definitions
        self._entries = entries

    def delete_definition(self, user_id: int, definition_id: str) -> Definition:
        """Delete a definition owned by `user_id` together with its entries."""
        definition = self._definitions.get_definition(user_id, definition_id)
        if definition is None:
            raise NotFoundError(f"Schedule item {definition_id} not found")

        removed = self._entries.delete_for_definition(user_id, definition_id)

        if self._definitions.delete_definition(user_id, definition_id) is None:
            raise NotFoundError(f"Schedule item {definition_id} not found")

        logger.info(
            "Definition %s '%s' deleted with %d entries",
            definition_id, definition.description, removed,
        )
        return definition
