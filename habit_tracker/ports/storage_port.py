"""Storage ports — abstract interfaces for the definition, entry and user stores.

Core modules depend on these protocols, never on SQLite directly. Every
method takes the owning user id; implementations must filter on it.

Implementations raise StorageUnavailableError on backend failure and
ConflictError when an entry for the same (user, definition, day) exists.
"""

from __future__ import annotations

from typing import Protocol

from habit_tracker.data.models import (
    Definition,
    DefinitionPatch,
    Entry,
    RecurringDefinition,
    Status,
    TemporaryDefinition,
    User,
)


class DefinitionStore(Protocol):
    def add_recurring(
        self, user_id: int, description: str, weekdays: list[int],
    ) -> RecurringDefinition: ...

    def add_temporary(
        self, user_id: int, description: str, start_date: str, end_date: str,
    ) -> TemporaryDefinition: ...

    def get_definition(self, user_id: int, definition_id: str) -> Definition | None: ...

    def list_recurring(self, user_id: int) -> list[RecurringDefinition]: ...

    def list_temporary(
        self, user_id: int, start: str | None = None, end: str | None = None,
    ) -> list[TemporaryDefinition]: ...

    def update_definition(
        self, user_id: int, definition_id: str, patch: DefinitionPatch,
    ) -> Definition | None: ...

    def delete_definition(self, user_id: int, definition_id: str) -> Definition | None: ...


class EntryStore(Protocol):
    def add_entry(
        self, user_id: int, definition_id: str, day: str, status: Status,
    ) -> Entry: ...

    def get_entry(self, user_id: int, entry_id: str) -> Entry | None: ...

    def find_entry(self, user_id: int, definition_id: str, day: str) -> Entry | None: ...

    def list_entries(self, user_id: int, start: str, end: str) -> list[Entry]: ...

    def update_entry(
        self,
        user_id: int,
        entry_id: str,
        status: Status | None = None,
        reason: str | None = None,
        clear_reason: bool = False,
    ) -> Entry | None: ...

    def delete_entry(self, user_id: int, entry_id: str) -> Entry | None: ...

    def delete_for_definition(self, user_id: int, definition_id: str) -> int: ...


class UserStore(Protocol):
    def add_user(self, user_id: int, display_name: str) -> User: ...

    def get_user(self, user_id: int) -> User | None: ...

    def find_by_name(self, display_name: str) -> User | None: ...

    def list_users(self) -> list[User]: ...
