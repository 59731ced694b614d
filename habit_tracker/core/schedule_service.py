"""
Habit Tracker — UI-Agnostic Schedule Service.

Stateless facade over the resolver, reconciler, cascade and definition
manager. Every call receives the caller's user id explicitly; there is no
session state here. Write operations are always scoped to that id, while
the `view_*` operations take the id of the user being looked at and never
write.

Each UI adapter (Telegram today) calls this service and renders the
returned dataclasses in its own way.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable

from habit_tracker.core.cascade import CascadeManager
from habit_tracker.core.dates import to_day
from habit_tracker.core.definitions import DefinitionManager
from habit_tracker.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from habit_tracker.core.reconciler import CheckinReconciler
from habit_tracker.core.resolver import ScheduleResolver
from habit_tracker.data.models import (
    Definition,
    DefinitionKind,
    DefinitionPatch,
    DisplayItem,
    Status,
    User,
)
from habit_tracker.ports.clock_port import SystemClock

if TYPE_CHECKING:
    from habit_tracker.ports.clock_port import Clock
    from habit_tracker.ports.storage_port import DefinitionStore, EntryStore, UserStore

logger = logging.getLogger(__name__)

DISPLAY_NAME_MAX_LENGTH = 32

DayLike = date | datetime | str | None


class ScheduleService:
    def __init__(
        self,
        definitions: DefinitionStore,
        entries: EntryStore,
        users: UserStore,
        clock: Clock | None = None,
    ) -> None:
        self._definitions = definitions
        self._entries = entries
        self._users = users
        self._clock = clock or SystemClock()

        self._manager = DefinitionManager(definitions)
        self._resolver = ScheduleResolver(definitions, entries)
        self._reconciler = CheckinReconciler(definitions, entries)
        self._cascade = CascadeManager(definitions, entries)

    @classmethod
    def from_database(cls, db_path: str | None = None, clock: Clock | None = None) -> ScheduleService:
        """Wire the service to the SQLite stores (settings.DATABASE_PATH by default)."""
        from habit_tracker.data.db import DefinitionDB, EntryDB, UserDB

        return cls(
            definitions=DefinitionDB(db_path=db_path),
            entries=EntryDB(db_path=db_path),
            users=UserDB(db_path=db_path),
            clock=clock,
        )

    def today(self) -> date:
        return self._clock.today()

    def _day(self, day: DayLike) -> date:
        return self._clock.today() if day is None else to_day(day)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, user_id: int, display_name: str) -> User:
        """Return the user, registering them on first contact.

        A display name already taken by someone else gets the user id appended.
        If a concurrent first contact registered the same id, that row is returned.
        """
        existing = self._users.get_user(user_id)
        if existing is not None:
            return existing

        name = " ".join((display_name or "").split())[:DISPLAY_NAME_MAX_LENGTH] or f"user{user_id}"
        try:
            return self._users.add_user(user_id, name)
        except ConflictError:
            existing = self._users.get_user(user_id)
            if existing is not None:
                return existing
            fallback = f"{name[:DISPLAY_NAME_MAX_LENGTH - 12]}_{user_id}"
            logger.info("Display name '%s' taken, registering %d as '%s'", name, user_id, fallback)
            return self._users.add_user(user_id, fallback)

    def get_user(self, user_id: int) -> User:
        user = self._users.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def list_users(self) -> list[User]:
        return self._users.list_users()

    def find_user_by_name(self, display_name: str) -> User:
        user = self._users.find_by_name(display_name)
        if user is None:
            raise NotFoundError(f"No user named '{display_name}'")
        return user

    # ------------------------------------------------------------------
    # Check-ins
    # ------------------------------------------------------------------

    def list_active_items(self, user_id: int, day: DayLike = None) -> list[DisplayItem]:
        """Items scheduled for `day` (today by default) with their check-in state."""
        return self._resolver.resolve(user_id, self._day(day))

    def toggle_status(
        self,
        user_id: int,
        definition_id: str,
        day: DayLike,
        status: Status | str,
    ) -> DisplayItem:
        target = self._day(day)
        entry = self._reconciler.toggle(user_id, definition_id, target, status)
        definition = self._manager.get(user_id, definition_id)
        return DisplayItem.build(definition, target.isoformat(), entry)

    def set_reason(self, user_id: int, entry_id: str, reason: str | None) -> DisplayItem:
        entry = self._reconciler.set_reason(user_id, entry_id, reason)
        definition = self._manager.get(user_id, entry.definition_id)
        return DisplayItem.build(definition, entry.date, entry)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def create_definition(
        self,
        user_id: int,
        kind: DefinitionKind | str,
        description: str,
        weekdays: Iterable[int] | None = None,
        start_date: DayLike = None,
        end_date: DayLike = None,
    ) -> Definition:
        return self._manager.create(
            user_id, kind, description,
            weekdays=weekdays, start_date=start_date, end_date=end_date,
        )

    def update_definition(
        self, user_id: int, definition_id: str, patch: DefinitionPatch,
    ) -> Definition:
        return self._manager.update(user_id, definition_id, patch)

    def delete_definition(self, user_id: int, definition_id: str) -> None:
        self._cascade.delete_definition(user_id, definition_id)

    def get_definition(self, user_id: int, definition_id: str) -> Definition:
        return self._manager.get(user_id, definition_id)

    def list_definitions(self, user_id: int) -> list[Definition]:
        return self._manager.list_all(user_id)

    # ------------------------------------------------------------------
    # Read-only views of other users
    # ------------------------------------------------------------------

    def view_user_items(self, target_user_id: int, day: DayLike = None) -> list[DisplayItem]:
        self.get_user(target_user_id)
        return self._resolver.resolve(target_user_id, self._day(day))

    def view_user_history(
        self, target_user_id: int, start: DayLike, end: DayLike = None,
    ) -> dict[str, list[DisplayItem]]:
        """Day-by-day check-ins of another user over an inclusive range."""
        if start is None:
            raise InvalidArgumentError("Start date is required")
        self.get_user(target_user_id)
        return self._resolver.resolve_range(target_user_id, to_day(start), self._day(end))
