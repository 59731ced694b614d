"""
Habit Tracker — SQLite storage.

Users, schedule-item definitions and check-in entries live in one SQLite
file. Every query is scoped by owning user id; the only cross-user reads go
through explicit user id arguments supplied by the caller.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from habit_tracker.core.errors import ConflictError, StorageUnavailableError
from habit_tracker.data.models import (
    Definition,
    DefinitionPatch,
    Entry,
    RecurringDefinition,
    Status,
    TemporaryDefinition,
    User,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class _SQLiteStore:
    """Connection handling shared by every store.

    sqlite3 errors never leak out: integrity violations become ConflictError,
    everything else (locked database, busy timeout, I/O) StorageUnavailableError.
    """

    def __init__(self, db_path: str | None = None, timeout: float | None = None) -> None:
        if db_path is None or timeout is None:
            from habit_tracker.config import settings
            if db_path is None:
                db_path = settings.DATABASE_PATH
            if timeout is None:
                timeout = settings.STORAGE_TIMEOUT_SECONDS

        self._db_path = db_path
        self._timeout = timeout
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Cannot open database: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError as exc:
            raise ConflictError(str(exc)) from exc
        except sqlite3.Error as exc:
            logger.error("Database error on %s: %s", self._db_path, exc)
            raise StorageUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        raise NotImplementedError


class UserDB(_SQLiteStore):
    """Registered users. Display names are unique, case-insensitively."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id       INTEGER PRIMARY KEY,
                    display_name  TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    created_at    TEXT NOT NULL
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            user_id=row["user_id"],
            display_name=row["display_name"],
            created_at=row["created_at"],
        )

    def add_user(self, user_id: int, display_name: str) -> User:
        """Register a new user. Raises ConflictError on a taken id or name."""
        now = _now()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO users (user_id, display_name, created_at) VALUES (?, ?, ?)",
                (user_id, display_name, now),
            )
        logger.info("User registered: %d '%s'", user_id, display_name)
        return User(user_id=user_id, display_name=display_name, created_at=now)

    def get_user(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE user_id = ?", (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_by_name(self, display_name: str) -> User | None:
        """Case-insensitive exact match on display name."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE display_name = ?", (display_name.strip(),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> list[User]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at, user_id"
            ).fetchall()
        return [self._row_to_user(r) for r in rows]


class DefinitionDB(_SQLiteStore):
    """Recurring and temporary schedule-item definitions.

    Both tables draw ids from the same UUID space, so a definition id alone
    identifies the row regardless of kind.
    """

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS recurring_definitions (
                    id           TEXT PRIMARY KEY,
                    user_id      INTEGER NOT NULL,
                    description  TEXT NOT NULL,
                    weekdays     TEXT,
                    created_at   TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS temporary_definitions (
                    id           TEXT PRIMARY KEY,
                    user_id      INTEGER NOT NULL,
                    description  TEXT NOT NULL,
                    start_date   TEXT NOT NULL,
                    end_date     TEXT NOT NULL,
                    created_at   TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_recurring_user "
                "ON recurring_definitions (user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_temporary_user_range "
                "ON temporary_definitions (user_id, start_date, end_date)"
            )
        logger.debug("Definition tables initialized at %s", self._db_path)

    @staticmethod
    def _encode_weekdays(weekdays: list[int]) -> str | None:
        if not weekdays:
            return None
        return ",".join(str(d) for d in weekdays)

    @staticmethod
    def _decode_weekdays(raw: str | None) -> list[int]:
        if not raw:
            return []
        return [int(d) for d in raw.split(",")]

    @classmethod
    def _row_to_recurring(cls, row: sqlite3.Row) -> RecurringDefinition:
        return RecurringDefinition(
            id=row["id"],
            user_id=row["user_id"],
            description=row["description"],
            weekdays=cls._decode_weekdays(row["weekdays"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_temporary(row: sqlite3.Row) -> TemporaryDefinition:
        return TemporaryDefinition(
            id=row["id"],
            user_id=row["user_id"],
            description=row["description"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            created_at=row["created_at"],
        )

    def add_recurring(
        self, user_id: int, description: str, weekdays: list[int],
    ) -> RecurringDefinition:
        definition = RecurringDefinition(
            id=_new_id(),
            user_id=user_id,
            description=description,
            weekdays=list(weekdays),
            created_at=_now(),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO recurring_definitions
                    (id, user_id, description, weekdays, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    definition.id, user_id, description,
                    self._encode_weekdays(definition.weekdays), definition.created_at,
                ),
            )
        logger.info(
            "Recurring definition added: %s '%s' (%s) for user %d",
            definition.id, description, definition.schedule_label(), user_id,
        )
        return definition

    def add_temporary(
        self, user_id: int, description: str, start_date: str, end_date: str,
    ) -> TemporaryDefinition:
        definition = TemporaryDefinition(
            id=_new_id(),
            user_id=user_id,
            description=description,
            start_date=start_date,
            end_date=end_date,
            created_at=_now(),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO temporary_definitions
                    (id, user_id, description, start_date, end_date, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (definition.id, user_id, description, start_date, end_date, definition.created_at),
            )
        logger.info(
            "Temporary definition added: %s '%s' %s..%s for user %d",
            definition.id, description, start_date, end_date, user_id,
        )
        return definition

    def get_definition(self, user_id: int, definition_id: str) -> Definition | None:
        """Fetch a definition of either kind, scoped to its owner."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM recurring_definitions WHERE id = ? AND user_id = ?",
                (definition_id, user_id),
            ).fetchone()
            if row is not None:
                return self._row_to_recurring(row)
            row = conn.execute(
                "SELECT * FROM temporary_definitions WHERE id = ? AND user_id = ?",
                (definition_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_temporary(row)

    def list_recurring(self, user_id: int) -> list[RecurringDefinition]:
        """All recurring definitions of a user, in creation order."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM recurring_definitions WHERE user_id = ? "
                "ORDER BY rowid",
                (user_id,),
            ).fetchall()
        return [self._row_to_recurring(r) for r in rows]

    def list_temporary(
        self, user_id: int, start: str | None = None, end: str | None = None,
    ) -> list[TemporaryDefinition]:
        """Temporary definitions of a user, in creation order.

        With `start`/`end` given, only definitions whose range overlaps
        [start, end] (inclusive) are returned.
        """
        query = "SELECT * FROM temporary_definitions WHERE user_id = ?"
        params: list = [user_id]
        if end is not None:
            query += " AND start_date <= ?"
            params.append(end)
        if start is not None:
            query += " AND end_date >= ?"
            params.append(start)
        query += " ORDER BY rowid"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_temporary(r) for r in rows]

    def update_definition(
        self, user_id: int, definition_id: str, patch: DefinitionPatch,
    ) -> Definition | None:
        """Apply `patch` to a definition. Fields irrelevant to its kind are ignored."""
        existing = self.get_definition(user_id, definition_id)
        if existing is None:
            return None

        if patch.description is not None:
            existing.description = patch.description

        if isinstance(existing, RecurringDefinition):
            if patch.weekdays is not None:
                existing.weekdays = list(patch.weekdays)
            with self._connect() as conn:
                conn.execute(
                    "UPDATE recurring_definitions SET description = ?, weekdays = ? "
                    "WHERE id = ? AND user_id = ?",
                    (
                        existing.description, self._encode_weekdays(existing.weekdays),
                        definition_id, user_id,
                    ),
                )
        else:
            if patch.start_date is not None:
                existing.start_date = patch.start_date
            if patch.end_date is not None:
                existing.end_date = patch.end_date
            with self._connect() as conn:
                conn.execute(
                    "UPDATE temporary_definitions "
                    "SET description = ?, start_date = ?, end_date = ? "
                    "WHERE id = ? AND user_id = ?",
                    (
                        existing.description, existing.start_date, existing.end_date,
                        definition_id, user_id,
                    ),
                )
        logger.info("Definition %s updated for user %d", definition_id, user_id)
        return existing

    def delete_definition(self, user_id: int, definition_id: str) -> Definition | None:
        """Permanently delete a definition and return it, or None if not owned/absent."""
        existing = self.get_definition(user_id, definition_id)
        if existing is None:
            return None
        table = (
            "recurring_definitions"
            if isinstance(existing, RecurringDefinition)
            else "temporary_definitions"
        )
        with self._connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM {table} WHERE id = ? AND user_id = ?",
                (definition_id, user_id),
            )
        if cursor.rowcount == 0:
            return None
        logger.info("Definition %s deleted for user %d", definition_id, user_id)
        return existing


class EntryDB(_SQLiteStore):
    """Check-in entries: one row per (user, definition, day)."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    id             TEXT PRIMARY KEY,
                    user_id        INTEGER NOT NULL,
                    definition_id  TEXT NOT NULL,
                    date           TEXT NOT NULL,
                    status         TEXT NOT NULL
                        CHECK (status IN ('completed', 'not_completed')),
                    reason         TEXT,
                    created_at     TEXT NOT NULL,
                    updated_at     TEXT NOT NULL,
                    UNIQUE (user_id, definition_id, date)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_user_date ON entries (user_id, date)"
            )
        logger.debug("Entries table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> Entry:
        return Entry(
            id=row["id"],
            user_id=row["user_id"],
            definition_id=row["definition_id"],
            date=row["date"],
            status=Status(row["status"]),
            reason=row["reason"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_entry(
        self, user_id: int, definition_id: str, day: str, status: Status,
    ) -> Entry:
        """Insert a check-in. Raises ConflictError if the day is already recorded."""
        now = _now()
        entry = Entry(
            id=_new_id(),
            user_id=user_id,
            definition_id=definition_id,
            date=day,
            status=status,
            reason=None,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO entries
                    (id, user_id, definition_id, date, status, reason, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, NULL, ?, ?)
                """,
                (entry.id, user_id, definition_id, day, status.value, now, now),
            )
        logger.info(
            "Entry created: %s definition=%s date=%s status=%s",
            entry.id, definition_id, day, status.value,
        )
        return entry

    def get_entry(self, user_id: int, entry_id: str) -> Entry | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM entries WHERE id = ? AND user_id = ?", (entry_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def find_entry(self, user_id: int, definition_id: str, day: str) -> Entry | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM entries WHERE user_id = ? AND definition_id = ? AND date = ?",
                (user_id, definition_id, day),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def list_entries(self, user_id: int, start: str, end: str) -> list[Entry]:
        """Entries of a user with start <= date <= end, oldest day first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM entries WHERE user_id = ? AND date >= ? AND date <= ? "
                "ORDER BY date, rowid",
                (user_id, start, end),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def update_entry(
        self,
        user_id: int,
        entry_id: str,
        status: Status | None = None,
        reason: str | None = None,
        clear_reason: bool = False,
    ) -> Entry | None:
        """Change status and/or reason in place. Returns the updated entry."""
        assignments = ["updated_at = ?"]
        params: list = [_now()]
        if status is not None:
            assignments.append("status = ?")
            params.append(status.value)
        if clear_reason:
            assignments.append("reason = NULL")
        elif reason is not None:
            assignments.append("reason = ?")
            params.append(reason)
        params.extend([entry_id, user_id])

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE entries SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                params,
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()

        entry = self._row_to_entry(row)
        logger.info("Entry %s updated: status=%s", entry_id, entry.status.value)
        return entry

    def delete_entry(self, user_id: int, entry_id: str) -> Entry | None:
        """Permanently delete an entry and return what was removed."""
        existing = self.get_entry(user_id, entry_id)
        if existing is None:
            return None
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM entries WHERE id = ? AND user_id = ?", (entry_id, user_id),
            )
        if cursor.rowcount == 0:
            return None
        logger.info("Entry %s deleted", entry_id)
        return existing

    def delete_for_definition(self, user_id: int, definition_id: str) -> int:
        """Delete every entry of a user that references `definition_id`."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM entries WHERE user_id = ? AND definition_id = ?",
                (user_id, definition_id),
            )
        deleted = cursor.rowcount
        logger.info(
            "Deleted %d entries of definition %s for user %d", deleted, definition_id, user_id,
        )
        return deleted
