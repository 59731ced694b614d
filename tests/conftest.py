"""Shared test fixtures and configuration.

Sets up fake environment variables so habit_tracker.config doesn't sys.exit(),
and provides temp-file SQLite stores and a service on a fixed clock.
"""

import os
import sqlite3
from contextlib import closing

# Patch env vars BEFORE any habit_tracker imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345,67890")
os.environ.setdefault("DATABASE_PATH", ":memory:")

from datetime import date

import pytest

# Monday
MONDAY = date(2024, 1, 1)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_habits.db")


@pytest.fixture
def definition_db(tmp_db_path):
    from habit_tracker.data.db import DefinitionDB
    return DefinitionDB(db_path=tmp_db_path, timeout=1.0)


@pytest.fixture
def entry_db(tmp_db_path):
    from habit_tracker.data.db import EntryDB
    return EntryDB(db_path=tmp_db_path, timeout=1.0)


@pytest.fixture
def user_db(tmp_db_path):
    from habit_tracker.data.db import UserDB
    return UserDB(db_path=tmp_db_path, timeout=1.0)


@pytest.fixture
def clock():
    from habit_tracker.ports.clock_port import FixedClock
    return FixedClock(MONDAY)


@pytest.fixture
def service(definition_db, entry_db, user_db, clock):
    """A ScheduleService on temp-file stores, frozen on Monday 2024-01-01."""
    from habit_tracker.core.schedule_service import ScheduleService
    return ScheduleService(definition_db, entry_db, user_db, clock=clock)


@pytest.fixture
def count_entries(tmp_db_path):
    """Count stored check-ins of one definition, straight from the entries table."""
    def _count(user_id, definition_id):
        with closing(sqlite3.connect(tmp_db_path)) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM entries WHERE user_id = ? AND definition_id = ?",
                (user_id, definition_id),
            ).fetchone()
        return row[0]
    return _count
