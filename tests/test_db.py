"""Tests for habit_tracker.data.db — SQLite stores."""

import sqlite3

import pytest

from habit_tracker.core.errors import ConflictError, StorageUnavailableError
from habit_tracker.data.db import DefinitionDB, EntryDB
from habit_tracker.data.models import (
    DefinitionPatch,
    RecurringDefinition,
    Status,
    TemporaryDefinition,
)


class TestDefinitionDBAddAndGet:
    def test_add_recurring_returns_definition(self, definition_db):
        d = definition_db.add_recurring(111, "Run", [1, 3, 5])
        assert isinstance(d, RecurringDefinition)
        assert len(d.id) == 32
        assert d.user_id == 111
        assert d.weekdays == [1, 3, 5]
        assert d.created_at != ""

    def test_add_temporary_returns_definition(self, definition_db):
        d = definition_db.add_temporary(111, "Antibiotics", "2024-06-01", "2024-06-03")
        assert isinstance(d, TemporaryDefinition)
        assert d.start_date == "2024-06-01"
        assert d.end_date == "2024-06-03"

    def test_get_definition_finds_either_kind(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [])
        t = definition_db.add_temporary(111, "Pack", "2024-06-01", "2024-06-01")
        assert isinstance(definition_db.get_definition(111, r.id), RecurringDefinition)
        assert isinstance(definition_db.get_definition(111, t.id), TemporaryDefinition)

    def test_get_definition_scoped_to_owner(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [])
        assert definition_db.get_definition(222, r.id) is None

    def test_get_definition_not_found(self, definition_db):
        assert definition_db.get_definition(111, "0" * 32) is None

    def test_empty_weekdays_round_trip_as_empty_list(self, definition_db):
        r = definition_db.add_recurring(111, "Water", [])
        assert definition_db.get_definition(111, r.id).weekdays == []


class TestDefinitionDBListing:
    def test_list_recurring_in_creation_order(self, definition_db):
        for name in ("B", "A", "C"):
            definition_db.add_recurring(111, name, [])
        assert [d.description for d in definition_db.list_recurring(111)] == ["B", "A", "C"]

    def test_list_recurring_filters_by_user(self, definition_db):
        definition_db.add_recurring(111, "Mine", [])
        definition_db.add_recurring(222, "Theirs", [])
        assert [d.description for d in definition_db.list_recurring(111)] == ["Mine"]

    def test_list_temporary_range_overlap(self, definition_db):
        definition_db.add_temporary(111, "May", "2024-05-01", "2024-05-31")
        definition_db.add_temporary(111, "Straddle", "2024-05-30", "2024-06-02")
        definition_db.add_temporary(111, "June", "2024-06-01", "2024-06-03")
        found = definition_db.list_temporary(111, start="2024-06-01", end="2024-06-01")
        assert [d.description for d in found] == ["Straddle", "June"]

    def test_list_temporary_without_range_returns_all(self, definition_db):
        definition_db.add_temporary(111, "May", "2024-05-01", "2024-05-31")
        definition_db.add_temporary(111, "June", "2024-06-01", "2024-06-03")
        assert len(definition_db.list_temporary(111)) == 2


class TestDefinitionDBUpdateAndDelete:
    def test_update_recurring(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [1])
        updated = definition_db.update_definition(
            111, r.id, DefinitionPatch(description="Jog", weekdays=[2, 4]),
        )
        assert updated.description == "Jog"
        assert updated.weekdays == [2, 4]
        assert definition_db.get_definition(111, r.id).weekdays == [2, 4]

    def test_update_recurring_clears_weekdays(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [1])
        definition_db.update_definition(111, r.id, DefinitionPatch(weekdays=[]))
        assert definition_db.get_definition(111, r.id).weekdays == []

    def test_update_temporary_dates(self, definition_db):
        t = definition_db.add_temporary(111, "Trip", "2024-06-01", "2024-06-03")
        definition_db.update_definition(111, t.id, DefinitionPatch(end_date="2024-06-10"))
        fetched = definition_db.get_definition(111, t.id)
        assert fetched.start_date == "2024-06-01"
        assert fetched.end_date == "2024-06-10"

    def test_update_not_owned_returns_none(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [])
        assert definition_db.update_definition(222, r.id, DefinitionPatch(description="X")) is None
        assert definition_db.get_definition(111, r.id).description == "Run"

    def test_delete_definition(self, definition_db):
        t = definition_db.add_temporary(111, "Trip", "2024-06-01", "2024-06-03")
        deleted = definition_db.delete_definition(111, t.id)
        assert deleted.id == t.id
        assert definition_db.get_definition(111, t.id) is None

    def test_delete_not_owned_returns_none(self, definition_db):
        r = definition_db.add_recurring(111, "Run", [])
        assert definition_db.delete_definition(222, r.id) is None
        assert definition_db.get_definition(111, r.id) is not None


class TestEntryDB:
    def test_add_and_find_entry(self, entry_db):
        e = entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        found = entry_db.find_entry(111, "d" * 32, "2024-01-01")
        assert found is not None
        assert found.id == e.id
        assert found.status is Status.COMPLETED
        assert found.reason is None

    def test_duplicate_entry_raises_conflict(self, entry_db):
        entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        with pytest.raises(ConflictError):
            entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.NOT_COMPLETED)

    def test_same_definition_other_day_allowed(self, entry_db):
        entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        entry_db.add_entry(111, "d" * 32, "2024-01-02", Status.COMPLETED)
        assert len(entry_db.list_entries(111, "2024-01-01", "2024-01-02")) == 2

    def test_get_entry_scoped_to_owner(self, entry_db):
        e = entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        assert entry_db.get_entry(222, e.id) is None

    def test_list_entries_inclusive_range(self, entry_db):
        for day in ("2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"):
            entry_db.add_entry(111, "d" * 32, day, Status.COMPLETED)
        days = [e.date for e in entry_db.list_entries(111, "2024-01-02", "2024-01-03")]
        assert days == ["2024-01-02", "2024-01-03"]

    def test_update_entry_status_and_reason(self, entry_db):
        e = entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.NOT_COMPLETED)
        updated = entry_db.update_entry(111, e.id, reason="rain")
        assert updated.reason == "rain"
        updated = entry_db.update_entry(111, e.id, status=Status.COMPLETED, clear_reason=True)
        assert updated.status is Status.COMPLETED
        assert updated.reason is None

    def test_update_entry_not_owned_returns_none(self, entry_db):
        e = entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.NOT_COMPLETED)
        assert entry_db.update_entry(222, e.id, status=Status.COMPLETED) is None
        assert entry_db.get_entry(111, e.id).status is Status.NOT_COMPLETED

    def test_delete_entry(self, entry_db):
        e = entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        assert entry_db.delete_entry(111, e.id).id == e.id
        assert entry_db.get_entry(111, e.id) is None
        assert entry_db.delete_entry(111, e.id) is None

    def test_delete_for_definition_scoped(self, entry_db, count_entries):
        entry_db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        entry_db.add_entry(111, "d" * 32, "2024-01-02", Status.COMPLETED)
        entry_db.add_entry(111, "e" * 32, "2024-01-01", Status.COMPLETED)
        entry_db.add_entry(222, "d" * 32, "2024-01-01", Status.COMPLETED)
        assert entry_db.delete_for_definition(111, "d" * 32) == 2
        assert count_entries(111, "d" * 32) == 0
        assert count_entries(111, "e" * 32) == 1
        assert count_entries(222, "d" * 32) == 1


class TestStorageErrors:
    def test_locked_database_raises_storage_unavailable(self, tmp_db_path):
        db = EntryDB(db_path=tmp_db_path, timeout=0.05)
        blocker = sqlite3.connect(tmp_db_path)
        blocker.execute("BEGIN EXCLUSIVE")
        try:
            with pytest.raises(StorageUnavailableError):
                db.add_entry(111, "d" * 32, "2024-01-01", Status.COMPLETED)
        finally:
            blocker.rollback()
            blocker.close()

    def test_stores_share_one_file(self, tmp_db_path):
        DefinitionDB(db_path=tmp_db_path)
        EntryDB(db_path=tmp_db_path)
        conn = sqlite3.connect(tmp_db_path)
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        conn.close()
        assert {"recurring_definitions", "temporary_definitions", "entries"} <= tables
