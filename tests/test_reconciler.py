"""Tests for habit_tracker.core.reconciler — toggle state machine and reasons."""

from unittest.mock import MagicMock

import pytest

from habit_tracker.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from habit_tracker.core.reconciler import CheckinReconciler, parse_status
from habit_tracker.data.models import Entry, RecurringDefinition, Status


@pytest.fixture
def reconciler(definition_db, entry_db):
    return CheckinReconciler(definition_db, entry_db)


@pytest.fixture
def run(definition_db):
    return definition_db.add_recurring(111, "Run", [1, 3, 5])


MONDAY = "2024-01-01"


class TestParseStatus:
    def test_accepts_enum_and_string(self):
        assert parse_status(Status.COMPLETED) is Status.COMPLETED
        assert parse_status("not_completed") is Status.NOT_COMPLETED

    @pytest.mark.parametrize("bad", ["done", "", None])
    def test_rejects_unknown(self, bad):
        with pytest.raises(InvalidArgumentError):
            parse_status(bad)


class TestToggle:
    def test_unset_to_set(self, reconciler, run, entry_db):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.COMPLETED)
        assert entry is not None
        assert entry.status is Status.COMPLETED
        assert entry.reason is None
        assert entry_db.find_entry(111, run.id, MONDAY).id == entry.id

    def test_same_status_twice_unsets_and_third_restores(self, reconciler, run, entry_db):
        assert reconciler.toggle(111, run.id, MONDAY, "completed") is not None
        assert reconciler.toggle(111, run.id, MONDAY, "completed") is None
        assert entry_db.find_entry(111, run.id, MONDAY) is None
        third = reconciler.toggle(111, run.id, MONDAY, "completed")
        assert third.status is Status.COMPLETED

    def test_switch_status_updates_in_place(self, reconciler, run):
        first = reconciler.toggle(111, run.id, MONDAY, Status.COMPLETED)
        second = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        assert second.id == first.id
        assert second.status is Status.NOT_COMPLETED

    def test_completing_clears_reason(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        reconciler.set_reason(111, entry.id, "knee hurts")
        done = reconciler.toggle(111, run.id, MONDAY, Status.COMPLETED)
        assert done.status is Status.COMPLETED
        assert done.reason is None

    def test_unset_removes_reason_with_entry(self, reconciler, run, entry_db, count_entries):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        reconciler.set_reason(111, entry.id, "rain")
        assert reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED) is None
        again = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        assert again.reason is None
        assert count_entries(111, run.id) == 1

    def test_other_users_definition_not_found(self, reconciler, run, entry_db):
        with pytest.raises(NotFoundError):
            reconciler.toggle(222, run.id, MONDAY, Status.COMPLETED)
        assert entry_db.find_entry(222, run.id, MONDAY) is None

    def test_missing_definition_not_found(self, reconciler):
        with pytest.raises(NotFoundError):
            reconciler.toggle(111, "f" * 32, MONDAY, Status.COMPLETED)

    def test_day_not_scheduled_rejected(self, reconciler, run):
        with pytest.raises(InvalidArgumentError):
            reconciler.toggle(111, run.id, "2024-01-02", Status.COMPLETED)  # Tuesday

    def test_temporary_outside_range_rejected(self, reconciler, definition_db):
        t = definition_db.add_temporary(111, "Pills", "2024-06-01", "2024-06-03")
        reconciler.toggle(111, t.id, "2024-06-03", Status.COMPLETED)
        with pytest.raises(InvalidArgumentError):
            reconciler.toggle(111, t.id, "2024-06-04", Status.COMPLETED)

    def test_invalid_status_rejected(self, reconciler, run):
        with pytest.raises(InvalidArgumentError):
            reconciler.toggle(111, run.id, MONDAY, "skipped")

    def test_malformed_date_rejected(self, reconciler, run):
        with pytest.raises(InvalidArgumentError):
            reconciler.toggle(111, run.id, "01/01/2024", Status.COMPLETED)


class TestConcurrentInsert:
    def test_lost_insert_race_replays_against_winner(self):
        definition = RecurringDefinition(id="d" * 32, user_id=111, description="Run")
        winner = Entry(
            id="w" * 32, user_id=111, definition_id=definition.id,
            date=MONDAY, status=Status.NOT_COMPLETED,
        )
        definitions = MagicMock()
        definitions.get_definition.return_value = definition
        entries = MagicMock()
        entries.find_entry.side_effect = [None, winner]
        entries.add_entry.side_effect = ConflictError("UNIQUE constraint failed")
        entries.update_entry.return_value = Entry(
            id=winner.id, user_id=111, definition_id=definition.id,
            date=MONDAY, status=Status.COMPLETED,
        )

        result = CheckinReconciler(definitions, entries).toggle(
            111, definition.id, MONDAY, Status.COMPLETED,
        )

        assert result.status is Status.COMPLETED
        entries.update_entry.assert_called_once_with(
            111, winner.id, status=Status.COMPLETED, clear_reason=True,
        )


class TestSetReason:
    def test_sets_reason_on_not_completed(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        updated = reconciler.set_reason(111, entry.id, "  sick  ")
        assert updated.reason == "sick"

    def test_empty_reason_clears(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        reconciler.set_reason(111, entry.id, "sick")
        assert reconciler.set_reason(111, entry.id, "").reason is None

    def test_rejected_on_completed(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.COMPLETED)
        with pytest.raises(InvalidArgumentError):
            reconciler.set_reason(111, entry.id, "why?")

    def test_length_cap(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        assert reconciler.set_reason(111, entry.id, "x" * 100).reason == "x" * 100
        with pytest.raises(InvalidArgumentError):
            reconciler.set_reason(111, entry.id, "x" * 101)

    def test_other_users_entry_not_found(self, reconciler, run):
        entry = reconciler.toggle(111, run.id, MONDAY, Status.NOT_COMPLETED)
        with pytest.raises(NotFoundError):
            reconciler.set_reason(222, entry.id, "not mine")
