"""Tests for habit_tracker.core.dates — whole-day UTC normalization."""

from datetime import date, datetime, timedelta, timezone

import pytest

from habit_tracker.core.dates import days_between, to_day, to_iso_day
from habit_tracker.core.errors import InvalidArgumentError


class TestToDay:
    def test_date_passthrough(self):
        assert to_day(date(2024, 6, 1)) == date(2024, 6, 1)

    def test_iso_date_string(self):
        assert to_day("2024-06-01") == date(2024, 6, 1)

    def test_iso_datetime_with_z(self):
        assert to_day("2024-06-01T00:00:00.000Z") == date(2024, 6, 1)

    def test_aware_datetime_converted_to_utc(self):
        # 01:00 at UTC+3 is still the previous day in UTC
        tz = timezone(timedelta(hours=3))
        assert to_day(datetime(2024, 6, 2, 1, 0, tzinfo=tz)) == date(2024, 6, 1)

    def test_naive_datetime_taken_as_is(self):
        assert to_day(datetime(2024, 6, 1, 23, 59)) == date(2024, 6, 1)

    @pytest.mark.parametrize("bad", ["", "  ", "2024-13-01", "yesterday-ish", "06/01/2024"])
    def test_malformed_strings_rejected(self, bad):
        with pytest.raises(InvalidArgumentError):
            to_day(bad)

    def test_non_date_types_rejected(self):
        with pytest.raises(InvalidArgumentError):
            to_day(20240601)


def test_to_iso_day():
    assert to_iso_day("2024-06-01T12:30:00+00:00") == "2024-06-01"


def test_days_between_inclusive():
    days = days_between(date(2024, 5, 31), date(2024, 6, 2))
    assert days == [date(2024, 5, 31), date(2024, 6, 1), date(2024, 6, 2)]


def test_days_between_single_day():
    assert days_between(date(2024, 6, 1), date(2024, 6, 1)) == [date(2024, 6, 1)]
