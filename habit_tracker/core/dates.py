"""
Habit Tracker — Day normalization.

Every date the core handles is a whole UTC day, kept as an ISO string.
Callers may pass `date`, `datetime` or a string; anything else is rejected.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from habit_tracker.core.errors import InvalidArgumentError


def to_day(value: date | datetime | str) -> date:
    """Normalize `value` to its UTC calendar day.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    Strings may be ISO dates ("2024-06-01") or ISO datetimes, including a
    trailing "Z".
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidArgumentError("Date is required")
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            return to_day(datetime.fromisoformat(text))
        except ValueError as exc:
            raise InvalidArgumentError(f"Malformed date: {value!r}") from exc
    raise InvalidArgumentError(f"Malformed date: {value!r}")


def to_iso_day(value: date | datetime | str) -> str:
    return to_day(value).isoformat()


def days_between(start: date, end: date) -> list[date]:
    """All days from `start` to `end`, both inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
