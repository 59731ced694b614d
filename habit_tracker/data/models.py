"""
Habit Tracker — Data Models.

Two kinds of schedule-item definitions (recurring and temporary) share one
envelope: id, owner, description, creation time. Check-in entries point at a
definition by id only; the description is always read from the definition.

All calendar days are ISO strings (YYYY-MM-DD), i.e. whole UTC days.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import ClassVar, Union

DESCRIPTION_MAX_LENGTH = 80
REASON_MAX_LENGTH = 100

# 0=Sunday .. 6=Saturday
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


class DefinitionKind(Enum):
    RECURRING = "recurring"
    TEMPORARY = "temporary"


class Status(Enum):
    COMPLETED = "completed"
    NOT_COMPLETED = "not_completed"


def weekday_index(day: date) -> int:
    """Weekday of `day` with Sunday as 0."""
    return day.isoweekday() % 7


@dataclass
class User:
    """A registered user. `user_id` is whatever the identity provider hands us."""

    user_id: int
    display_name: str
    created_at: str = ""


@dataclass
class RecurringDefinition:
    """A "general" schedule item, optionally limited to some weekdays.

    An empty `weekdays` list means the item applies every day.
    """

    id: str
    user_id: int
    description: str
    weekdays: list[int] = field(default_factory=list)
    created_at: str = ""

    kind: ClassVar[DefinitionKind] = DefinitionKind.RECURRING

    def is_active_on(self, day: date) -> bool:
        if not self.weekdays:
            return True
        return weekday_index(day) in self.weekdays

    def schedule_label(self) -> str:
        if not self.weekdays:
            return "every day"
        return ", ".join(WEEKDAY_NAMES[d] for d in self.weekdays)


@dataclass
class TemporaryDefinition:
    """A schedule item valid only between two days, both inclusive."""

    id: str
    user_id: int
    description: str
    start_date: str
    end_date: str
    created_at: str = ""

    kind: ClassVar[DefinitionKind] = DefinitionKind.TEMPORARY

    def is_active_on(self, day: date) -> bool:
        return self.start_date <= day.isoformat() <= self.end_date

    def schedule_label(self) -> str:
        if self.start_date == self.end_date:
            return self.start_date
        return f"{self.start_date} → {self.end_date}"


Definition = Union[RecurringDefinition, TemporaryDefinition]


@dataclass
class Entry:
    """A check-in: the status of one definition on one day."""

    id: str
    user_id: int
    definition_id: str
    date: str
    status: Status
    reason: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class DisplayItem:
    """A definition active on a given day, joined with its entry (if any)."""

    definition_id: str
    description: str
    is_temporary: bool
    date: str
    status: Status | None = None
    reason: str | None = None
    entry_id: str | None = None

    @classmethod
    def build(cls, definition: Definition, day: str, entry: Entry | None = None) -> DisplayItem:
        return cls(
            definition_id=definition.id,
            description=definition.description,
            is_temporary=definition.kind is DefinitionKind.TEMPORARY,
            date=day,
            status=entry.status if entry else None,
            reason=entry.reason if entry else None,
            entry_id=entry.id if entry else None,
        )


@dataclass
class DefinitionPatch:
    """Fields to change on a definition. None means "leave as is".

    For recurring definitions an empty `weekdays` list clears the restriction.
    """

    description: str | None = None
    weekdays: list[int] | None = None
    start_date: str | None = None
    end_date: str | None = None
