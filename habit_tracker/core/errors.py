"""Exceptions raised by the schedule core.

UI adapters catch these and turn them into user-facing messages.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all habit tracker failures."""


class InvalidArgumentError(TrackerError):
    """Malformed date, out-of-range weekday, missing field or oversized text."""


class NotFoundError(TrackerError):
    """Definition or entry is absent or not owned by the caller."""


class ConflictError(TrackerError):
    """A uniqueness constraint was violated (duplicate check-in for a day)."""


class StorageUnavailableError(TrackerError):
    """The underlying database failed or timed out."""
