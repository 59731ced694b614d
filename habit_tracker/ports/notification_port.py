"""Notification port — how the reminder job reaches a user.

The reminder only knows this protocol; the bot wires in the Telegram adapter.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Delivers a text message to a user by id."""

    async def send_message(self, user_id: int, text: str) -> None: ...
