"""
Habit Tracker — Daily check-in reminder.

A proactive daily push listing each user's items that are still unchecked
for today. Depends on the NotificationPort protocol, not on Telegram.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from habit_tracker.core.schedule_service import ScheduleService
    from habit_tracker.data.models import DisplayItem
    from habit_tracker.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def build_reminder_text(items: list[DisplayItem], day: date) -> str | None:
    """Reminder body for `day`, or None when nothing is left to check in."""
    pending = [item for item in items if item.status is None]
    if not pending:
        return None

    noun = "item" if len(pending) == 1 else "items"
    lines = [f"Good morning! {len(pending)} {noun} to check in for {day.isoformat()}:"]
    for item in pending:
        marker = " (temporary)" if item.is_temporary else ""
        lines.append(f"• {item.description}{marker}")
    lines.append("\nUse /today to check in.")
    return "\n".join(lines)


async def send_checkin_reminders(
    notifier: NotificationPort,
    service: ScheduleService,
    day: date | None = None,
) -> int:
    """Send the reminder for `day` to every registered user. Returns how many were sent.

    `day` defaults to the service's UTC today; the scheduled job passes the
    local day in TIMEZONE. A failure for one user is logged and does not stop
    the others.
    """
    today = day or service.today()
    try:
        users = service.list_users()
    except Exception as exc:
        logger.error("Reminder: could not load users: %s", exc)
        return 0

    sent = 0
    for user in users:
        try:
            items = service.list_active_items(user.user_id, today)
            text = build_reminder_text(items, today)
            if text is None:
                continue
            await notifier.send_message(user.user_id, text)
            sent += 1
            logger.info("Check-in reminder sent to user %d", user.user_id)
        except Exception as exc:
            logger.error("Failed to send check-in reminder to %d: %s", user.user_id, exc)

    return sent
