"""
Habit Tracker — Telegram Bot.

The Telegram chat is the user interface: daily check-ins with inline ✓ / ✕
buttons, setting up recurring and temporary items, and read-only views of
other users' schedules.

The Telegram user id is the identity handed to the schedule core; every
handler passes it explicitly.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from datetime import time as dt_time
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    Update,
)
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)
from telegram.helpers import escape_markdown

from habit_tracker.config import settings
from habit_tracker.core.dates import to_day
from habit_tracker.core.definitions import clean_description
from habit_tracker.core.errors import (
    InvalidArgumentError,
    NotFoundError,
    TrackerError,
)
from habit_tracker.core.resolver import MAX_RANGE_DAYS
from habit_tracker.data.models import (
    REASON_MAX_LENGTH,
    WEEKDAY_NAMES,
    DefinitionKind,
    DefinitionPatch,
    DisplayItem,
    Status,
    weekday_index,
)

if TYPE_CHECKING:
    from habit_tracker.core.schedule_service import ScheduleService
    from habit_tracker.data.models import Definition, User
    from habit_tracker.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def _is_allowed(user_id: int) -> bool:
    return not settings.ALLOWED_USER_IDS or user_id in settings.ALLOWED_USER_IDS


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, Any]],
) -> Callable[..., Coroutine[Any, Any, Any]]:
    """Decorator that silently ignores users outside ALLOWED_USER_IDS.

    With an empty allow-list anyone can use the bot.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Any:
        user = update.effective_user
        if user is None or not _is_allowed(user.id):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return None
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_STATUS_ICON = {
    Status.COMPLETED: "✅",
    Status.NOT_COMPLETED: "❌",
    None: "▫️",
}

_STATUS_CODE = {"c": Status.COMPLETED, "n": Status.NOT_COMPLETED}

_WEEKDAY_WORDS = {name.lower(): i for i, name in enumerate(WEEKDAY_NAMES)}

_EVERY_DAY_WORDS = {"every", "everyday", "daily", "all", "any"}


def _service(context: ContextTypes.DEFAULT_TYPE) -> ScheduleService:
    return context.bot_data["service"]


def _error_text(exc: TrackerError) -> str:
    """User-facing text for a core error."""
    if isinstance(exc, (NotFoundError, InvalidArgumentError)):
        return f"⚠️ {exc}"
    return "Something went wrong on our side. Please try again in a moment."


def _register(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Register the caller on first contact and return their user id."""
    tg_user = update.effective_user
    name = tg_user.username or tg_user.first_name or ""
    _service(context).register_user(tg_user.id, name)
    return tg_user.id


def _parse_day_arg(text: str | None, today: date) -> date:
    """Parse 'today' / 'yesterday' / 'tomorrow' or an ISO date."""
    if not text:
        return today
    word = text.strip().lower()
    if word == "today":
        return today
    if word == "yesterday":
        return today - timedelta(days=1)
    if word == "tomorrow":
        return today + timedelta(days=1)
    return to_day(word)


def _parse_weekdays(text: str) -> list[int] | None:
    """Parse a weekday selection into Sunday-based indices.

    Accepts 'every' / 'daily', names ('mon,wed,fri', 'monday tuesday') or
    numbers ('1,3,5'). Returns [] for every day, None if unparseable.
    """
    text = text.strip().lower()
    if not text:
        return None
    if text in _EVERY_DAY_WORDS:
        return []
    days: list[int] = []
    for token in text.replace(",", " ").split():
        if token.isdigit():
            value = int(token)
            if not 0 <= value <= 6:
                return None
            days.append(value)
        elif token[:3] in _WEEKDAY_WORDS:
            days.append(_WEEKDAY_WORDS[token[:3]])
        else:
            return None
    return sorted(set(days))


def _parse_date_range(text: str) -> tuple[str, str] | None:
    """Parse 'YYYY-MM-DD YYYY-MM-DD' (a single date means a one-day range)."""
    parts = text.replace(",", " ").split()
    if len(parts) not in (1, 2):
        return None
    try:
        start = to_day(parts[0])
        end = to_day(parts[-1])
    except InvalidArgumentError:
        return None
    return start.isoformat(), end.isoformat()


def _day_title(day: date) -> str:
    return f"{day.isoformat()} ({WEEKDAY_NAMES[weekday_index(day)]})"


def _format_item_line(n: int, item: DisplayItem) -> str:
    line = f"{n}. {_STATUS_ICON[item.status]} {escape_markdown(item.description)}"
    if item.is_temporary:
        line += " _(temporary)_"
    if item.reason:
        line += f" — {escape_markdown(item.reason)}"
    return line


def _render_checkin(
    items: list[DisplayItem], day: date, readonly: bool = False, owner: str | None = None,
) -> tuple[str, InlineKeyboardMarkup | None]:
    """Build the check-in message text and its button grid for one day."""
    # Names stay outside the bold markers: legacy Markdown ignores escapes inside entities
    if owner:
        title = f"{escape_markdown(owner)}: *{_day_title(day)}*"
    else:
        title = f"*Check-in for {_day_title(day)}*"
    if not items:
        return f"{title}\n\nNothing scheduled for this day.", None

    lines = [title, ""]
    lines.extend(_format_item_line(n, item) for n, item in enumerate(items, start=1))
    if readonly:
        return "\n".join(lines), None

    iso = day.isoformat()
    keyboard = []
    for n, item in enumerate(items, start=1):
        row = [
            InlineKeyboardButton(f"{n} ✓", callback_data=f"t:{item.definition_id}:{iso}:c"),
            InlineKeyboardButton(f"{n} ✕", callback_data=f"t:{item.definition_id}:{iso}:n"),
        ]
        if item.status is Status.NOT_COMPLETED and item.entry_id:
            row.append(InlineKeyboardButton(f"{n} reason", callback_data=f"r:{item.entry_id}"))
        keyboard.append(row)
    return "\n".join(lines), InlineKeyboardMarkup(keyboard)


def _format_definition(n: int, definition: Definition) -> str:
    kind = "temporary" if definition.kind is DefinitionKind.TEMPORARY else "recurring"
    return (
        f"`{n}` — {escape_markdown(definition.description)} "
        f"({kind}: {definition.schedule_label()})"
    )


def _definition_by_number(
    context: ContextTypes.DEFAULT_TYPE, user_id: int, arg: str,
) -> Definition:
    """Map the number shown by /items back to a definition."""
    try:
        n = int(arg)
    except ValueError as exc:
        raise InvalidArgumentError(f"'{arg}' is not an item number. Use /items to see them.") from exc
    definitions = _service(context).list_definitions(user_id)
    if not 1 <= n <= len(definitions):
        raise NotFoundError(f"There is no item {n}. Use /items to see them.")
    return definitions[n - 1]


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — register and welcome."""
    try:
        user = _service(context).register_user(
            update.effective_user.id,
            update.effective_user.username or update.effective_user.first_name or "",
        )
    except TrackerError as exc:
        logger.error("/start error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    await update.message.reply_text(
        f"Welcome to *Habit Tracker*, {escape_markdown(user.display_name)}!\n\n"
        "• Use /add to set up a recurring or temporary item\n"
        "• Use /today to check in\n"
        "• Use /users and /view to see how others are doing\n\n"
        "Type /help for the full command list.",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/today [date] — Check in (date: today, yesterday, YYYY-MM-DD)\n"
        "/add — Add a recurring or temporary item\n"
        "/items — List your items\n"
        "/rename <n> <text> — Change an item's description\n"
        "/days <n> <days> — Change weekdays (e.g. mon,wed,fri or every)\n"
        "/range <n> <start> <end> — Change a temporary item's dates\n"
        "/delete — Delete an item and its check-ins\n"
        "/users — List users\n"
        "/view <name> [date] — See someone's day\n"
        "/history <name> [days] — See someone's recent days\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today [date] — show the day's items with check-in buttons."""
    service = _service(context)
    try:
        user_id = _register(update, context)
        day = _parse_day_arg(context.args[0] if context.args else None, service.today())
        items = service.list_active_items(user_id, day)
    except TrackerError as exc:
        logger.error("/today error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    text, markup = _render_checkin(items, day)
    if markup is None and not items:
        text += "\nUse /add to create one."
    await update.message.reply_text(text, parse_mode="Markdown", reply_markup=markup)


async def _handle_toggle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a ✓ / ✕ tap: toggle the status and redraw the day."""
    query = update.callback_query
    await query.answer()

    user = query.from_user
    if user is None or not _is_allowed(user.id):
        return

    _, definition_id, iso, code = query.data.split(":")
    service = _service(context)
    try:
        service.toggle_status(user.id, definition_id, iso, _STATUS_CODE[code])
        day = to_day(iso)
        items = service.list_active_items(user.id, day)
    except TrackerError as exc:
        logger.error("toggle callback error: %s", exc)
        await query.edit_message_text(_error_text(exc))
        return

    text, markup = _render_checkin(items, day)
    await query.edit_message_text(text, parse_mode="Markdown", reply_markup=markup)


async def _handle_reason_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a "reason" tap: the next text message becomes the reason."""
    query = update.callback_query
    await query.answer()

    user = query.from_user
    if user is None or not _is_allowed(user.id):
        return

    context.user_data["awaiting_reason"] = query.data.split(":", 1)[1]
    await query.message.reply_text(
        f"Why wasn't it completed? Send a short reason (up to {REASON_MAX_LENGTH} "
        "characters), or send - to clear it."
    )


async def _handle_reason_text(text: str, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    entry_id = context.user_data.pop("awaiting_reason")
    reason = "" if text.strip() == "-" else text
    try:
        item = _service(context).set_reason(update.effective_user.id, entry_id, reason)
    except TrackerError as exc:
        logger.error("set reason error: %s", exc)
        if isinstance(exc, InvalidArgumentError) and len(reason.strip()) > REASON_MAX_LENGTH:
            context.user_data["awaiting_reason"] = entry_id
        await update.message.reply_text(_error_text(exc))
        return

    if item.reason:
        msg = f"📝 Reason saved for {escape_markdown(item.description)} on {item.date}."
    else:
        msg = f"Reason cleared for {escape_markdown(item.description)} on {item.date}."
    await update.message.reply_text(msg, parse_mode="Markdown")


# ---------------------------------------------------------------------------
# /add conversation
# ---------------------------------------------------------------------------

(
    ADD_KIND,
    ADD_DESCRIPTION,
    ADD_SCHEDULE,
) = range(3)

_KIND_WORDS = {
    "recurring": DefinitionKind.RECURRING,
    "general": DefinitionKind.RECURRING,
    "temporary": DefinitionKind.TEMPORARY,
    "temp": DefinitionKind.TEMPORARY,
}


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Handle /add — start item creation conversation."""
    _clear_add_data(context)
    await update.message.reply_text(
        "Is this a recurring item or a temporary one (only between two dates)?",
        reply_markup=ReplyKeyboardMarkup(
            [["recurring", "temporary"]], one_time_keyboard=True, resize_keyboard=True,
        ),
    )
    return ADD_KIND


async def add_kind(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    kind = _KIND_WORDS.get(update.message.text.strip().lower())
    if kind is None:
        await update.message.reply_text("Please answer 'recurring' or 'temporary'.")
        return ADD_KIND

    context.user_data["add_kind"] = kind
    await update.message.reply_text(
        "What's the item? (e.g., 'Run 5 km')", reply_markup=ReplyKeyboardRemove(),
    )
    return ADD_DESCRIPTION


async def add_description(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        description = clean_description(update.message.text)
    except InvalidArgumentError as exc:
        await update.message.reply_text(_error_text(exc))
        return ADD_DESCRIPTION

    context.user_data["add_description"] = description
    if context.user_data["add_kind"] is DefinitionKind.RECURRING:
        await update.message.reply_text(
            "Which days? Send 'every' for every day, or e.g. 'mon,wed,fri'."
        )
    else:
        await update.message.reply_text(
            "Which dates? Send start and end as YYYY-MM-DD YYYY-MM-DD "
            "(one date for a single day)."
        )
    return ADD_SCHEDULE


async def add_schedule(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    kind: DefinitionKind = context.user_data["add_kind"]
    description: str = context.user_data["add_description"]
    text = update.message.text
    service = _service(context)

    try:
        user_id = _register(update, context)
        if kind is DefinitionKind.RECURRING:
            weekdays = _parse_weekdays(text)
            if weekdays is None:
                await update.message.reply_text(
                    "I couldn't read those days. Try 'every', 'mon,wed,fri' or '1,3,5'."
                )
                return ADD_SCHEDULE
            definition = service.create_definition(
                user_id, kind, description, weekdays=weekdays,
            )
        else:
            date_range = _parse_date_range(text)
            if date_range is None:
                await update.message.reply_text(
                    "I couldn't read those dates. Use YYYY-MM-DD YYYY-MM-DD."
                )
                return ADD_SCHEDULE
            definition = service.create_definition(
                user_id, kind, description,
                start_date=date_range[0], end_date=date_range[1],
            )
    except InvalidArgumentError as exc:
        await update.message.reply_text(_error_text(exc))
        return ADD_SCHEDULE
    except TrackerError as exc:
        logger.error("/add error: %s", exc)
        _clear_add_data(context)
        await update.message.reply_text(_error_text(exc))
        return ConversationHandler.END

    _clear_add_data(context)
    await update.message.reply_text(
        f"✅ Added {escape_markdown(definition.description)} "
        f"({definition.schedule_label()}).",
        parse_mode="Markdown",
    )
    return ConversationHandler.END


async def add_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Cancel item creation."""
    _clear_add_data(context)
    await update.message.reply_text(
        "Item creation cancelled.", reply_markup=ReplyKeyboardRemove(),
    )
    return ConversationHandler.END


def _clear_add_data(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Remove all /add keys from user_data."""
    for k in ("add_kind", "add_description"):
        context.user_data.pop(k, None)


# ---------------------------------------------------------------------------
# Item management
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_items(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /items — list the caller's definitions, numbered."""
    try:
        user_id = _register(update, context)
        definitions = _service(context).list_definitions(user_id)
    except TrackerError as exc:
        logger.error("/items error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    if not definitions:
        await update.message.reply_text("You have no items yet. Use /add to create one.")
        return

    lines = ["*Your items:*\n"]
    lines.extend(_format_definition(n, d) for n, d in enumerate(definitions, start=1))
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def _update_item(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    usage: str,
    build_patch: Callable[[list[str]], DefinitionPatch],
) -> None:
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(usage)
        return

    service = _service(context)
    try:
        user_id = _register(update, context)
        definition = _definition_by_number(context, user_id, args[0])
        updated = service.update_definition(user_id, definition.id, build_patch(args[1:]))
    except TrackerError as exc:
        logger.error("item update error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    await update.message.reply_text(
        f"✅ Updated {escape_markdown(updated.description)} ({updated.schedule_label()}).",
        parse_mode="Markdown",
    )


def _rename_patch(args: list[str]) -> DefinitionPatch:
    return DefinitionPatch(description=" ".join(args))


def _days_patch(args: list[str]) -> DefinitionPatch:
    weekdays = _parse_weekdays(" ".join(args))
    if weekdays is None:
        raise InvalidArgumentError("I couldn't read those days. Try 'every', 'mon,wed,fri' or '1,3,5'.")
    return DefinitionPatch(weekdays=weekdays)


def _range_patch(args: list[str]) -> DefinitionPatch:
    date_range = _parse_date_range(" ".join(args))
    if date_range is None:
        raise InvalidArgumentError("I couldn't read those dates. Use YYYY-MM-DD YYYY-MM-DD.")
    return DefinitionPatch(start_date=date_range[0], end_date=date_range[1])


@authorized_only
async def cmd_rename(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /rename <n> <text>."""
    await _update_item(update, context, "Usage: /rename <n> <new description>", _rename_patch)


@authorized_only
async def cmd_days(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /days <n> <weekdays>."""
    await _update_item(update, context, "Usage: /days <n> <every | mon,wed,fri>", _days_patch)


@authorized_only
async def cmd_range(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /range <n> <start> [end]."""
    await _update_item(update, context, "Usage: /range <n> <YYYY-MM-DD> <YYYY-MM-DD>", _range_patch)


@authorized_only
async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete — show the caller's items as buttons to pick from."""
    try:
        user_id = _register(update, context)
        definitions = _service(context).list_definitions(user_id)
    except TrackerError as exc:
        logger.error("/delete error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    if not definitions:
        await update.message.reply_text("You have no items to delete.")
        return

    keyboard = [
        [InlineKeyboardButton(d.description, callback_data=f"del:{d.id}")]
        for d in definitions
    ]
    await update.message.reply_text(
        "Which item do you want to delete? Its check-in history goes with it.",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )


async def _handle_delete_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the inline button tap to delete an item."""
    query = update.callback_query
    await query.answer()

    user = query.from_user
    if user is None or not _is_allowed(user.id):
        return

    definition_id = query.data.split(":", 1)[1]
    service = _service(context)
    try:
        definition = service.get_definition(user.id, definition_id)
        service.delete_definition(user.id, definition_id)
    except TrackerError as exc:
        logger.error("delete callback error: %s", exc)
        await query.edit_message_text(_error_text(exc))
        return

    await query.edit_message_text(
        f"✅ Deleted {escape_markdown(definition.description)} and its check-ins.",
        parse_mode="Markdown",
    )


# ---------------------------------------------------------------------------
# Other users (read-only)
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_users(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /users — list registered users."""
    try:
        _register(update, context)
        users = _service(context).list_users()
    except TrackerError as exc:
        logger.error("/users error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    lines = ["*Users:*\n"]
    lines.extend(f"• {escape_markdown(u.display_name)}" for u in users)
    lines.append("\nUse /view <name> to see someone's day.")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


def _find_user_in_args(service: ScheduleService, args: list[str]) -> tuple[User, list[str]]:
    """Match the longest run of leading args against a display name.

    Telegram splits command arguments on spaces, so "Mary Ann" arrives as two.
    Returns the user and the remaining args.
    """
    for n in range(len(args), 1, -1):
        try:
            return service.find_user_by_name(" ".join(args[:n])), args[n:]
        except NotFoundError:
            continue
    return service.find_user_by_name(args[0]), args[1:]


@authorized_only
async def cmd_view(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /view <name> [date] — another user's day, without buttons."""
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /view <name> [date]")
        return

    service = _service(context)
    try:
        target, rest = _find_user_in_args(service, args)
        day = _parse_day_arg(rest[0] if rest else None, service.today())
        items = service.view_user_items(target.user_id, day)
    except TrackerError as exc:
        logger.error("/view error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    text, _ = _render_checkin(items, day, readonly=True, owner=target.display_name)
    await update.message.reply_text(text, parse_mode="Markdown")


def _format_history(owner: str, history: dict[str, list[DisplayItem]]) -> str:
    lines = [f"{escape_markdown(owner)}: *last {len(history)} days*"]
    for iso in sorted(history, reverse=True):
        items = history[iso]
        if not items:
            continue
        done = sum(1 for i in items if i.status is Status.COMPLETED)
        lines.append(f"\n*{_day_title(to_day(iso))}* — {done}/{len(items)}")
        lines.extend(_format_item_line(n, item) for n, item in enumerate(items, start=1))
    if len(lines) == 1:
        lines.append("\nNothing scheduled in this period.")
    return "\n".join(lines)


@authorized_only
async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history <name> [days] — another user's recent check-ins."""
    args = context.args or []
    if not args:
        await update.message.reply_text("Usage: /history <name> [days]")
        return

    service = _service(context)
    try:
        target, rest = _find_user_in_args(service, args)
    except TrackerError as exc:
        logger.error("/history error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    days = 7
    if rest:
        try:
            days = int(rest[0])
        except ValueError:
            days = 0
        if len(rest) > 1 or not 1 <= days <= MAX_RANGE_DAYS:
            await update.message.reply_text(f"Days must be between 1 and {MAX_RANGE_DAYS}.")
            return

    today = service.today()
    try:
        history = service.view_user_history(
            target.user_id, today - timedelta(days=days - 1), today,
        )
    except TrackerError as exc:
        logger.error("/history error: %s", exc)
        await update.message.reply_text(_error_text(exc))
        return

    await update.message.reply_text(
        _format_history(target.display_name, history), parse_mode="Markdown",
    )


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text — a pending reason, otherwise a hint."""
    if context.user_data.get("awaiting_reason"):
        await _handle_reason_text(update.message.text, update, context)
        return
    await update.message.reply_text("Use /today to check in, or /help for all commands.")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    service: ScheduleService | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        service: Schedule service. Defaults to one backed by settings.DATABASE_PATH.
        notifier: Notification port. Defaults to TelegramNotifier on the app's bot.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if service is None:
        from habit_tracker.core.schedule_service import ScheduleService
        service = ScheduleService.from_database()

    if notifier is None:
        from habit_tracker.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    app.bot_data["service"] = service
    app.bot_data["notifier"] = notifier

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("items", cmd_items))
    app.add_handler(CommandHandler("rename", cmd_rename))
    app.add_handler(CommandHandler("days", cmd_days))
    app.add_handler(CommandHandler("range", cmd_range))
    app.add_handler(CommandHandler("delete", cmd_delete))
    app.add_handler(CommandHandler("users", cmd_users))
    app.add_handler(CommandHandler("view", cmd_view))
    app.add_handler(CommandHandler("history", cmd_history))
    app.add_handler(CallbackQueryHandler(
        _handle_toggle_callback, pattern=r"^t:[0-9a-f]{32}:\d{4}-\d{2}-\d{2}:[cn]$",
    ))
    app.add_handler(CallbackQueryHandler(_handle_reason_callback, pattern=r"^r:[0-9a-f]{32}$"))
    app.add_handler(CallbackQueryHandler(_handle_delete_callback, pattern=r"^del:[0-9a-f]{32}$"))

    # /add conversation handler
    _text = filters.TEXT & ~filters.COMMAND
    add_conv = ConversationHandler(
        entry_points=[CommandHandler("add", cmd_add)],
        states={
            ADD_KIND: [MessageHandler(_text, add_kind)],
            ADD_DESCRIPTION: [MessageHandler(_text, add_description)],
            ADD_SCHEDULE: [MessageHandler(_text, add_schedule)],
        },
        fallbacks=[CommandHandler("cancel", add_cancel)],
    )
    app.add_handler(add_conv)

    # Text messages (non-command)
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    _setup_daily_reminder(app, service, notifier)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_daily_reminder(
    app: Application,
    service: ScheduleService,
    notifier: NotificationPort,
) -> None:
    """Register the daily check-in reminder at REMINDER_HOUR in TIMEZONE."""
    from habit_tracker.core.reminder import send_checkin_reminders

    tz = ZoneInfo(settings.TIMEZONE)
    reminder_time = dt_time(hour=settings.REMINDER_HOUR, minute=0, tzinfo=tz)

    async def _reminder_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await send_checkin_reminders(notifier, service, datetime.now(tz).date())

    app.job_queue.run_daily(
        _reminder_job_callback,
        time=reminder_time,
        name="checkin_reminder",
    )

    logger.info(
        "Check-in reminder scheduled at %02d:00 %s",
        settings.REMINDER_HOUR,
        settings.TIMEZONE,
    )


def main() -> None:
    """Entry point: build the app and start polling. Logging is configured by main.py."""
    logger.info("Starting Habit Tracker bot...")
    app = build_app()
    app.run_polling()

