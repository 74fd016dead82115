"""Natural-language reminders."""

from datetime import datetime

from telegram import Update
from telegram.ext import ContextTypes

from .. import config, db
from ..timeparse import parse_reminder_time
from .common import (
    BELL_EMOJI,
    ERROR_EMOJI,
    INFO_EMOJI,
    SUCCESS_EMOJI,
    chat_id,
    command_rest,
    parse_short_id,
    service,
)

USAGE = (
    f"{ERROR_EMOJI} Usage: /remind <when> <what>\n"
    "Examples:\n"
    "/remind 15:30 doctor appointment\n"
    "/remind +30m meeting\n"
    "/remind in 2 hours call mom\n"
    "/remind tomorrow pay rent\n"
    "/remind evening water the plants\n"
    "Cancel with /remind cancel <id>"
)


def format_when(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, config.TZ).strftime("%Y-%m-%d %H:%M")


async def remind_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Schedule or cancel a reminder."""
    args = context.args or []
    if not args:
        await update.message.reply_text(USAGE)
        return
    user = chat_id(update)
    scheduler = service(context, "reminders")
    if scheduler is None:
        await update.message.reply_text(f"{ERROR_EMOJI} Reminders are not available")
        return

    if args[0].lower() == "cancel" and len(args) == 2:
        reminder_id = parse_short_id(args[1])
        if reminder_id is None:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /remind cancel <id>")
            return
        if await scheduler.cancel(user, reminder_id):
            await update.message.reply_text(
                f"{SUCCESS_EMOJI} Reminder #{reminder_id} cancelled"
            )
        else:
            await update.message.reply_text(
                f"{ERROR_EMOJI} No active reminder #{reminder_id}"
            )
        return

    text = command_rest(update, 1)
    now = datetime.now(config.TZ)
    parsed = parse_reminder_time(text, now)
    if parsed is None:
        await update.message.reply_text(
            f"{ERROR_EMOJI} I could not find a time in that.\n\n{USAGE}"
        )
        return
    if not parsed.message:
        await update.message.reply_text(f"{ERROR_EMOJI} What should I remind you about?")
        return
    if len(parsed.message) > config.MAX_REMINDER_LENGTH:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Reminders can be at most "
            f"{config.MAX_REMINDER_LENGTH} characters"
        )
        return
    if parsed.remind_at <= now:
        await update.message.reply_text(f"{ERROR_EMOJI} That time is in the past")
        return
    reminder = await scheduler.schedule(user, parsed.message, parsed.remind_at)
    await update.message.reply_text(
        f"{SUCCESS_EMOJI} Reminder #{reminder.id} set for "
        f"{format_when(reminder.remind_at)}\n{reminder.message}"
    )


async def reminders_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List upcoming reminders."""
    reminders = await db.list_user_reminders(chat_id(update))
    if not reminders:
        await update.message.reply_text(f"{INFO_EMOJI} No upcoming reminders")
        return
    lines = [f"{BELL_EMOJI} Upcoming reminders"]
    lines.extend(
        f"#{r.id} {format_when(r.remind_at)} {r.message}" for r in reminders
    )
    await update.message.reply_text("\n".join(lines))
