"""User registration, help, the pre-dispatch guard and the error handler."""

import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Set

from telegram import Update
from telegram.ext import ApplicationHandlerStop, ContextTypes

from .. import config, db
from ..notifier import is_unreachable
from .common import (
    COMMAND_CATEGORIES,
    ERROR_EMOJI,
    INFO_EMOJI,
    WAIT_EMOJI,
    WELCOME_EMOJI,
    service,
)

RATE_WINDOW = 60

# user id -> timestamps of recent updates
RATE_WINDOWS: Dict[int, Deque[float]] = defaultdict(deque)
# users already told they are rate limited in the current window
RATE_WARNED: Set[int] = set()


async def register_user(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    """Store the sender's profile and tell the admin about new users."""
    user = update.effective_user
    is_new = await db.upsert_user(
        user.id, user.username, user.first_name, user.last_name, user.language_code
    )
    if is_new:
        config.logger.info("new user %s (@%s)", user.id, user.username)
        notifier = service(context, "notifier")
        if notifier is not None:
            await notifier.notify_admin(
                f"{WELCOME_EMOJI} New user: {user.full_name} "
                f"(@{user.username or '-'}, {user.id})"
            )
    return is_new


def is_rate_limited(user_id: int, now: Optional[float] = None) -> bool:
    """Record an update from ``user_id`` and report whether it is over the limit."""
    now = time.time() if now is None else now
    window = RATE_WINDOWS[user_id]
    while window and now - window[0] > RATE_WINDOW:
        window.popleft()
    if len(window) >= config.RATE_LIMIT_PER_MINUTE:
        return True
    RATE_WARNED.discard(user_id)
    window.append(now)
    return False


async def pre_dispatch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Drop updates from banned or flooding users and record activity."""
    user = update.effective_user
    if user is None:
        return
    record = await db.get_user(user.id)
    if user.id != config.ADMIN_ID:
        if record is not None and record.is_banned:
            config.logger.info("dropping update from banned user %s", user.id)
            raise ApplicationHandlerStop
        if is_rate_limited(user.id):
            if user.id not in RATE_WARNED:
                RATE_WARNED.add(user.id)
                config.logger.warning("user %s is rate limited", user.id)
                if update.effective_message:
                    await update.effective_message.reply_text(
                        f"{WAIT_EMOJI} Too many requests, please slow down"
                    )
            raise ApplicationHandlerStop
    if record is None:
        await register_user(update, context)
    message = update.effective_message
    is_command = bool(message and message.text and message.text.startswith("/"))
    await db.touch_user(user.id, command=is_command)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Register the user and send a welcome message."""
    await register_user(update, context)
    await update.message.reply_text(
        f"{WELCOME_EMOJI} Welcome to {config.BOT_NAME}!\n"
        "Track crypto and stock prices, set alerts and reminders, keep notes "
        "and watchlists.\nSend /help to see all commands."
    )


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Display the commands available in the current mode."""
    lines: list[str] = []
    for module, commands in COMMAND_CATEGORIES.items():
        if module == "admin" or not config.is_module_active(module):
            continue
        lines.append(f"\n{module.capitalize()}")
        for name, desc in commands:
            lines.append(f"/{name} - {desc}")
    lines.append("\nReminder times: 15:30, +30m, in 2 hours, tomorrow, evening")
    await update.message.reply_text(f"{INFO_EMOJI} Commands" + "\n".join(lines))


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log handler errors, tell the admin and reply with a generic failure."""
    error = context.error
    config.logger.error("update %s caused error", update, exc_info=error)
    if not isinstance(update, Update):
        return
    user = update.effective_user
    if user is not None and is_unreachable(error):
        await db.set_user_flag(user.id, "is_blocked", True)
        return
    notifier = service(context, "notifier")
    if notifier is not None:
        await notifier.notify_admin(
            f"{ERROR_EMOJI} Error for user {user.id if user else '-'}: {error!r}"[:4000]
        )
    if update.effective_message:
        await update.effective_message.reply_text(
            f"{ERROR_EMOJI} Something went wrong, please try again later"
        )
