"""Admin commands and the scheduled admin reports."""

import asyncio
import functools
import os
import time
from collections import deque
from datetime import datetime
from io import BytesIO
from typing import Optional

import matplotlib
from matplotlib import dates as mdates
from matplotlib import pyplot as plt
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from .. import api, config, db
from ..keys import KeyManager
from ..notifier import TelegramNotifier, is_unreachable
from .common import (
    ERROR_EMOJI,
    INFO_EMOJI,
    SUCCESS_EMOJI,
    chat_id,
    command_rest,
    service,
)

matplotlib.use("Agg")

USERS_PAGE_SIZE = 10
BROADCAST_BATCH = 20
BROADCAST_WINDOW = 7 * 86400
MAX_LOG_LINES = 100


def admin_only(func):
    """Reject the command unless it comes from ``config.ADMIN_ID``."""

    @functools.wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if not config.ADMIN_ID or user is None or user.id != config.ADMIN_ID:
            config.logger.warning(
                "unauthorized admin command %s from %s",
                func.__name__,
                user.id if user else None,
            )
            await update.message.reply_text(f"{ERROR_EMOJI} Admins only")
            return
        await func(update, context)

    return wrapper


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes = seconds // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}h {minutes}m"


def format_stats(stats: dict) -> str:
    return (
        f"Users: {stats['users']} ({stats['active_24h']} active 24h, "
        f"{stats['blocked']} blocked, {stats['banned']} banned)\n"
        f"Active alerts: {stats['alerts']}\n"
        f"Active reminders: {stats['reminders']}\n"
        f"Notes: {stats['notes']}\n"
        f"Watchlists: {stats['watchlists']}\n"
        f"Portfolios: {stats['portfolios']}\n"
        f"DB size: {stats['size'] // 1024} kB"
    )


def format_key_stats(keys: KeyManager) -> str:
    lines = []
    for slot in keys.get_stats():
        marker = "*" if slot["active"] else " "
        state = "blocked" if slot["is_blocked"] else "ok"
        lines.append(
            f"{marker}#{slot['key_number']}: {slot['requests_used']}/"
            f"{slot['requests_limit']} ({slot['usage_percent']:.1f}%) {state}"
        )
    return "\n".join(lines)


def _target_user(context: ContextTypes.DEFAULT_TYPE) -> Optional[int]:
    if not context.args:
        return None
    try:
        return int(context.args[0])
    except ValueError:
        return None


@admin_only
async def stats_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show usage statistics and uptime."""
    stats = await db.get_db_stats()
    started = service(context, "started_at") or time.time()
    await update.message.reply_text(
        f"{INFO_EMOJI} {config.BOT_NAME} stats\n"
        f"Uptime: {format_uptime(time.time() - started)}\n"
        f"Mode: {config.BOT_MODE}\n"
        f"Alert check: every {config.format_interval(config.ALERT_CHECK_INTERVAL)}, "
        f"cooldown {config.format_interval(config.ALERT_COOLDOWN)}\n"
        + format_stats(stats)
    )


@admin_only
async def users_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List users, most recently active first."""
    page = 1
    if context.args:
        try:
            page = max(1, int(context.args[0]))
        except ValueError:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /users [page]")
            return
    users = await db.list_users((page - 1) * USERS_PAGE_SIZE, USERS_PAGE_SIZE)
    if not users:
        await update.message.reply_text(f"{INFO_EMOJI} No users on page {page}")
        return
    lines = [f"{INFO_EMOJI} Users, page {page}"]
    for user in users:
        flags = ""
        if user.is_banned:
            flags += " [banned]"
        if user.is_blocked:
            flags += " [blocked]"
        seen = datetime.fromtimestamp(user.last_active, config.TZ).strftime(
            "%Y-%m-%d %H:%M"
        )
        lines.append(
            f"{user.user_id} {user.display_name} | {user.total_commands} cmds | "
            f"{seen}{flags}"
        )
    await update.message.reply_text("\n".join(lines))


async def _set_banned(
    update: Update, context: ContextTypes.DEFAULT_TYPE, value: bool
) -> None:
    user_id = _target_user(context)
    word = "ban" if value else "unban"
    if user_id is None:
        await update.message.reply_text(f"{ERROR_EMOJI} Usage: /{word} <user_id>")
        return
    if user_id == config.ADMIN_ID:
        await update.message.reply_text(f"{ERROR_EMOJI} You cannot {word} yourself")
        return
    if await db.set_user_flag(user_id, "is_banned", value):
        await update.message.reply_text(f"{SUCCESS_EMOJI} User {user_id} {word}ned")
    else:
        await update.message.reply_text(f"{ERROR_EMOJI} User {user_id} not found")


@admin_only
async def ban_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _set_banned(update, context, True)


@admin_only
async def unban_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _set_banned(update, context, False)


async def broadcast(notifier: TelegramNotifier, text: str, now: Optional[float] = None):
    """Send ``text`` to users active in the last week.

    Returns
    -------
    tuple[int, int]
        Delivered and failed counts. Unreachable users are flagged blocked.
    """
    now = time.time() if now is None else now
    recipients = await db.broadcast_recipients(now - BROADCAST_WINDOW)
    sent = failed = 0
    for start in range(0, len(recipients), BROADCAST_BATCH):
        if start:
            await asyncio.sleep(1)
        for user_id in recipients[start : start + BROADCAST_BATCH]:
            try:
                await notifier.send(user_id, text)
                sent += 1
            except TelegramError as exc:
                failed += 1
                config.logger.warning("broadcast to %s failed: %r", user_id, exc)
                if is_unreachable(exc):
                    await db.set_user_flag(user_id, "is_blocked", True)
    config.logger.info("broadcast done: %s sent, %s failed", sent, failed)
    return sent, failed


@admin_only
async def broadcast_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a message to every recently active user."""
    text = command_rest(update, 1)
    if not text:
        await update.message.reply_text(f"{ERROR_EMOJI} Usage: /broadcast <message>")
        return
    notifier = service(context, "notifier")
    await update.message.reply_text(f"{INFO_EMOJI} Broadcasting...")
    sent, failed = await broadcast(notifier, text)
    await update.message.reply_text(
        f"{SUCCESS_EMOJI} Broadcast finished: {sent} sent, {failed} failed"
    )


def tail(path: str, lines: int) -> str:
    with open(path, encoding="utf-8", errors="replace") as fh:
        return "".join(deque(fh, maxlen=lines))


@admin_only
async def logs_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show the last lines of the log file."""
    lines = 20
    if context.args:
        try:
            lines = min(MAX_LOG_LINES, max(1, int(context.args[0])))
        except ValueError:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /logs [lines]")
            return
    if not config.LOG_FILE or not os.path.exists(config.LOG_FILE):
        await update.message.reply_text(f"{INFO_EMOJI} No log file configured")
        return
    text = tail(config.LOG_FILE, lines)
    # Telegram caps messages at 4096 characters
    await update.message.reply_text(text[-4000:] or f"{INFO_EMOJI} Log is empty")


@admin_only
async def keys_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show CoinMarketCap key usage."""
    keys = service(context, "keys")
    if keys is None:
        await update.message.reply_text(f"{INFO_EMOJI} No CoinMarketCap keys configured")
        return
    await update.message.reply_text(
        f"{INFO_EMOJI} CoinMarketCap keys\n" + format_key_stats(keys)
    )


def render_status_chart() -> Optional[BytesIO]:
    """Plot the recorded HTTP statuses, or return ``None`` without data."""
    history = list(api.STATUS_HISTORY)
    if not history:
        return None
    times = [datetime.fromtimestamp(ts, config.TZ) for ts, _ in history]
    statuses = [s for _, s in history]
    plt.figure(figsize=(6, 3))
    plt.plot(times, statuses, drawstyle="steps-post")
    ax = plt.gca()
    ax.xaxis.set_major_locator(mdates.AutoDateLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M", tz=config.TZ))
    plt.xlabel("Time")
    plt.ylabel("HTTP status")
    plt.title("API status last 3h")
    plt.tight_layout()
    buf = BytesIO()
    plt.savefig(buf, format="png")
    plt.close()
    buf.seek(0)
    return buf


@admin_only
async def status_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show API health with a status timeline and database info."""
    chart = render_status_chart()
    if chart is not None:
        await context.bot.send_photo(chat_id(update), chart)
    counts = api.status_counts()
    stats = await db.get_db_stats()
    lines = [f"{code}: {counts[code]}" for code in sorted(counts)] or ["none"]
    keys = service(context, "keys")
    text = (
        f"{INFO_EMOJI} Bot: {config.BOT_NAME} ({config.BOT_MODE})\n"
        f"DB: {config.DB_FILE} ({stats['size'] // 1024} kB)\n"
        "API responses (3h):\n" + "\n".join(lines)
    )
    cmc = service(context, "cmc")
    if cmc is not None:
        healthy = await cmc.health_check()
        text += f"\nCoinMarketCap: {'ok' if healthy else 'unreachable'}"
    if keys is not None:
        text += "\nCoinMarketCap keys:\n" + format_key_stats(keys)
    await update.message.reply_text(text)


async def reset_cmc_keys(keys: KeyManager, notifier: TelegramNotifier) -> None:
    """Daily job: report yesterday's key usage and reset the counters."""
    report = format_key_stats(keys)
    keys.reset_daily()
    await notifier.notify_admin(f"{INFO_EMOJI} CoinMarketCap daily reset\n{report}")


async def send_daily_summary(notifier: TelegramNotifier) -> None:
    """Daily job: send usage statistics to the admin."""
    stats = await db.get_db_stats()
    await notifier.notify_admin(
        f"{INFO_EMOJI} Daily summary {datetime.now(config.TZ):%Y-%m-%d}\n"
        + format_stats(stats)
    )
