"""Outbound messages to users.

Background jobs only need to "send text to a user id". They depend on the
:class:`Notifier` protocol, and :func:`pandabot.main.main` injects a
:class:`TelegramNotifier` bound to the running bot.
"""

import asyncio
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Protocol

from telegram import Bot
from telegram.error import BadRequest, Forbidden, TelegramError

from . import config

user_messages: Dict[int, Deque[float]] = defaultdict(deque)
global_messages: Deque[float] = deque()


class Notifier(Protocol):
    async def send(self, user_id: int, text: str) -> None:
        ...


def is_unreachable(exc: Exception) -> bool:
    """Return ``True`` when ``exc`` means the user can no longer be messaged."""
    if isinstance(exc, Forbidden):
        return True
    return isinstance(exc, BadRequest) and "chat not found" in str(exc).lower()


async def send_rate_limited(
    bot: Bot,
    chat_id: int,
    text: str,
    emoji: str = "",
    suffix: str = "",
) -> None:
    """Send a message while enforcing per-user and global rate limits."""
    now = time.time()
    user_q = user_messages[chat_id]
    while user_q and now - user_q[0] > 60:
        user_q.popleft()
    while global_messages and now - global_messages[0] > 1:
        global_messages.popleft()
    if len(user_q) >= 20:
        wait = max(0, 60 - (now - user_q[0]))
        await asyncio.sleep(wait)
    if len(global_messages) >= 30:
        wait = max(0, 1 - (now - global_messages[0]))
        await asyncio.sleep(wait)
    message = f"{emoji} {text}" if emoji else text
    if suffix:
        message += f" {suffix}"
    await bot.send_message(chat_id=chat_id, text=message)
    user_q.append(time.time())
    global_messages.append(time.time())


class TelegramNotifier:
    """Deliver messages through a python-telegram-bot ``Bot``.

    Errors from Telegram propagate to the caller, which decides whether the
    failure is fatal for the item being processed.
    """

    def __init__(self, bot: Bot, admin_id: Optional[int] = None) -> None:
        self.bot = bot
        self.admin_id = admin_id

    async def send(self, user_id: int, text: str) -> None:
        await send_rate_limited(self.bot, user_id, text)

    async def notify_admin(self, text: str) -> None:
        """Message the admin, logging instead of raising on failure."""
        if not self.admin_id:
            return
        try:
            await self.send(self.admin_id, text)
        except TelegramError as exc:
            config.logger.error("admin notification failed: %r", exc)
