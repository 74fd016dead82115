"""Formatting and parsing helpers shared by the command handlers."""

import math
import re
from decimal import Decimal
from typing import Any, Optional

from telegram import Update
from telegram.ext import ContextTypes

UP_ARROW = "\U0001f53a"
DOWN_ARROW = "\U0001f53b"
ROCKET = "\U0001f680"
FIRECRACKER = "\U0001f9e8"
RIGHT_ARROW = "\u27a1\ufe0f"
CHART_UP = "\U0001f4c8"
CHART_DOWN = "\U0001f4c9"

WELCOME_EMOJI = "\U0001f44b"
INFO_EMOJI = "\u2139\ufe0f"
SUCCESS_EMOJI = "\u2705"
ERROR_EMOJI = "\u26a0\ufe0f"
LIST_EMOJI = "\U0001f4cb"
NOTE_EMOJI = "\U0001f4dd"
BELL_EMOJI = "\U0001f514"
MONEY_EMOJI = "\U0001f4b0"
ROBOT_EMOJI = "\U0001f916"
WAIT_EMOJI = "\u23f3"

CRYPTO_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,10}$")
LIST_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,10}(\.[A-Z]{1,2})?$")
STOCK_SYMBOL_RE = re.compile(r"^[A-Z]{1,5}(\.[A-Z]{1,2})?$")
PERCENT_RE = re.compile(r"^([+-]?\d+(?:\.\d+)?)$")
SHORT_ID_RE = re.compile(r"^#?(\d+)$")


def format_price(value: float) -> str:
    """Format ``value`` as a price string."""
    # limit precision to avoid floating point artifacts like
    # ``0.00013000000000000002``
    d = Decimal(value).quantize(Decimal("1e-8"))
    text = format(d.normalize(), "f")
    if "." in text:
        frac = text.split(".")[1]
        if len(frac) == 1:
            text += "0"
    return text


def format_large_number(value: Optional[float]) -> str:
    """Return ``value`` abbreviated with T, B, M or K."""
    if value is None:
        return "n/a"
    for limit, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= limit:
            return f"{value / limit:.2f}{suffix}"
    return f"{value:.2f}"


def format_change(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}%"


def change_emoji(change: Optional[float]) -> str:
    """Return an emoji describing the size and direction of ``change``."""
    if change is None:
        return RIGHT_ARROW
    if change > 5:
        return ROCKET
    if change > 0:
        return CHART_UP
    if change < -5:
        return FIRECRACKER
    if change < 0:
        return CHART_DOWN
    return RIGHT_ARROW


def parse_percent(value: str) -> Optional[float]:
    """Parse ``'5'``, ``'-3.5%'`` or ``'2,5'`` into a float."""
    cleaned = value.strip().replace("%", "").replace(",", ".")
    match = PERCENT_RE.fullmatch(cleaned)
    return float(match.group(1)) if match else None


def parse_amount(value: str) -> Optional[float]:
    """Parse a strictly positive amount, accepting a comma decimal."""
    try:
        amount = float(value.replace(",", "."))
    except ValueError:
        return None
    return amount if math.isfinite(amount) and amount > 0 else None


def parse_short_id(value: str) -> Optional[int]:
    match = SHORT_ID_RE.fullmatch(value.strip())
    return int(match.group(1)) if match else None


def service(context: ContextTypes.DEFAULT_TYPE, name: str) -> Any:
    """Return a service registered in ``bot_data`` at startup, if any."""
    return context.bot_data.get(name)


def chat_id(update: Update) -> int:
    return update.effective_chat.id


def command_rest(update: Update, skip: int) -> str:
    """Return the message text after the command and ``skip - 1`` arguments.

    Unlike ``context.args`` this keeps the original spacing and newlines.
    """
    parts = (update.message.text or "").split(maxsplit=skip)
    return parts[skip].strip() if len(parts) > skip else ""


# handler module -> commands it registers
COMMAND_CATEGORIES: dict[str, list[tuple[str, str]]] = {
    "users": [
        ("start", "Welcome message"),
        ("help", "Show help"),
    ],
    "prices": [
        ("price", "Detailed crypto price"),
        ("p", "Prices of several coins"),
    ],
    "stocks": [
        ("s", "Stock prices"),
    ],
    "currency": [
        ("usdtry", "USD/TRY exchange rate"),
    ],
    "watchlists": [
        ("watchlist", "Create and edit watchlists"),
        ("watchlists", "List watchlists"),
    ],
    "portfolios": [
        ("portfolio", "Manage a portfolio"),
        ("portfolios", "List portfolios"),
    ],
    "notes": [
        ("note", "Add, search and edit notes"),
    ],
    "alerts": [
        ("alert", "Create or cancel a price alert"),
        ("alerts", "List active alerts"),
    ],
    "reminders": [
        ("remind", "Set a reminder"),
        ("reminders", "List reminders"),
    ],
    "ai": [
        ("ai", "Ask the AI assistant"),
    ],
    "admin": [
        ("stats", "Usage statistics"),
        ("users", "List users"),
        ("ban", "Ban a user"),
        ("unban", "Unban a user"),
        ("broadcast", "Message all active users"),
        ("logs", "Show recent log lines"),
        ("keys", "CoinMarketCap key usage"),
        ("status", "API status"),
    ],
}
