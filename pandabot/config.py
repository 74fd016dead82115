"""Configuration and helper utilities for PandaBot.

This module loads environment variables, configures logging and exposes
constants used across the bot.
"""

import logging
import os
import re
from logging.handlers import WatchedFileHandler
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def parse_duration(value: str) -> int:
    """Return seconds for a duration string like '15m' or '1h'."""
    if value.isdigit():
        return int(value)
    match = re.fullmatch(r"(\d+)([dhms])", value.lower())
    if not match:
        raise ValueError("invalid interval format")
    num, unit = match.groups()
    factor = {"d": 86400, "h": 3600, "m": 60, "s": 1}[unit]
    return int(num) * factor


def format_interval(seconds: int) -> str:
    """Return a short string representation for a duration in seconds."""
    if seconds % 86400 == 0:
        return f"{seconds // 86400}d"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


def load_cmc_keys() -> list[str]:
    """Collect CoinMarketCap keys from the environment.

    ``COINMARKETCAP_API_KEYS`` may hold a comma separated list. Numbered
    ``COINMARKETCAP_API_KEY_1`` .. ``_N`` variables are appended in order,
    skipping duplicates.
    """
    keys = [
        k.strip()
        for k in os.getenv("COINMARKETCAP_API_KEYS", "").split(",")
        if k.strip()
    ]
    index = 1
    while True:
        value = os.getenv(f"COINMARKETCAP_API_KEY_{index}")
        if value is None:
            break
        value = value.strip()
        if value and value not in keys:
            keys.append(value)
        index += 1
    return keys


MODES = ("health", "read-only", "maintenance", "ai-only")
READ_ONLY_MODULES = {"prices", "stocks", "currency", "watchlists", "portfolios", "notes"}
ALWAYS_ACTIVE_MODULES = {"users", "admin"}


def is_module_active(name: str, mode: Optional[str] = None) -> bool:
    """Return ``True`` when the handler module ``name`` runs in ``mode``."""
    mode = mode or BOT_MODE
    if name in ALWAYS_ACTIVE_MODULES:
        return True
    if mode == "health":
        return True
    if mode == "read-only":
        return name in READ_ONLY_MODULES
    if mode == "ai-only":
        return name == "ai"
    return False


BOT_NAME = "PandaBot"
DB_FILE = os.getenv("DB_PATH", "pandabot.db")
TIMEZONE = os.getenv("TIMEZONE", "Europe/Istanbul")
TZ = ZoneInfo(TIMEZONE)
ADMIN_ID = int(os.getenv("ADMIN_ID", "0")) or None
BOT_MODE = os.getenv("BOT_MODE", "health").lower()
if BOT_MODE not in MODES:
    raise ValueError(f"BOT_MODE must be one of {', '.join(MODES)}")

ALERT_CHECK_INTERVAL = parse_duration(os.getenv("ALERT_CHECK_INTERVAL", "5m"))
ALERT_COOLDOWN = parse_duration(os.getenv("ALERT_COOLDOWN", "30m"))
REQUEST_TIMEOUT = parse_duration(os.getenv("REQUEST_TIMEOUT", "10s"))
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "30"))
MAX_NOTE_LENGTH = int(os.getenv("MAX_NOTE_LENGTH", "1000"))
MAX_REMINDER_LENGTH = int(os.getenv("MAX_REMINDER_LENGTH", "500"))
MAX_LIST_NAME_LENGTH = 50

COINMARKETCAP_BASE_URL = (
    os.getenv("COINMARKETCAP_BASE_URL") or "https://pro-api.coinmarketcap.com/v1"
)
COINMARKETCAP_API_KEYS = load_cmc_keys()
COINMARKETCAP_ACTIVE_KEY = int(os.getenv("COINMARKETCAP_ACTIVE_KEY", "1"))
CMC_REQUESTS_LIMIT = int(os.getenv("CMC_REQUESTS_LIMIT", "10000"))
BINANCE_BASE_URL = os.getenv("BINANCE_BASE_URL") or "https://api.binance.com"
EXCHANGE_RATE_URL = "https://api.exchangerate-api.com/v4/latest/USD"

AI_API_KEY = os.getenv("AI_API_KEY")
AI_BASE_URL = (os.getenv("AI_BASE_URL") or "https://api.minimax.io/v1").rstrip("/")
AI_MODEL = os.getenv("AI_MODEL", "MiniMax-M2")
AI_TIMEOUT = parse_duration(os.getenv("AI_TIMEOUT", "30s"))
AI_PROMPT_PRICE = 0.0000003
AI_COMPLETION_PRICE = 0.0000012

CRYPTO_PRESET = [
    "BTC", "ETH", "DOGE", "ADA", "DOT", "SOL", "AVAX", "MATIC", "ATOM", "LINK",
]
BIST_PRESET = [
    "AKBNK", "ISCTR", "VAKBN", "GARAN", "THYAO", "PGSUS", "ASELS", "TUPRS",
    "TCELL", "TOFAS", "OTKAR", "KCHOL", "ARCLK", "BIMAS", "FROTO", "KORDS",
    "SAHOL", "ALARK", "ISGYO", "TTRAK", "VESTL", "PETKM", "HEKTS", "EKGYO",
    "SISE", "AGHOL", "GUBRF", "ISDMR", "CIMSA", "PNSUT", "ULKER", "TKFEN",
    "MAVI", "BRISA", "MGROS", "BAGFS", "BRSAN", "OYAKC", "KOZAL", "GSDHO",
    "CCOLA", "FENER", "HALKB", "KRDMD", "MPARK", "SOKM", "TAVHL", "YKBNK",
    "ZOREN", "ENJSA",
]

LOG_FILE = os.getenv("LOG_FILE")
_handlers = [logging.StreamHandler()]
if LOG_FILE:
    _handlers.append(WatchedFileHandler(LOG_FILE))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    handlers=_handlers,
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)
