"""Typed records stored in the SQLite database.

Each record validates itself in ``__post_init__`` so malformed rows or user
input never reach the rest of the bot. ``from_row`` builds a record from a
row selected with the matching ``*_COLUMNS`` constant in :mod:`pandabot.db`.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from . import config

ALERT_STATUSES = ("active", "paused")
REMINDER_STATUSES = ("active", "completed", "cancelled")
WATCHLIST_TYPES = ("crypto", "stock")

SYMBOL_RE = re.compile(r"^[A-Z0-9]{1,10}(\.[A-Z]{1,2})?$")


def _check_symbol(symbol: str) -> None:
    if not SYMBOL_RE.fullmatch(symbol):
        raise ValueError(f"invalid symbol: {symbol!r}")


@dataclass
class Alert:
    id: Optional[int]
    short_id: int
    user_id: int
    symbol: str
    threshold: float
    base_price: float
    current_price: Optional[float] = None
    last_triggered: Optional[float] = None
    status: str = "active"
    created_at: float = 0.0

    def __post_init__(self) -> None:
        _check_symbol(self.symbol)
        if self.status not in ALERT_STATUSES:
            raise ValueError(f"invalid alert status: {self.status!r}")
        if self.base_price < 0:
            raise ValueError("base price must not be negative")

    @classmethod
    def from_row(cls, row) -> "Alert":
        return cls(*row)

    def change_percent(self, price: float) -> float:
        """Return the percent move of ``price`` relative to the base price."""
        return (price - self.base_price) / self.base_price * 100


@dataclass
class Reminder:
    id: Optional[int]
    user_id: int
    message: str
    remind_at: float
    status: str = "active"
    job_id: Optional[str] = None
    created_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.message.strip():
            raise ValueError("reminder message is empty")
        if len(self.message) > config.MAX_REMINDER_LENGTH:
            raise ValueError(
                f"reminder message exceeds {config.MAX_REMINDER_LENGTH} characters"
            )
        if self.status not in REMINDER_STATUSES:
            raise ValueError(f"invalid reminder status: {self.status!r}")

    @classmethod
    def from_row(cls, row) -> "Reminder":
        return cls(*row)


@dataclass
class Note:
    id: Optional[int]
    short_id: int
    user_id: int
    content: str
    created_at: float = 0.0
    updated_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.content.strip():
            raise ValueError("note is empty")
        if len(self.content) > config.MAX_NOTE_LENGTH:
            raise ValueError(f"note exceeds {config.MAX_NOTE_LENGTH} characters")

    @classmethod
    def from_row(cls, row) -> "Note":
        return cls(*row)


@dataclass
class Watchlist:
    id: Optional[int]
    user_id: int
    name: str
    type: str
    tickers: List[str] = field(default_factory=list)
    created_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.name or len(self.name) > config.MAX_LIST_NAME_LENGTH:
            raise ValueError(
                f"list name must be 1-{config.MAX_LIST_NAME_LENGTH} characters"
            )
        if self.type not in WATCHLIST_TYPES:
            raise ValueError(f"invalid watchlist type: {self.type!r}")
        if len(set(self.tickers)) != len(self.tickers):
            raise ValueError("duplicate ticker in watchlist")
        for ticker in self.tickers:
            _check_symbol(ticker)

    @classmethod
    def from_row(cls, row) -> "Watchlist":
        wid, user_id, name, type_, tickers, created_at = row
        return cls(wid, user_id, name, type_, json.loads(tickers or "[]"), created_at)


@dataclass
class PortfolioItem:
    symbol: str
    amount: float
    avg_price: float

    def __post_init__(self) -> None:
        _check_symbol(self.symbol)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.avg_price < 0:
            raise ValueError("price must not be negative")

    @property
    def cost(self) -> float:
        return self.amount * self.avg_price


@dataclass
class Portfolio:
    id: Optional[int]
    user_id: int
    name: str
    items: List[PortfolioItem] = field(default_factory=list)
    created_at: float = 0.0

    def __post_init__(self) -> None:
        if not self.name or len(self.name) > config.MAX_LIST_NAME_LENGTH:
            raise ValueError(
                f"portfolio name must be 1-{config.MAX_LIST_NAME_LENGTH} characters"
            )

    @classmethod
    def from_row(cls, row) -> "Portfolio":
        pid, user_id, name, items, created_at = row
        parsed = [PortfolioItem(**item) for item in json.loads(items or "[]")]
        return cls(pid, user_id, name, parsed, created_at)

    def items_json(self) -> str:
        return json.dumps([asdict(item) for item in self.items])

    def find(self, symbol: str) -> Optional[PortfolioItem]:
        for item in self.items:
            if item.symbol == symbol:
                return item
        return None

    def buy(self, symbol: str, amount: float, price: float) -> PortfolioItem:
        """Add ``amount`` of ``symbol`` bought at ``price``.

        Existing positions keep a weighted average purchase price.
        """
        item = self.find(symbol)
        if item is None:
            item = PortfolioItem(symbol, amount, price)
            self.items.append(item)
            return item
        total = item.amount + amount
        item.avg_price = (item.cost + amount * price) / total
        item.amount = total
        return item

    def sell(self, symbol: str, amount: float) -> Optional[float]:
        """Remove ``amount`` of ``symbol`` and return the amount left.

        Returns ``None`` when the symbol is not held. Selling at least the
        held amount drops the position entirely and returns ``0``.
        """
        item = self.find(symbol)
        if item is None:
            return None
        if amount >= item.amount:
            self.items.remove(item)
            return 0.0
        item.amount -= amount
        return item.amount


@dataclass
class User:
    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language_code: Optional[str] = None
    is_blocked: bool = False
    is_banned: bool = False
    total_commands: int = 0
    created_at: float = 0.0
    last_active: float = 0.0

    @classmethod
    def from_row(cls, row) -> "User":
        values = list(row)
        values[5] = bool(values[5])
        values[6] = bool(values[6])
        return cls(*values)

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or str(self.user_id)
