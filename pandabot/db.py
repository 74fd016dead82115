"""Asynchronous SQLite storage for users, alerts, reminders and lists."""

import json
import os
import sqlite3
import time
from typing import Dict, List, Optional

import aiosqlite

from . import config
from .models import Alert, Note, Portfolio, Reminder, User, Watchlist

ALERT_COLUMNS = (
    "id, short_id, user_id, symbol, threshold, base_price, current_price, "
    "last_triggered, status, created_at"
)
REMINDER_COLUMNS = "id, user_id, message, remind_at, status, job_id, created_at"
NOTE_COLUMNS = "id, short_id, user_id, content, created_at, updated_at"
WATCHLIST_COLUMNS = "id, user_id, name, type, tickers, created_at"
PORTFOLIO_COLUMNS = "id, user_id, name, items, created_at"
USER_COLUMNS = (
    "user_id, username, first_name, last_name, language_code, is_blocked, "
    "is_banned, total_commands, created_at, last_active"
)


async def init_db() -> None:
    """Create database tables if they do not already exist."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                username TEXT,
                first_name TEXT,
                last_name TEXT,
                language_code TEXT,
                is_blocked INTEGER NOT NULL DEFAULT 0,
                is_banned INTEGER NOT NULL DEFAULT 0,
                total_commands INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL,
                last_active REAL NOT NULL
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                short_id INTEGER NOT NULL UNIQUE,
                user_id INTEGER NOT NULL,
                symbol TEXT NOT NULL,
                threshold REAL NOT NULL,
                base_price REAL NOT NULL,
                current_price REAL,
                last_triggered REAL,
                status TEXT NOT NULL DEFAULT 'active',
                created_at REAL NOT NULL
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS reminders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                message TEXT NOT NULL,
                remind_at REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                job_id TEXT,
                created_at REAL NOT NULL
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                short_id INTEGER NOT NULL UNIQUE,
                user_id INTEGER NOT NULL,
                content TEXT NOT NULL,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS watchlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                tickers TEXT NOT NULL DEFAULT '[]',
                created_at REAL NOT NULL,
                UNIQUE (user_id, name)
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS portfolios (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                items TEXT NOT NULL DEFAULT '[]',
                created_at REAL NOT NULL,
                UNIQUE (user_id, name)
            )
            """
        )
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS counters (
                name TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            )
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts (status, symbol)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_reminders_user ON reminders (user_id, status)"
        )
        cursor = await db.execute("PRAGMA table_info(users)")
        rows = await cursor.fetchall()
        await cursor.close()
        columns = {row[1] for row in rows}
        if "is_banned" not in columns:
            await db.execute(
                "ALTER TABLE users ADD COLUMN is_banned INTEGER NOT NULL DEFAULT 0"
            )
        await db.commit()


async def _next_short_id(db: aiosqlite.Connection, name: str) -> int:
    """Allocate the next display id for ``name`` inside the open transaction."""
    await db.execute(
        (
            "INSERT INTO counters (name, value) VALUES (?, 1) "
            "ON CONFLICT(name) DO UPDATE SET value = value + 1"
        ),
        (name,),
    )
    cursor = await db.execute("SELECT value FROM counters WHERE name=?", (name,))
    (value,) = await cursor.fetchone()
    await cursor.close()
    return value


# Users


async def upsert_user(
    user_id: int,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    language_code: Optional[str] = None,
) -> bool:
    """Insert or refresh a user profile. Return ``True`` for new users."""
    now = time.time()
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "SELECT user_id FROM users WHERE user_id=?", (user_id,)
        )
        exists = await cursor.fetchone()
        await cursor.close()
        if exists:
            await db.execute(
                (
                    "UPDATE users SET username=?, first_name=?, last_name=?, "
                    "language_code=?, is_blocked=0, last_active=? WHERE user_id=?"
                ),
                (username, first_name, last_name, language_code, now, user_id),
            )
        else:
            await db.execute(
                (
                    "INSERT INTO users (user_id, username, first_name, last_name, "
                    "language_code, created_at, last_active) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)"
                ),
                (user_id, username, first_name, last_name, language_code, now, now),
            )
        await db.commit()
    if not exists:
        config.logger.info("user %s registered as %s", user_id, username)
    return not exists


async def touch_user(user_id: int, command: bool = False) -> None:
    """Record activity for ``user_id`` and count commands."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            (
                "UPDATE users SET last_active=?, "
                "total_commands = total_commands + ? WHERE user_id=?"
            ),
            (time.time(), 1 if command else 0, user_id),
        )
        await db.commit()


async def get_user(user_id: int) -> Optional[User]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {USER_COLUMNS} FROM users WHERE user_id=?", (user_id,)
        )
        row = await cursor.fetchone()
        await cursor.close()
    return User.from_row(row) if row else None


async def list_users(offset: int = 0, limit: int = 10) -> List[User]:
    """Return users ordered by most recent activity."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {USER_COLUMNS} FROM users "
                "ORDER BY last_active DESC LIMIT ? OFFSET ?"
            ),
            (limit, offset),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [User.from_row(row) for row in rows]


async def set_user_flag(user_id: int, flag: str, value: bool) -> bool:
    """Set ``is_blocked`` or ``is_banned`` for a user. Return ``False`` if unknown."""
    if flag not in ("is_blocked", "is_banned"):
        raise ValueError(f"unknown user flag: {flag}")
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"UPDATE users SET {flag}=? WHERE user_id=?", (int(value), user_id)
        )
        changed = cursor.rowcount
        await cursor.close()
        await db.commit()
    config.logger.info("user %s %s=%s", user_id, flag, value)
    return changed > 0


async def broadcast_recipients(since: float) -> List[int]:
    """Return ids of reachable users active after ``since``."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                "SELECT user_id FROM users WHERE last_active >= ? "
                "AND is_blocked=0 AND is_banned=0 ORDER BY user_id"
            ),
            (since,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [row[0] for row in rows]


# Alerts


async def add_alert(
    user_id: int, symbol: str, threshold: float, base_price: float
) -> Alert:
    """Create an active alert and return it with its display id."""
    now = time.time()
    alert = Alert(
        id=None,
        short_id=0,
        user_id=user_id,
        symbol=symbol,
        threshold=threshold,
        base_price=base_price,
        current_price=base_price,
        created_at=now,
    )
    async with aiosqlite.connect(config.DB_FILE) as db:
        alert.short_id = await _next_short_id(db, "alerts")
        cursor = await db.execute(
            (
                "INSERT INTO alerts (short_id, user_id, symbol, threshold, "
                "base_price, current_price, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, 'active', ?)"
            ),
            (alert.short_id, user_id, symbol, threshold, base_price, base_price, now),
        )
        alert.id = cursor.lastrowid
        await cursor.close()
        await db.commit()
    config.logger.info(
        "user %s created alert #%s %s %+.2f%% base=%s",
        user_id,
        alert.short_id,
        symbol,
        threshold,
        base_price,
    )
    return alert


async def find_active_alert(
    user_id: int, symbol: str, threshold: float
) -> Optional[Alert]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {ALERT_COLUMNS} FROM alerts WHERE user_id=? AND symbol=? "
                "AND threshold=? AND status='active'"
            ),
            (user_id, symbol, threshold),
        )
        row = await cursor.fetchone()
        await cursor.close()
    return Alert.from_row(row) if row else None


async def list_active_alerts() -> List[Alert]:
    """Return every active alert."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {ALERT_COLUMNS} FROM alerts WHERE status='active' ORDER BY id"
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Alert.from_row(row) for row in rows]


async def list_user_alerts(user_id: int, limit: int = 20) -> List[Alert]:
    """Return the newest active alerts of ``user_id``."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {ALERT_COLUMNS} FROM alerts WHERE user_id=? "
                "AND status='active' ORDER BY created_at DESC, id DESC LIMIT ?"
            ),
            (user_id, limit),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Alert.from_row(row) for row in rows]


async def pause_alert(user_id: int, short_id: int) -> bool:
    """Pause the active alert ``short_id`` owned by ``user_id``."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                "UPDATE alerts SET status='paused' "
                "WHERE user_id=? AND short_id=? AND status='active'"
            ),
            (user_id, short_id),
        )
        changed = cursor.rowcount
        await cursor.close()
        await db.commit()
    if changed:
        config.logger.info("user %s paused alert #%s", user_id, short_id)
    return changed > 0


async def delete_alerts(user_id: int, symbol: str) -> int:
    """Delete all alerts of ``user_id`` on ``symbol`` and return the count."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "DELETE FROM alerts WHERE user_id=? AND symbol=?", (user_id, symbol)
        )
        deleted = cursor.rowcount
        await cursor.close()
        await db.commit()
    config.logger.info("user %s deleted %s alerts on %s", user_id, deleted, symbol)
    return deleted


async def update_alert_observation(
    alert_id: int, current_price: float, last_triggered: Optional[float] = None
) -> None:
    """Store the latest observed price and, when given, the trigger time."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        if last_triggered is None:
            await db.execute(
                "UPDATE alerts SET current_price=? WHERE id=?",
                (current_price, alert_id),
            )
        else:
            await db.execute(
                "UPDATE alerts SET current_price=?, last_triggered=? WHERE id=?",
                (current_price, last_triggered, alert_id),
            )
        await db.commit()


# Reminders


async def add_reminder(user_id: int, message: str, remind_at: float) -> Reminder:
    """Persist an active reminder without a job handle."""
    now = time.time()
    reminder = Reminder(None, user_id, message, remind_at, "active", None, now)
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                "INSERT INTO reminders (user_id, message, remind_at, status, "
                "created_at) VALUES (?, ?, ?, 'active', ?)"
            ),
            (user_id, message, remind_at, now),
        )
        reminder.id = cursor.lastrowid
        await cursor.close()
        await db.commit()
    config.logger.info(
        "user %s created reminder %s at %s", user_id, reminder.id, remind_at
    )
    return reminder


async def set_reminder_job(reminder_id: int, job_id: Optional[str]) -> None:
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            "UPDATE reminders SET job_id=? WHERE id=?", (job_id, reminder_id)
        )
        await db.commit()


async def get_reminder(reminder_id: int) -> Optional[Reminder]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {REMINDER_COLUMNS} FROM reminders WHERE id=?", (reminder_id,)
        )
        row = await cursor.fetchone()
        await cursor.close()
    return Reminder.from_row(row) if row else None


async def finish_reminder(
    reminder_id: int, status: str, user_id: Optional[int] = None
) -> bool:
    """Move an active reminder to ``status``.

    The update only applies while the reminder is still active so that a
    cancellation and a firing job cannot both win. ``user_id`` restricts the
    update to reminders owned by that user.
    """
    query = "UPDATE reminders SET status=? WHERE id=? AND status='active'"
    params: tuple = (status, reminder_id)
    if user_id is not None:
        query += " AND user_id=?"
        params += (user_id,)
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(query, params)
        changed = cursor.rowcount
        await cursor.close()
        await db.commit()
    if changed:
        config.logger.info("reminder %s -> %s", reminder_id, status)
    return changed > 0


async def list_user_reminders(user_id: int, limit: int = 20) -> List[Reminder]:
    """Return the soonest active reminders of ``user_id``."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {REMINDER_COLUMNS} FROM reminders WHERE user_id=? "
                "AND status='active' ORDER BY remind_at LIMIT ?"
            ),
            (user_id, limit),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Reminder.from_row(row) for row in rows]


async def list_active_reminders() -> List[Reminder]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {REMINDER_COLUMNS} FROM reminders "
                "WHERE status='active' ORDER BY remind_at"
            )
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Reminder.from_row(row) for row in rows]


# Notes


async def add_note(user_id: int, content: str) -> Note:
    now = time.time()
    note = Note(None, 0, user_id, content, now, now)
    async with aiosqlite.connect(config.DB_FILE) as db:
        note.short_id = await _next_short_id(db, "notes")
        cursor = await db.execute(
            (
                "INSERT INTO notes (short_id, user_id, content, created_at, "
                "updated_at) VALUES (?, ?, ?, ?, ?)"
            ),
            (note.short_id, user_id, content, now, now),
        )
        note.id = cursor.lastrowid
        await cursor.close()
        await db.commit()
    config.logger.info("user %s added note #%s", user_id, note.short_id)
    return note


async def list_notes(user_id: int, limit: int = 20) -> List[Note]:
    """Return the newest notes of ``user_id``."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {NOTE_COLUMNS} FROM notes WHERE user_id=? "
                "ORDER BY created_at DESC, id DESC LIMIT ?"
            ),
            (user_id, limit),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Note.from_row(row) for row in rows]


async def search_notes(user_id: int, text: str, limit: int = 20) -> List[Note]:
    """Return notes of ``user_id`` containing ``text`` ignoring case."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {NOTE_COLUMNS} FROM notes WHERE user_id=? "
                "AND instr(lower(content), lower(?)) > 0 "
                "ORDER BY created_at DESC, id DESC LIMIT ?"
            ),
            (user_id, text, limit),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Note.from_row(row) for row in rows]


async def get_note(user_id: int, short_id: int) -> Optional[Note]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {NOTE_COLUMNS} FROM notes WHERE user_id=? AND short_id=?",
            (user_id, short_id),
        )
        row = await cursor.fetchone()
        await cursor.close()
    return Note.from_row(row) if row else None


async def update_note(user_id: int, short_id: int, content: str) -> Optional[Note]:
    """Replace the content of a note and return the updated record."""
    note = await get_note(user_id, short_id)
    if note is None:
        return None
    note.content = content
    note.updated_at = time.time()
    note.__post_init__()
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            "UPDATE notes SET content=?, updated_at=? WHERE id=?",
            (note.content, note.updated_at, note.id),
        )
        await db.commit()
    config.logger.info("user %s edited note #%s", user_id, short_id)
    return note


async def delete_note(user_id: int, short_id: int) -> bool:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "DELETE FROM notes WHERE user_id=? AND short_id=?", (user_id, short_id)
        )
        deleted = cursor.rowcount
        await cursor.close()
        await db.commit()
    if deleted:
        config.logger.info("user %s deleted note #%s", user_id, short_id)
    return deleted > 0


# Watchlists


async def create_watchlist(
    user_id: int,
    name: str,
    type_: str,
    tickers: List[str],
    replace: bool = False,
) -> Optional[Watchlist]:
    """Create a watchlist.

    Returns ``None`` when ``name`` already exists for the user, unless
    ``replace`` is set in which case type and tickers are overwritten.
    """
    now = time.time()
    watchlist = Watchlist(None, user_id, name, type_, list(tickers), now)
    tickers_json = json.dumps(watchlist.tickers)
    async with aiosqlite.connect(config.DB_FILE) as db:
        if replace:
            await db.execute(
                (
                    "INSERT INTO watchlists (user_id, name, type, tickers, created_at) "
                    "VALUES (?, ?, ?, ?, ?) ON CONFLICT(user_id, name) DO UPDATE "
                    "SET type=excluded.type, tickers=excluded.tickers"
                ),
                (user_id, name, type_, tickers_json, now),
            )
        else:
            try:
                await db.execute(
                    (
                        "INSERT INTO watchlists (user_id, name, type, tickers, "
                        "created_at) VALUES (?, ?, ?, ?, ?)"
                    ),
                    (user_id, name, type_, tickers_json, now),
                )
            except sqlite3.IntegrityError:
                return None
        await db.commit()
    config.logger.info(
        "user %s saved %s watchlist %s with %s tickers",
        user_id,
        type_,
        name,
        len(tickers),
    )
    return await get_watchlist(user_id, name)


async def get_watchlist(user_id: int, name: str) -> Optional[Watchlist]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {WATCHLIST_COLUMNS} FROM watchlists WHERE user_id=? AND name=?",
            (user_id, name),
        )
        row = await cursor.fetchone()
        await cursor.close()
    return Watchlist.from_row(row) if row else None


async def list_watchlists(user_id: int) -> List[Watchlist]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {WATCHLIST_COLUMNS} FROM watchlists WHERE user_id=? "
                "ORDER BY created_at, id"
            ),
            (user_id,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Watchlist.from_row(row) for row in rows]


async def save_watchlist_tickers(watchlist: Watchlist) -> None:
    """Persist the ticker list of an existing watchlist."""
    watchlist.__post_init__()
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            "UPDATE watchlists SET tickers=? WHERE id=?",
            (json.dumps(watchlist.tickers), watchlist.id),
        )
        await db.commit()
    config.logger.info(
        "user %s watchlist %s now has %s tickers",
        watchlist.user_id,
        watchlist.name,
        len(watchlist.tickers),
    )


async def delete_watchlist(user_id: int, name: str) -> bool:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "DELETE FROM watchlists WHERE user_id=? AND name=?", (user_id, name)
        )
        deleted = cursor.rowcount
        await cursor.close()
        await db.commit()
    if deleted:
        config.logger.info("user %s deleted watchlist %s", user_id, name)
    return deleted > 0


# Portfolios


async def create_portfolio(user_id: int, name: str) -> Optional[Portfolio]:
    """Create an empty portfolio. Return ``None`` if the name is taken."""
    portfolio = Portfolio(None, user_id, name, [], time.time())
    async with aiosqlite.connect(config.DB_FILE) as db:
        try:
            cursor = await db.execute(
                (
                    "INSERT INTO portfolios (user_id, name, items, created_at) "
                    "VALUES (?, ?, '[]', ?)"
                ),
                (user_id, name, portfolio.created_at),
            )
        except sqlite3.IntegrityError:
            return None
        portfolio.id = cursor.lastrowid
        await cursor.close()
        await db.commit()
    config.logger.info("user %s created portfolio %s", user_id, name)
    return portfolio


async def get_portfolio(user_id: int, name: str) -> Optional[Portfolio]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            f"SELECT {PORTFOLIO_COLUMNS} FROM portfolios WHERE user_id=? AND name=?",
            (user_id, name),
        )
        row = await cursor.fetchone()
        await cursor.close()
    return Portfolio.from_row(row) if row else None


async def list_portfolios(user_id: int) -> List[Portfolio]:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            (
                f"SELECT {PORTFOLIO_COLUMNS} FROM portfolios WHERE user_id=? "
                "ORDER BY created_at, id"
            ),
            (user_id,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
    return [Portfolio.from_row(row) for row in rows]


async def save_portfolio(portfolio: Portfolio) -> None:
    """Persist the items of an existing portfolio."""
    async with aiosqlite.connect(config.DB_FILE) as db:
        await db.execute(
            "UPDATE portfolios SET items=? WHERE id=?",
            (portfolio.items_json(), portfolio.id),
        )
        await db.commit()
    config.logger.info(
        "user %s portfolio %s now has %s items",
        portfolio.user_id,
        portfolio.name,
        len(portfolio.items),
    )


async def delete_portfolio(user_id: int, name: str) -> bool:
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "DELETE FROM portfolios WHERE user_id=? AND name=?", (user_id, name)
        )
        deleted = cursor.rowcount
        await cursor.close()
        await db.commit()
    if deleted:
        config.logger.info("user %s deleted portfolio %s", user_id, name)
    return deleted > 0


async def get_db_stats() -> Dict[str, int]:
    """Return row counts per collection plus the database file size."""
    stats: Dict[str, int] = {}
    async with aiosqlite.connect(config.DB_FILE) as db:
        cursor = await db.execute(
            "SELECT COUNT(*), COALESCE(SUM(is_blocked), 0), "
            "COALESCE(SUM(is_banned), 0) FROM users"
        )
        stats["users"], stats["blocked"], stats["banned"] = await cursor.fetchone()
        await cursor.close()
        cursor = await db.execute(
            "SELECT COUNT(*) FROM users WHERE last_active >= ?",
            (time.time() - 86400,),
        )
        (stats["active_24h"],) = await cursor.fetchone()
        await cursor.close()
        cursor = await db.execute(
            "SELECT COUNT(*) FROM alerts WHERE status='active'"
        )
        (stats["alerts"],) = await cursor.fetchone()
        await cursor.close()
        cursor = await db.execute(
            "SELECT COUNT(*) FROM reminders WHERE status='active'"
        )
        (stats["reminders"],) = await cursor.fetchone()
        await cursor.close()
        for table in ("notes", "watchlists", "portfolios"):
            cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
            (stats[table],) = await cursor.fetchone()
            await cursor.close()
    stats["size"] = (
        os.path.getsize(config.DB_FILE) if os.path.exists(config.DB_FILE) else 0
    )
    return stats
