"""Watchlist commands, type selection buttons and lookup by list name."""

import time
from typing import Dict, List, Optional, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from .. import api, config, db
from ..models import Watchlist
from .common import (
    ERROR_EMOJI,
    INFO_EMOJI,
    LIST_EMOJI,
    LIST_SYMBOL_RE,
    SUCCESS_EMOJI,
    change_emoji,
    chat_id,
    format_change,
    format_price,
)

PENDING_TTL = 60
PRESETS = {
    "crypto-all": ("crypto", config.CRYPTO_PRESET),
    "bist-all": ("stock", config.BIST_PRESET),
}
USAGE = (
    f"{ERROR_EMOJI} Usage:\n"
    "/watchlist create <name> <SYMBOLS...>\n"
    "/watchlist add <name> <SYMBOLS...>\n"
    "/watchlist remove <name> <SYMBOLS...>\n"
    "/watchlist show <name>\n"
    "/watchlist delete <name>\n"
    "Presets: /watchlist create crypto-all, /watchlist create bist-all"
)

# chat id -> (list name, symbols, created at)
pending_creates: Dict[int, Tuple[str, List[str], float]] = {}


def split_symbols(args: List[str]) -> Tuple[List[str], List[str]]:
    """Return valid and invalid upper-cased symbols, without duplicates."""
    valid: List[str] = []
    invalid: List[str] = []
    for arg in dict.fromkeys(a.upper() for a in args):
        (valid if LIST_SYMBOL_RE.fullmatch(arg) else invalid).append(arg)
    return valid, invalid


def pop_pending(chat: int, now: Optional[float] = None) -> Optional[Tuple[str, List[str]]]:
    """Return and forget the pending creation of ``chat`` if it is still fresh."""
    now = time.time() if now is None else now
    entry = pending_creates.pop(chat, None)
    if entry is None or now - entry[2] > PENDING_TTL:
        return None
    return entry[0], entry[1]


async def render_watchlist(watchlist: Watchlist, user: Optional[int] = None) -> str:
    """Return the watchlist with live quotes and the average 24h change."""
    if not watchlist.tickers:
        return f"{LIST_EMOJI} {watchlist.name} is empty"
    if watchlist.type == "crypto":
        quotes = await api.get_binance_quotes(watchlist.tickers, user=user) or {}
    else:
        quotes = await api.get_stock_quotes(watchlist.tickers)
    lines = [f"{LIST_EMOJI} {watchlist.name} ({watchlist.type})"]
    changes = []
    for symbol in watchlist.tickers:
        quote = quotes.get(symbol)
        if quote is None:
            lines.append(f"{symbol}: n/a")
            continue
        if quote.change_24h is not None:
            changes.append(quote.change_24h)
        lines.append(
            f"{change_emoji(quote.change_24h)} {symbol}: {format_price(quote.price)} "
            f"({format_change(quote.change_24h)})"
        )
    if changes:
        average = sum(changes) / len(changes)
        lines.append(f"Average: {format_change(average)}")
    return "\n".join(lines)


async def watchlist_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Create, edit, show or delete a watchlist."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(USAGE)
        return
    action, name, rest = args[0].lower(), args[1], args[2:]
    user = chat_id(update)
    if len(name) > config.MAX_LIST_NAME_LENGTH:
        await update.message.reply_text(
            f"{ERROR_EMOJI} List name can be at most "
            f"{config.MAX_LIST_NAME_LENGTH} characters"
        )
        return

    if action == "create":
        if name in PRESETS:
            type_, tickers = PRESETS[name]
            await db.create_watchlist(user, name, type_, tickers, replace=True)
            await update.message.reply_text(
                f"{SUCCESS_EMOJI} Created {name} with {len(tickers)} symbols"
            )
            return
        symbols, invalid = split_symbols(rest)
        if invalid:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Invalid symbols: {', '.join(invalid)}"
            )
            return
        if not symbols:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Usage: /watchlist create <name> <SYMBOLS...>"
            )
            return
        if await db.get_watchlist(user, name):
            await update.message.reply_text(
                f"{ERROR_EMOJI} A list called {name} already exists"
            )
            return
        pending_creates[user] = (name, symbols, time.time())
        keyboard = InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton("Crypto", callback_data=f"wl:crypto:{name}"),
                    InlineKeyboardButton("Stock", callback_data=f"wl:stock:{name}"),
                ]
            ]
        )
        await update.message.reply_text(
            f"{LIST_EMOJI} {name}: {', '.join(symbols[:10])}"
            f"{'...' if len(symbols) > 10 else ''}\nSave it as which type?",
            reply_markup=keyboard,
        )
        return

    watchlist = await db.get_watchlist(user, name)
    if watchlist is None:
        await update.message.reply_text(f"{ERROR_EMOJI} List {name} not found")
        return

    if action == "add":
        symbols, invalid = split_symbols(rest)
        if not symbols and not invalid:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Usage: /watchlist add <name> <SYMBOLS...>"
            )
            return
        added = [s for s in symbols if s not in watchlist.tickers]
        existing = [s for s in symbols if s in watchlist.tickers]
        if added:
            watchlist.tickers.extend(added)
            await db.save_watchlist_tickers(watchlist)
        lines = []
        if added:
            lines.append(f"{SUCCESS_EMOJI} Added: {', '.join(added)}")
        if existing:
            lines.append(f"{INFO_EMOJI} Already in list: {', '.join(existing)}")
        if invalid:
            lines.append(f"{ERROR_EMOJI} Invalid: {', '.join(invalid)}")
        await update.message.reply_text("\n".join(lines))
    elif action == "remove":
        symbols = list(dict.fromkeys(a.upper() for a in rest))
        if not symbols:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Usage: /watchlist remove <name> <SYMBOLS...>"
            )
            return
        removed = [s for s in symbols if s in watchlist.tickers]
        missing = [s for s in symbols if s not in watchlist.tickers]
        if removed:
            watchlist.tickers = [t for t in watchlist.tickers if t not in removed]
            await db.save_watchlist_tickers(watchlist)
        lines = []
        if removed:
            lines.append(f"{SUCCESS_EMOJI} Removed: {', '.join(removed)}")
        if missing:
            lines.append(f"{INFO_EMOJI} Not in list: {', '.join(missing)}")
        await update.message.reply_text("\n".join(lines))
    elif action == "show":
        await update.message.reply_text(await render_watchlist(watchlist, user))
    elif action == "delete":
        await db.delete_watchlist(user, name)
        await update.message.reply_text(f"{SUCCESS_EMOJI} Deleted list {name}")
    else:
        await update.message.reply_text(USAGE)


async def watchlists_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List the user's watchlists."""
    watchlists = await db.list_watchlists(chat_id(update))
    if not watchlists:
        await update.message.reply_text(
            f"{INFO_EMOJI} No watchlists yet. Try /watchlist create crypto-all"
        )
        return
    lines = [
        f"- {w.name} ({w.type}, {len(w.tickers)} symbols)" for w in watchlists
    ]
    await update.message.reply_text(
        f"{LIST_EMOJI} Your watchlists\n" + "\n".join(lines)
        + "\nSend a list name to view it."
    )


async def button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the type choice of a pending watchlist creation."""
    query = update.callback_query
    await query.answer()
    _, type_, name = query.data.split(":", 2)
    user = query.message.chat_id
    pending = pop_pending(user)
    if pending is None or pending[0] != name:
        await query.edit_message_text(
            f"{ERROR_EMOJI} This request expired, please run the command again"
        )
        return
    watchlist = await db.create_watchlist(user, name, type_, pending[1])
    if watchlist is None:
        await query.edit_message_text(
            f"{ERROR_EMOJI} A list called {name} already exists"
        )
        return
    await query.edit_message_text(
        f"{SUCCESS_EMOJI} Created {type_} list {name} with "
        f"{len(watchlist.tickers)} symbols"
    )


async def show_by_name(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show a watchlist when the user sends its name as plain text."""
    if not update.message or not update.message.text:
        return
    name = update.message.text.strip()
    if not name or len(name) > config.MAX_LIST_NAME_LENGTH:
        return
    user = chat_id(update)
    watchlist = await db.get_watchlist(user, name)
    if watchlist is None:
        return
    await update.message.reply_text(await render_watchlist(watchlist, user))
