"""Percent-change price alerts."""

from telegram import Update
from telegram.ext import ContextTypes

from .. import api, db
from .common import (
    BELL_EMOJI,
    CRYPTO_SYMBOL_RE,
    ERROR_EMOJI,
    INFO_EMOJI,
    SUCCESS_EMOJI,
    change_emoji,
    chat_id,
    format_change,
    format_price,
    parse_percent,
    parse_short_id,
)

USAGE = (
    f"{ERROR_EMOJI} Usage:\n"
    "/alert <SYMBOL> <PERCENT>\n"
    "/alert cancel #id\n"
    "/alert delete <SYMBOL>\n"
    "Example: /alert BTC 5 or /alert ETH -3.5%"
)


async def alert_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Create, pause or delete alerts."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(USAGE)
        return
    user = chat_id(update)
    action = args[0].lower()

    if action == "cancel":
        short_id = parse_short_id(args[1])
        if short_id is None:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /alert cancel #id")
            return
        if await db.pause_alert(user, short_id):
            await update.message.reply_text(f"{SUCCESS_EMOJI} Alert #{short_id} paused")
        else:
            await update.message.reply_text(
                f"{ERROR_EMOJI} No active alert #{short_id}"
            )
        return

    if action == "delete":
        symbol = args[1].upper()
        deleted = await db.delete_alerts(user, symbol)
        if deleted:
            await update.message.reply_text(
                f"{SUCCESS_EMOJI} Deleted {deleted} alert(s) on {symbol}"
            )
        else:
            await update.message.reply_text(f"{INFO_EMOJI} No alerts on {symbol}")
        return

    symbol = args[0].upper()
    if not CRYPTO_SYMBOL_RE.fullmatch(symbol):
        await update.message.reply_text(f"{ERROR_EMOJI} Invalid symbol: {symbol}")
        return
    threshold = parse_percent(args[1])
    if threshold is None or threshold == 0:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Percent must be a non-zero number like 5 or -3.5"
        )
        return
    if await db.find_active_alert(user, symbol, threshold):
        await update.message.reply_text(
            f"{INFO_EMOJI} You already have a {format_change(threshold)} alert on {symbol}"
        )
        return
    quote = await api.get_binance_quote(symbol, user=user)
    if quote is None:
        await update.message.reply_text(f"{ERROR_EMOJI} No price found for {symbol}")
        return
    alert = await db.add_alert(user, symbol, threshold, quote.price)
    target = quote.price * (1 + threshold / 100)
    await update.message.reply_text(
        f"{SUCCESS_EMOJI} Alert #{alert.short_id} created\n"
        f"{symbol} base: ${format_price(quote.price)}\n"
        f"Target: {format_change(threshold)} (${format_price(target)})"
    )


async def alerts_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List active alerts with the live change since creation."""
    user = chat_id(update)
    alerts = await db.list_user_alerts(user)
    if not alerts:
        await update.message.reply_text(
            f"{INFO_EMOJI} No active alerts. Try /alert BTC 5"
        )
        return
    symbols = list(dict.fromkeys(a.symbol for a in alerts))
    quotes = await api.get_binance_quotes(symbols, user=user) or {}
    lines = [f"{BELL_EMOJI} Your alerts"]
    for alert in alerts:
        quote = quotes.get(alert.symbol)
        price = quote.price if quote else alert.current_price
        line = (
            f"#{alert.short_id} {alert.symbol} {format_change(alert.threshold)} "
            f"from ${format_price(alert.base_price)}"
        )
        if price is not None and alert.base_price > 0:
            change = alert.change_percent(price)
            line += f" | now ${format_price(price)} {change_emoji(change)} {format_change(change)}"
        lines.append(line)
    await update.message.reply_text("\n".join(lines))
