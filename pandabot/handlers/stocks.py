"""Stock quote commands backed by Yahoo Finance."""

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from .. import api
from .common import (
    ERROR_EMOJI,
    INFO_EMOJI,
    STOCK_SYMBOL_RE,
    change_emoji,
    chat_id,
    format_change,
    format_large_number,
    format_price,
)

MAX_SYMBOLS = 10


def format_stock(quote: api.Quote) -> str:
    lines = [
        f"{change_emoji(quote.change_24h)} {quote.symbol}",
        f"Price: {format_price(quote.price)} {quote.currency}",
        f"Change: {format_change(quote.change_24h)}",
    ]
    if quote.market_cap:
        lines.append(f"Market cap: {format_large_number(quote.market_cap)}")
    return "\n".join(lines)


async def stock_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show one stock in detail or several in a compact list."""
    if not context.args:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Usage: /s <SYMBOL> [SYMBOL...]\nExample: /s AAPL THYAO"
        )
        return
    symbols = list(dict.fromkeys(a.upper() for a in context.args))[:MAX_SYMBOLS]
    invalid = [s for s in symbols if not STOCK_SYMBOL_RE.fullmatch(s)]
    if invalid:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Invalid symbol: {', '.join(invalid)}"
        )
        return
    await context.bot.send_chat_action(chat_id(update), ChatAction.TYPING)
    quotes = await api.get_stock_quotes(symbols)
    if len(symbols) == 1:
        quote = quotes.get(symbols[0])
        if quote is None:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Stock {symbols[0]} not found"
            )
            return
        await update.message.reply_text(format_stock(quote))
        return
    lines = []
    for symbol in symbols:
        quote = quotes.get(symbol)
        if quote is None:
            lines.append(f"{symbol}: not found")
        else:
            lines.append(
                f"{change_emoji(quote.change_24h)} {quote.symbol}: "
                f"{format_price(quote.price)} {quote.currency} "
                f"({format_change(quote.change_24h)})"
            )
    await update.message.reply_text(f"{INFO_EMOJI} Stocks\n" + "\n".join(lines))
