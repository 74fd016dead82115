"""Crypto price commands."""

from telegram import Update
from telegram.ext import ContextTypes

from .. import api
from .common import (
    CRYPTO_SYMBOL_RE,
    ERROR_EMOJI,
    INFO_EMOJI,
    change_emoji,
    chat_id,
    format_change,
    format_large_number,
    format_price,
    service,
)


def format_quote_text(quote: api.Quote) -> str:
    """Return a detailed multi-line description of ``quote``."""
    title = f"{quote.name} ({quote.symbol})" if quote.name else quote.symbol
    lines = [
        f"{change_emoji(quote.change_24h)} {title}",
        f"Price: ${format_price(quote.price)}",
        f"24h: {format_change(quote.change_24h)}",
    ]
    if quote.change_7d is not None:
        lines.append(f"7d: {format_change(quote.change_7d)}")
    if quote.volume_24h:
        lines.append(f"Volume 24h: ${format_large_number(quote.volume_24h)}")
    if quote.market_cap:
        lines.append(f"Market cap: ${format_large_number(quote.market_cap)}")
    if quote.circulating_supply:
        lines.append(f"Supply: {format_large_number(quote.circulating_supply)}")
    return "\n".join(lines)


async def price_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show the price of one coin, enriched with CoinMarketCap data."""
    if not context.args:
        await update.message.reply_text(f"{ERROR_EMOJI} Usage: /price <SYMBOL>")
        return
    symbol = context.args[0].upper()
    if not CRYPTO_SYMBOL_RE.fullmatch(symbol):
        await update.message.reply_text(f"{ERROR_EMOJI} Invalid symbol: {symbol}")
        return
    user = chat_id(update)
    quote = await api.get_binance_quote(symbol, user=user)
    cmc = service(context, "cmc")
    if cmc is not None:
        extra = await cmc.get_quote(symbol, user=user)
        if extra and quote:
            extra.price = quote.price
            extra.change_24h = quote.change_24h
            extra.volume_24h = quote.volume_24h or extra.volume_24h
            quote = extra
        elif extra:
            quote = extra
    if quote is None:
        await update.message.reply_text(f"{ERROR_EMOJI} No price found for {symbol}")
        return
    await update.message.reply_text(format_quote_text(quote))


async def prices_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show a compact price line for several coins."""
    if not context.args:
        await update.message.reply_text(f"{ERROR_EMOJI} Usage: /p <SYMBOL> [SYMBOL...]")
        return
    symbols = list(dict.fromkeys(a.upper() for a in context.args))
    invalid = [s for s in symbols if not CRYPTO_SYMBOL_RE.fullmatch(s)]
    symbols = [s for s in symbols if s not in invalid]
    quotes = await api.get_binance_quotes(symbols, user=chat_id(update)) if symbols else {}
    if quotes is None:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Price service unavailable, please try again later"
        )
        return
    lines = []
    for symbol in symbols:
        quote = quotes.get(symbol)
        if quote is None:
            lines.append(f"{symbol}: not found")
            continue
        lines.append(
            f"{change_emoji(quote.change_24h)} {symbol}: ${format_price(quote.price)} "
            f"({format_change(quote.change_24h)})"
        )
    if invalid:
        lines.append(f"{ERROR_EMOJI} Invalid: {', '.join(invalid)}")
    await update.message.reply_text(f"{INFO_EMOJI} Prices\n" + "\n".join(lines))
