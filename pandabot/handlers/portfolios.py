"""Portfolio tracking with weighted average cost."""

from typing import Dict, Optional

from telegram import Update
from telegram.ext import ContextTypes

from .. import api, config, db
from ..models import Portfolio
from .common import (
    ERROR_EMOJI,
    INFO_EMOJI,
    LIST_SYMBOL_RE,
    MONEY_EMOJI,
    STOCK_SYMBOL_RE,
    SUCCESS_EMOJI,
    change_emoji,
    chat_id,
    format_change,
    format_price,
    parse_amount,
)

USAGE = (
    f"{ERROR_EMOJI} Usage:\n"
    "/portfolio show <name>\n"
    "/portfolio add <name> <amount> <SYMBOL>\n"
    "/portfolio remove <name> <amount> <SYMBOL>\n"
    "/portfolio delete <name>\n"
    "Example: /portfolio add main 0.5 BTC"
)


async def lookup_quote(symbol: str, user: Optional[int] = None) -> Optional[api.Quote]:
    """Return a crypto quote, falling back to a stock quote."""
    quote = await api.get_binance_quote(symbol, user=user)
    if quote is None and STOCK_SYMBOL_RE.fullmatch(symbol):
        quote = await api.get_stock_quote(symbol)
    return quote


async def render_portfolio(portfolio: Portfolio, user: Optional[int] = None) -> str:
    """Return value, cost and profit per position and for the whole portfolio."""
    if not portfolio.items:
        return f"{MONEY_EMOJI} {portfolio.name}\nPortfolio is empty"
    prices: Dict[str, float] = {}
    for item in portfolio.items:
        quote = await lookup_quote(item.symbol, user)
        if quote is not None:
            prices[item.symbol] = quote.price
    lines = [f"{MONEY_EMOJI} {portfolio.name}"]
    total_value = 0.0
    total_cost = 0.0
    for item in portfolio.items:
        price = prices.get(item.symbol)
        if price is None:
            lines.append(
                f"{item.symbol}: {item.amount:g} @ ${format_price(item.avg_price)} "
                "(no price)"
            )
            continue
        value = item.amount * price
        pnl = value - item.cost
        pnl_pct = pnl / item.cost * 100 if item.cost else 0.0
        total_value += value
        total_cost += item.cost
        lines.append(
            f"{change_emoji(pnl_pct)} {item.symbol}: {item.amount:g} x "
            f"${format_price(price)} = ${value:,.2f} "
            f"(P&L ${pnl:+,.2f} / {format_change(pnl_pct)})"
        )
    total_pnl = total_value - total_cost
    total_pct = total_pnl / total_cost * 100 if total_cost else 0.0
    lines.append(
        f"Total: ${total_value:,.2f} | Cost: ${total_cost:,.2f} | "
        f"P&L: ${total_pnl:+,.2f} ({format_change(total_pct)})"
    )
    return "\n".join(lines)


async def portfolio_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show or change a portfolio."""
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text(USAGE)
        return
    action, name = args[0].lower(), args[1]
    user = chat_id(update)
    if len(name) > config.MAX_LIST_NAME_LENGTH:
        await update.message.reply_text(
            f"{ERROR_EMOJI} Portfolio name can be at most "
            f"{config.MAX_LIST_NAME_LENGTH} characters"
        )
        return

    if action in ("add", "remove"):
        if len(args) < 4:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Usage: /portfolio {action} <name> <amount> <SYMBOL>"
            )
            return
        amount = parse_amount(args[2])
        if amount is None:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Amount must be a number greater than zero"
            )
            return
        symbol = args[3].upper()
        if not LIST_SYMBOL_RE.fullmatch(symbol):
            await update.message.reply_text(f"{ERROR_EMOJI} Invalid symbol: {symbol}")
            return
        if action == "add":
            await _buy(update, user, name, amount, symbol)
        else:
            await _sell(update, user, name, amount, symbol)
        return

    portfolio = await db.get_portfolio(user, name)
    if portfolio is None:
        await update.message.reply_text(f"{ERROR_EMOJI} Portfolio {name} not found")
        return
    if action == "show":
        await update.message.reply_text(await render_portfolio(portfolio, user))
    elif action == "delete":
        await db.delete_portfolio(user, name)
        await update.message.reply_text(f"{SUCCESS_EMOJI} Deleted portfolio {name}")
    else:
        await update.message.reply_text(USAGE)


async def _buy(update: Update, user: int, name: str, amount: float, symbol: str) -> None:
    quote = await lookup_quote(symbol, user)
    if quote is None:
        await update.message.reply_text(f"{ERROR_EMOJI} No price found for {symbol}")
        return
    portfolio = await db.get_portfolio(user, name)
    if portfolio is None:
        portfolio = await db.create_portfolio(user, name)
        if portfolio is None:
            portfolio = await db.get_portfolio(user, name)
    existed = portfolio.find(symbol) is not None
    item = portfolio.buy(symbol, amount, quote.price)
    await db.save_portfolio(portfolio)
    if existed:
        await update.message.reply_text(
            f"{SUCCESS_EMOJI} Updated {symbol}\n"
            f"Amount: {item.amount:g}\nAverage cost: ${format_price(item.avg_price)}"
        )
    else:
        await update.message.reply_text(
            f"{SUCCESS_EMOJI} Added {amount:g} {symbol} to {name}\n"
            f"Cost: ${format_price(quote.price)}"
        )


async def _sell(update: Update, user: int, name: str, amount: float, symbol: str) -> None:
    portfolio = await db.get_portfolio(user, name)
    if portfolio is None:
        await update.message.reply_text(f"{ERROR_EMOJI} Portfolio {name} not found")
        return
    left = portfolio.sell(symbol, amount)
    if left is None:
        await update.message.reply_text(f"{ERROR_EMOJI} {symbol} is not in {name}")
        return
    await db.save_portfolio(portfolio)
    if left == 0:
        await update.message.reply_text(f"{SUCCESS_EMOJI} Removed {symbol} from {name}")
    else:
        await update.message.reply_text(
            f"{SUCCESS_EMOJI} Reduced {symbol}\nAmount left: {left:g}"
        )


async def portfolios_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    portfolios = await db.list_portfolios(chat_id(update))
    if not portfolios:
        await update.message.reply_text(
            f"{INFO_EMOJI} No portfolios yet. Try /portfolio add main 0.5 BTC"
        )
        return
    lines = [f"- {p.name} ({len(p.items)} positions)" for p in portfolios]
    await update.message.reply_text(f"{MONEY_EMOJI} Your portfolios\n" + "\n".join(lines))
