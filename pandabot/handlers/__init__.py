"""Telegram handlers grouped by feature module."""

from telegram import BotCommand, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    TypeHandler,
    filters,
)

from .. import config
from . import (
    admin,
    ai,
    alerts,
    currency,
    notes,
    portfolios,
    prices,
    reminders,
    stocks,
    users,
    watchlists,
)
from .common import COMMAND_CATEGORIES

# handler module -> (command names, callback)
MODULE_HANDLERS = {
    "users": [
        ("start", users.start),
        ("help", users.help_cmd),
    ],
    "prices": [
        ("price", prices.price_cmd),
        ("p", prices.prices_cmd),
    ],
    "stocks": [
        (["s", "stock"], stocks.stock_cmd),
    ],
    "currency": [
        (["usdtry", "dolar"], currency.usdtry_cmd),
    ],
    "watchlists": [
        ("watchlist", watchlists.watchlist_cmd),
        ("watchlists", watchlists.watchlists_cmd),
    ],
    "portfolios": [
        ("portfolio", portfolios.portfolio_cmd),
        ("portfolios", portfolios.portfolios_cmd),
    ],
    "notes": [
        ("note", notes.note_cmd),
    ],
    "alerts": [
        ("alert", alerts.alert_cmd),
        ("alerts", alerts.alerts_cmd),
    ],
    "reminders": [
        ("remind", reminders.remind_cmd),
        ("reminders", reminders.reminders_cmd),
    ],
    "ai": [
        ("ai", ai.ai_cmd),
    ],
    "admin": [
        ("stats", admin.stats_cmd),
        ("users", admin.users_cmd),
        ("ban", admin.ban_cmd),
        ("unban", admin.unban_cmd),
        ("broadcast", admin.broadcast_cmd),
        ("logs", admin.logs_cmd),
        ("keys", admin.keys_cmd),
        ("status", admin.status_cmd),
    ],
}


def active_modules(mode=None) -> list[str]:
    return [name for name in MODULE_HANDLERS if config.is_module_active(name, mode)]


def bot_commands(mode=None) -> list[BotCommand]:
    """Commands shown in the Telegram menu, without the admin ones."""
    return [
        BotCommand(name, desc)
        for module in active_modules(mode)
        if module != "admin"
        for name, desc in COMMAND_CATEGORIES[module]
    ]


async def button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route inline keyboard callbacks by their prefix."""
    query = update.callback_query
    if query.data.startswith("wl:") and config.is_module_active("watchlists"):
        await watchlists.button(update, context)
    elif query.data.startswith("note:") and config.is_module_active("notes"):
        await notes.button(update, context)
    else:
        await query.answer()


def register_handlers(app: Application, mode=None) -> None:
    """Add the handlers of every module active in ``mode``."""
    app.add_handler(TypeHandler(Update, users.pre_dispatch), group=-1)
    modules = active_modules(mode)
    for module in modules:
        for commands, callback in MODULE_HANDLERS[module]:
            app.add_handler(CommandHandler(commands, callback))
    app.add_handler(CallbackQueryHandler(button))
    if "watchlists" in modules:
        app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, watchlists.show_by_name)
        )
    app.add_error_handler(users.error_handler)
    config.logger.info("mode %s, modules: %s", mode or config.BOT_MODE, ", ".join(modules))
