"""Entry point for running PandaBot."""

import asyncio
import os
import signal
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram.ext import Application, ApplicationBuilder

from . import config, db, handlers
from .alerts import AlertEvaluator
from .api import CoinMarketCapClient
from .handlers import admin
from .keys import KeyManager
from .notifier import TelegramNotifier
from .reminders import ReminderScheduler


def build_services(app: Application, scheduler: AsyncIOScheduler) -> None:
    """Create the shared services and schedule the background jobs."""
    notifier = TelegramNotifier(app.bot, config.ADMIN_ID)
    app.bot_data["notifier"] = notifier
    app.bot_data["started_at"] = time.time()

    keys = None
    if config.COINMARKETCAP_API_KEYS:
        keys = KeyManager(
            config.COINMARKETCAP_API_KEYS,
            active=config.COINMARKETCAP_ACTIVE_KEY,
            requests_limit=config.CMC_REQUESTS_LIMIT,
        )
        app.bot_data["cmc"] = CoinMarketCapClient(keys)
        scheduler.add_job(
            admin.reset_cmc_keys, "cron", hour=0, minute=0, args=(keys, notifier)
        )
    else:
        config.logger.warning("no CoinMarketCap keys configured")
    app.bot_data["keys"] = keys

    app.bot_data["reminders"] = ReminderScheduler(scheduler, notifier)

    if config.is_module_active("alerts"):
        evaluator = AlertEvaluator(notifier)
        scheduler.add_job(
            evaluator.run,
            "interval",
            seconds=config.ALERT_CHECK_INTERVAL,
            max_instances=1,
            coalesce=True,
        )
    scheduler.add_job(
        admin.send_daily_summary, "cron", hour=9, minute=0, args=(notifier,)
    )


async def main() -> None:
    """Run the Telegram bot until the process receives a stop signal."""
    await db.init_db()

    token = os.getenv("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN not set")

    app = ApplicationBuilder().token(token).concurrent_updates(True).build()
    handlers.register_handlers(app)

    scheduler = AsyncIOScheduler(timezone=config.TZ)
    build_services(app, scheduler)
    scheduler.start()
    if config.is_module_active("reminders"):
        await app.bot_data["reminders"].restore()

    await app.initialize()
    await app.bot.set_my_commands(handlers.bot_commands())
    await app.start()
    await app.updater.start_polling()
    config.logger.info("%s started in %s mode", config.BOT_NAME, config.BOT_MODE)

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        asyncio.get_running_loop().add_signal_handler(sig, stop_event.set)

    await stop_event.wait()
    await app.updater.stop()
    await app.stop()
    await app.shutdown()
    scheduler.shutdown()
    config.logger.info("%s stopped", config.BOT_NAME)
