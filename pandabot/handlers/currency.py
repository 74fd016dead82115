"""Exchange rate command."""

from datetime import datetime

from telegram import Update
from telegram.ext import ContextTypes

from .. import api, config
from .common import ERROR_EMOJI, MONEY_EMOJI


async def usdtry_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show the current USD/TRY exchange rate."""
    rate, err = await api.get_usd_try()
    if err:
        if err == "rate limited":
            text = "Rate service limit reached, try again in a few minutes"
        else:
            text = "Could not fetch the exchange rate, please try again"
        await update.message.reply_text(f"{ERROR_EMOJI} {text}")
        return
    stamp = datetime.now(config.TZ).strftime("%Y-%m-%d %H:%M")
    await update.message.reply_text(
        f"{MONEY_EMOJI} USD/TRY\n$1 = ₺{rate:.2f}\nUpdated: {stamp}"
    )
