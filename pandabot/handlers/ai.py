"""Proxy questions to the chat completion API."""

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import ContextTypes

from .. import api
from .common import ERROR_EMOJI, ROBOT_EMOJI, chat_id, command_rest

MAX_REPLY = 4000
ERRORS = {
    "not_configured": "The AI service is not configured",
    "unauthorized": "The AI service rejected our API key",
    "forbidden": "The AI service refused this request",
    "rate_limited": "The AI service is busy, please try again in a minute",
    "timeout": "The AI service took too long to answer",
    "connection": "Could not reach the AI service",
    "empty": "The AI service returned an empty answer",
}


def format_answer(result: api.AIResult) -> str:
    text = result.text
    if len(text) > MAX_REPLY:
        text = text[:MAX_REPLY] + "..."
    return (
        f"{ROBOT_EMOJI} {text}\n\n"
        f"Tokens: {result.total_tokens} | Cost: ${result.cost:.6f}"
    )


async def ai_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Answer a free-form question."""
    prompt = command_rest(update, 1)
    if not prompt:
        await update.message.reply_text(f"{ERROR_EMOJI} Usage: /ai <question>")
        return
    user = chat_id(update)
    await context.bot.send_chat_action(chat_id=user, action=ChatAction.TYPING)
    result, err = await api.ask_ai(prompt, user=user)
    if result is None:
        message = ERRORS.get(err, f"AI request failed ({err})")
        await update.message.reply_text(f"{ERROR_EMOJI} {message}")
        return
    await update.message.reply_text(format_answer(result))
