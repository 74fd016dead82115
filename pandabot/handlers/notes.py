"""Personal notes."""

from datetime import datetime

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from .. import config, db
from ..models import Note
from .common import (
    ERROR_EMOJI,
    INFO_EMOJI,
    NOTE_EMOJI,
    SUCCESS_EMOJI,
    chat_id,
    command_rest,
    parse_short_id,
)

USAGE = (
    f"{ERROR_EMOJI} Usage:\n"
    "/note add <text>\n"
    "/note list\n"
    "/note search <text>\n"
    "/note view #id\n"
    "/note edit #id <text>\n"
    "/note delete #id"
)
PREVIEW_LENGTH = 60


def preview(note: Note) -> str:
    text = " ".join(note.content.split())
    if len(text) > PREVIEW_LENGTH:
        text = text[: PREVIEW_LENGTH - 3] + "..."
    return f"#{note.short_id} {text}"


def format_note(note: Note) -> str:
    stamp = datetime.fromtimestamp(note.updated_at, config.TZ).strftime("%Y-%m-%d %H:%M")
    return f"{NOTE_EMOJI} Note #{note.short_id} ({stamp})\n\n{note.content}"


def notes_keyboard(notes) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(
                    f"View #{n.short_id}", callback_data=f"note:view:{n.short_id}"
                ),
                InlineKeyboardButton(
                    f"Delete #{n.short_id}", callback_data=f"note:del:{n.short_id}"
                ),
            ]
            for n in notes
        ]
    )


async def note_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Add, list, search, view, edit or delete notes."""
    args = context.args or []
    if not args:
        await update.message.reply_text(USAGE)
        return
    action = args[0].lower()
    user = chat_id(update)

    if action == "add":
        content = command_rest(update, 2)
        if not content:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /note add <text>")
            return
        if len(content) > config.MAX_NOTE_LENGTH:
            await update.message.reply_text(
                f"{ERROR_EMOJI} Notes can be at most {config.MAX_NOTE_LENGTH} characters"
            )
            return
        note = await db.add_note(user, content)
        await update.message.reply_text(f"{SUCCESS_EMOJI} Saved note #{note.short_id}")
    elif action == "list":
        notes = await db.list_notes(user)
        if not notes:
            await update.message.reply_text(f"{INFO_EMOJI} You have no notes")
            return
        await update.message.reply_text(
            f"{NOTE_EMOJI} Your notes\n" + "\n".join(preview(n) for n in notes),
            reply_markup=notes_keyboard(notes),
        )
    elif action == "search":
        text = command_rest(update, 2)
        if not text:
            await update.message.reply_text(f"{ERROR_EMOJI} Usage: /note search <text>")
            return
        notes = await db.search_notes(user, text)
        if not notes:
            await update.message.reply_text(f"{INFO_EMOJI} No notes match '{text}'")
            return
        await update.message.reply_text(
            f"{NOTE_EMOJI} {len(notes)} notes match '{text}'\n"
            + "\n".join(preview(n) for n in notes),
            reply_markup=notes_keyboard(notes),
        )
    elif action in ("view", "edit", "delete"):
        short_id = parse_short_id(args[1]) if len(args) > 1 else None
        if short_id is None:
            await update.message.reply_text(USAGE)
            return
        if action == "view":
            note = await db.get_note(user, short_id)
            if note is None:
                await update.message.reply_text(f"{ERROR_EMOJI} Note #{short_id} not found")
                return
            await update.message.reply_text(format_note(note))
        elif action == "edit":
            content = command_rest(update, 3)
            if not content:
                await update.message.reply_text(
                    f"{ERROR_EMOJI} Usage: /note edit #id <text>"
                )
                return
            if len(content) > config.MAX_NOTE_LENGTH:
                await update.message.reply_text(
                    f"{ERROR_EMOJI} Notes can be at most "
                    f"{config.MAX_NOTE_LENGTH} characters"
                )
                return
            note = await db.update_note(user, short_id, content)
            if note is None:
                await update.message.reply_text(f"{ERROR_EMOJI} Note #{short_id} not found")
                return
            await update.message.reply_text(f"{SUCCESS_EMOJI} Updated note #{short_id}")
        else:
            if await db.delete_note(user, short_id):
                await update.message.reply_text(f"{SUCCESS_EMOJI} Deleted note #{short_id}")
            else:
                await update.message.reply_text(f"{ERROR_EMOJI} Note #{short_id} not found")
    else:
        await update.message.reply_text(USAGE)


async def button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle note view and delete buttons."""
    query = update.callback_query
    await query.answer()
    _, action, value = query.data.split(":", 2)
    user = query.message.chat_id
    short_id = int(value)
    if action == "view":
        note = await db.get_note(user, short_id)
        text = format_note(note) if note else f"{ERROR_EMOJI} Note #{short_id} not found"
        await context.bot.send_message(chat_id=user, text=text)
    elif action == "del":
        keyboard = InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton(
                        "Yes, delete", callback_data=f"note:confirm:{short_id}"
                    ),
                    InlineKeyboardButton("Cancel", callback_data=f"note:cancel:{short_id}"),
                ]
            ]
        )
        await query.edit_message_text(
            f"{ERROR_EMOJI} Delete note #{short_id}?", reply_markup=keyboard
        )
    elif action == "confirm":
        if await db.delete_note(user, short_id):
            await query.edit_message_text(f"{SUCCESS_EMOJI} Deleted note #{short_id}")
        else:
            await query.edit_message_text(f"{ERROR_EMOJI} Note #{short_id} not found")
    elif action == "cancel":
        await query.edit_message_text(f"{INFO_EMOJI} Kept note #{short_id}")
