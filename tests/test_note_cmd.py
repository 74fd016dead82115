import pytest

import pandabot.config as config
import pandabot.db as db
from pandabot.handlers import notes


class DummyMessage:
    def __init__(self, text=""):
        self.text = text
        self.chat_id = 1
        self.texts = []
        self.markups = []

    async def reply_text(self, text, reply_markup=None, **kwargs):
        self.texts.append(text)
        self.markups.append(reply_markup)


class DummyUpdate:
    def __init__(self, text=""):
        self.message = DummyMessage(text)
        self.effective_chat = type("Chat", (), {"id": 1})()


class DummyContext:
    def __init__(self, text=""):
        self.args = text.split()[1:]
        self.bot = DummyBot()
        self.bot_data = {}


class DummyBot:
    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text, **kwargs):
        self.sent.append((chat_id, text))


class DummyQuery:
    def __init__(self, data):
        self.data = data
        self.message = DummyMessage()
        self.edits = []

    async def answer(self):
        pass

    async def edit_message_text(self, text, reply_markup=None, **kwargs):
        self.edits.append((text, reply_markup))


class DummyCallbackUpdate:
    def __init__(self, data):
        self.callback_query = DummyQuery(data)


async def run(text):
    update = DummyUpdate(text)
    await notes.note_cmd(update, DummyContext(text))
    return update.message


async def setup_db(tmp_path):
    config.DB_FILE = str(tmp_path / "notes.db")
    await db.init_db()


@pytest.mark.asyncio
async def test_add_keeps_newlines(tmp_path):
    await setup_db(tmp_path)
    message = await run("/note add shopping:\n- milk\n- eggs")
    assert "Saved note #1" in message.texts[0]
    note = await db.get_note(1, 1)
    assert note.content == "shopping:\n- milk\n- eggs"


@pytest.mark.asyncio
async def test_add_too_long(tmp_path):
    await setup_db(tmp_path)
    message = await run("/note add " + "x" * (config.MAX_NOTE_LENGTH + 1))
    assert "at most" in message.texts[0]
    assert await db.list_notes(1) == []


@pytest.mark.asyncio
async def test_list_has_view_and_delete_buttons(tmp_path):
    await setup_db(tmp_path)
    await run("/note add first")
    await run("/note add second")
    message = await run("/note list")
    assert "#2 second" in message.texts[0]
    buttons = message.markups[0].inline_keyboard
    assert buttons[0][0].callback_data == "note:view:2"
    assert buttons[0][1].callback_data == "note:del:2"


@pytest.mark.asyncio
async def test_search_view_edit(tmp_path):
    await setup_db(tmp_path)
    await run("/note add Pay the electricity bill")
    message = await run("/note search ELECTRICITY")
    assert "1 notes match" in message.texts[0]
    message = await run("/note edit #1 Pay the water bill")
    assert "Updated note #1" in message.texts[0]
    message = await run("/note view 1")
    assert "Pay the water bill" in message.texts[0]
    message = await run("/note view #9")
    assert "not found" in message.texts[0]


@pytest.mark.asyncio
async def test_delete_command(tmp_path):
    await setup_db(tmp_path)
    await run("/note add temp")
    message = await run("/note delete #1")
    assert "Deleted note #1" in message.texts[0]
    assert await db.get_note(1, 1) is None


@pytest.mark.asyncio
async def test_delete_button_asks_for_confirmation(tmp_path):
    await setup_db(tmp_path)
    await run("/note add temp")
    update = DummyCallbackUpdate("note:del:1")
    await notes.button(update, DummyContext())
    text, markup = update.callback_query.edits[0]
    assert "Delete note #1?" in text
    assert markup.inline_keyboard[0][0].callback_data == "note:confirm:1"
    assert await db.get_note(1, 1) is not None

    update = DummyCallbackUpdate("note:cancel:1")
    await notes.button(update, DummyContext())
    assert await db.get_note(1, 1) is not None

    update = DummyCallbackUpdate("note:confirm:1")
    await notes.button(update, DummyContext())
    assert "Deleted" in update.callback_query.edits[0][0]
    assert await db.get_note(1, 1) is None


@pytest.mark.asyncio
async def test_view_button_sends_note(tmp_path):
    await setup_db(tmp_path)
    await run("/note add remember this")
    context = DummyContext()
    await notes.button(DummyCallbackUpdate("note:view:1"), context)
    assert context.bot.sent[0][0] == 1
    assert "remember this" in context.bot.sent[0][1]
