import pytest
from telegram.error import Forbidden
from telegram.ext import ApplicationHandlerStop

import pandabot.config as config
import pandabot.db as db
from pandabot.handlers import users


class DummyUser:
    def __init__(self, user_id, username="alice"):
        self.id = user_id
        self.username = username
        self.first_name = "Alice"
        self.last_name = None
        self.language_code = "en"
        self.full_name = "Alice"


class DummyMessage:
    def __init__(self, text="/price btc"):
        self.text = text
        self.texts = []

    async def reply_text(self, text, **kwargs):
        self.texts.append(text)


class DummyUpdate:
    def __init__(self, user_id=1, text="/price btc"):
        self.effective_user = DummyUser(user_id)
        self.message = DummyMessage(text)
        self.effective_message = self.message


class DummyNotifier:
    def __init__(self):
        self.admin = []

    async def notify_admin(self, text):
        self.admin.append(text)


class DummyContext:
    def __init__(self, notifier=None):
        self.args = []
        self.bot_data = {"notifier": notifier} if notifier else {}


async def setup(tmp_path, monkeypatch):
    config.DB_FILE = str(tmp_path / "users.db")
    await db.init_db()
    users.RATE_WINDOWS.clear()
    users.RATE_WARNED.clear()
    monkeypatch.setattr(config, "ADMIN_ID", 99)


@pytest.mark.asyncio
async def test_new_user_registered_and_counted(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    notifier = DummyNotifier()
    await users.pre_dispatch(DummyUpdate(), DummyContext(notifier))
    await users.pre_dispatch(DummyUpdate(text="hello"), DummyContext(notifier))
    user = await db.get_user(1)
    assert user.username == "alice"
    assert user.total_commands == 1
    assert len(notifier.admin) == 1
    assert "New user" in notifier.admin[0]


@pytest.mark.asyncio
async def test_banned_user_is_dropped(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await db.upsert_user(1, "alice")
    await db.set_user_flag(1, "is_banned", True)
    update = DummyUpdate()
    with pytest.raises(ApplicationHandlerStop):
        await users.pre_dispatch(update, DummyContext())
    assert update.message.texts == []


@pytest.mark.asyncio
async def test_rate_limit_warns_once(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 2)
    await users.pre_dispatch(DummyUpdate(), DummyContext())
    await users.pre_dispatch(DummyUpdate(), DummyContext())
    first = DummyUpdate()
    with pytest.raises(ApplicationHandlerStop):
        await users.pre_dispatch(first, DummyContext())
    second = DummyUpdate()
    with pytest.raises(ApplicationHandlerStop):
        await users.pre_dispatch(second, DummyContext())
    assert "slow down" in first.message.texts[0]
    assert second.message.texts == []


@pytest.mark.asyncio
async def test_admin_is_never_limited(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 1)
    for _ in range(3):
        await users.pre_dispatch(DummyUpdate(user_id=99), DummyContext())
    assert (await db.get_user(99)).total_commands == 3


def test_rate_window_expires():
    users.RATE_WINDOWS.clear()
    users.RATE_WARNED.clear()
    limit = config.RATE_LIMIT_PER_MINUTE
    for i in range(limit):
        assert not users.is_rate_limited(5, now=1000.0 + i * 0.1)
    assert users.is_rate_limited(5, now=1010.0)
    assert not users.is_rate_limited(5, now=1000.0 + users.RATE_WINDOW + 30)


@pytest.mark.asyncio
async def test_start_and_help(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "BOT_MODE", "read-only")
    update = DummyUpdate(text="/start")
    await users.start(update, DummyContext())
    assert "Welcome to PandaBot" in update.message.texts[0]
    assert await db.get_user(1) is not None
    await users.help_cmd(update, DummyContext())
    text = update.message.texts[1]
    assert "/price" in text
    assert "/note" in text
    assert "/alert " not in text
    assert "/ai " not in text
    assert "/ban" not in text


class ErrorContext(DummyContext):
    def __init__(self, error, notifier=None):
        super().__init__(notifier)
        self.error = error


@pytest.mark.asyncio
async def test_error_handler_reports_to_admin(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    monkeypatch.setattr(users, "Update", DummyUpdate)
    notifier = DummyNotifier()
    update = DummyUpdate()
    await users.error_handler(update, ErrorContext(RuntimeError("boom"), notifier))
    assert "boom" in notifier.admin[0]
    assert "Something went wrong" in update.message.texts[0]


@pytest.mark.asyncio
async def test_error_handler_flags_blocked_user(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    monkeypatch.setattr(users, "Update", DummyUpdate)
    await db.upsert_user(1, "alice")
    notifier = DummyNotifier()
    update = DummyUpdate()
    await users.error_handler(update, ErrorContext(Forbidden("blocked"), notifier))
    assert (await db.get_user(1)).is_blocked
    assert notifier.admin == []
    assert update.message.texts == []


def test_warning_rearms_once_below_limit(monkeypatch):
    users.RATE_WINDOWS.clear()
    users.RATE_WARNED.clear()
    monkeypatch.setattr(config, "RATE_LIMIT_PER_MINUTE", 2)
    assert not users.is_rate_limited(5, now=0.0)
    assert not users.is_rate_limited(5, now=30.0)
    assert users.is_rate_limited(5, now=40.0)
    users.RATE_WARNED.add(5)
    # the first timestamp expired, the second one is still in the window
    assert not users.is_rate_limited(5, now=61.0)
    assert 5 not in users.RATE_WARNED
    assert users.is_rate_limited(5, now=62.0)
