import pytest
from telegram.error import BadRequest, Forbidden, NetworkError, TimedOut

from pandabot.notifier import (
    TelegramNotifier,
    global_messages,
    is_unreachable,
    send_rate_limited,
    user_messages,
)


class DummyBot:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send_message(self, chat_id, text):
        if self.error is not None:
            raise self.error
        self.sent.append((chat_id, text))


@pytest.mark.asyncio
async def test_send_rate_limited_format():
    user_messages.clear()
    global_messages.clear()
    bot = DummyBot()
    await send_rate_limited(bot, 123, "SOL moved -1% to $10", emoji="🔻", suffix="(5m)")
    assert bot.sent[0] == (123, "🔻 SOL moved -1% to $10 (5m)")
    assert len(user_messages[123]) == 1


def test_unreachable_errors():
    assert is_unreachable(Forbidden("Forbidden: bot was blocked by the user"))
    assert is_unreachable(BadRequest("Chat not found"))
    assert not is_unreachable(BadRequest("Message is too long"))
    assert not is_unreachable(NetworkError("connection reset"))


@pytest.mark.asyncio
async def test_notify_admin_logs_failures():
    user_messages.clear()
    global_messages.clear()
    notifier = TelegramNotifier(DummyBot(error=TimedOut()), admin_id=7)
    await notifier.notify_admin("hello")


@pytest.mark.asyncio
async def test_notify_admin_without_admin_is_noop():
    bot = DummyBot()
    await TelegramNotifier(bot).notify_admin("hello")
    assert bot.sent == []


@pytest.mark.asyncio
async def test_send_propagates_errors():
    user_messages.clear()
    global_messages.clear()
    notifier = TelegramNotifier(DummyBot(error=Forbidden("blocked")))
    with pytest.raises(Forbidden):
        await notifier.send(1, "hi")
