import pytest

import pandabot.api as api
import pandabot.config as config
import pandabot.db as db
from pandabot.api import Quote
from pandabot.handlers import alerts


class DummyMessage:
    def __init__(self):
        self.texts = []

    async def reply_text(self, text, **kwargs):
        self.texts.append(text)


class DummyUpdate:
    def __init__(self):
        self.message = DummyMessage()
        self.effective_chat = type("Chat", (), {"id": 1})()


class DummyContext:
    def __init__(self, *args):
        self.args = list(args)
        self.bot_data = {}


async def setup(tmp_path, monkeypatch, price=100.0):
    config.DB_FILE = str(tmp_path / "alerts.db")
    await db.init_db()

    async def fake_quote(symbol, session=None, *, user=None):
        return Quote(symbol, price) if symbol != "NOPE" else None

    async def fake_quotes(symbols, session=None, *, user=None):
        return {s: Quote(s, price * 1.1) for s in symbols}

    monkeypatch.setattr(api, "get_binance_quote", fake_quote)
    monkeypatch.setattr(api, "get_binance_quotes", fake_quotes)


@pytest.mark.asyncio
async def test_create_alert_uses_current_price(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    update = DummyUpdate()
    await alerts.alert_cmd(update, DummyContext("btc", "5%"))
    created = await db.list_user_alerts(1)
    assert len(created) == 1
    assert created[0].symbol == "BTC"
    assert created[0].threshold == 5.0
    assert created[0].base_price == 100.0
    assert "Alert #1 created" in update.message.texts[0]


@pytest.mark.asyncio
async def test_comma_decimal_and_negative(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await alerts.alert_cmd(DummyUpdate(), DummyContext("ETH", "-2,5"))
    assert (await db.list_user_alerts(1))[0].threshold == -2.5


@pytest.mark.asyncio
async def test_duplicate_alert_rejected(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await alerts.alert_cmd(DummyUpdate(), DummyContext("BTC", "5"))
    update = DummyUpdate()
    await alerts.alert_cmd(update, DummyContext("BTC", "5"))
    assert len(await db.list_user_alerts(1)) == 1
    assert "already" in update.message.texts[0]


@pytest.mark.asyncio
async def test_invalid_input(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    update = DummyUpdate()
    await alerts.alert_cmd(update, DummyContext("BTC", "0"))
    await alerts.alert_cmd(update, DummyContext("BTC", "lots"))
    await alerts.alert_cmd(update, DummyContext("NOPE", "5"))
    await alerts.alert_cmd(update, DummyContext("BTC"))
    assert await db.list_user_alerts(1) == []
    assert len(update.message.texts) == 4


@pytest.mark.asyncio
async def test_cancel_pauses_alert(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await alerts.alert_cmd(DummyUpdate(), DummyContext("BTC", "5"))
    update = DummyUpdate()
    await alerts.alert_cmd(update, DummyContext("cancel", "#1"))
    assert "paused" in update.message.texts[0]
    assert await db.list_active_alerts() == []
    await alerts.alert_cmd(update, DummyContext("cancel", "#1"))
    assert "No active alert" in update.message.texts[1]


@pytest.mark.asyncio
async def test_delete_reports_count(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await alerts.alert_cmd(DummyUpdate(), DummyContext("BTC", "5"))
    await alerts.alert_cmd(DummyUpdate(), DummyContext("BTC", "-5"))
    update = DummyUpdate()
    await alerts.alert_cmd(update, DummyContext("delete", "btc"))
    assert "Deleted 2" in update.message.texts[0]


@pytest.mark.asyncio
async def test_alerts_lists_live_change(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch)
    await alerts.alert_cmd(DummyUpdate(), DummyContext("BTC", "5"))
    update = DummyUpdate()
    await alerts.alerts_cmd(update, DummyContext())
    text = update.message.texts[0]
    assert "#1 BTC +5.00%" in text
    assert "+10.00%" in text
