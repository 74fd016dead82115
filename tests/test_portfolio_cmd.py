import pytest

import pandabot.api as api
import pandabot.config as config
import pandabot.db as db
from pandabot.api import Quote
from pandabot.handlers import portfolios


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


async def setup(tmp_path, monkeypatch, prices):
    config.DB_FILE = str(tmp_path / "portfolios.db")
    await db.init_db()

    async def fake_quote(symbol, session=None, *, user=None):
        return Quote(symbol, prices[symbol]) if symbol in prices else None

    async def fake_stock(symbol):
        return None

    monkeypatch.setattr(api, "get_binance_quote", fake_quote)
    monkeypatch.setattr(api, "get_stock_quote", fake_stock)


async def run(*args):
    update = DummyUpdate()
    await portfolios.portfolio_cmd(update, DummyContext(*args))
    return update.message.texts


@pytest.mark.asyncio
async def test_add_creates_portfolio_and_averages(tmp_path, monkeypatch):
    prices = {"BTC": 100.0}
    await setup(tmp_path, monkeypatch, prices)
    texts = await run("add", "main", "1", "btc")
    assert "Added 1 BTC to main" in texts[0]
    prices["BTC"] = 200.0
    texts = await run("add", "main", "3", "BTC")
    assert "Updated BTC" in texts[0]
    item = (await db.get_portfolio(1, "main")).find("BTC")
    assert item.amount == 4
    assert item.avg_price == pytest.approx(175.0)


@pytest.mark.asyncio
async def test_add_validation(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch, {})
    assert "greater than zero" in (await run("add", "main", "-1", "BTC"))[0]
    assert "greater than zero" in (await run("add", "main", "abc", "BTC"))[0]
    assert "greater than zero" in (await run("add", "main", "inf", "BTC"))[0]
    assert "greater than zero" in (await run("add", "main", "nan", "BTC"))[0]
    assert "Invalid symbol" in (await run("add", "main", "1", "B!"))[0]
    assert "No price" in (await run("add", "main", "1", "NOPE"))[0]
    assert await db.get_portfolio(1, "main") is None


@pytest.mark.asyncio
async def test_remove_reduces_then_drops(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch, {"ETH": 10.0})
    await run("add", "main", "2", "ETH")
    assert "Amount left: 1.5" in (await run("remove", "main", "0,5", "ETH"))[0]
    assert "Removed ETH" in (await run("remove", "main", "5", "ETH"))[0]
    assert "is not in main" in (await run("remove", "main", "1", "ETH"))[0]
    assert (await db.get_portfolio(1, "main")).items == []


@pytest.mark.asyncio
async def test_show_profit_and_loss(tmp_path, monkeypatch):
    prices = {"BTC": 100.0}
    await setup(tmp_path, monkeypatch, prices)
    await run("add", "main", "2", "BTC")
    prices["BTC"] = 150.0
    text = (await run("show", "main"))[0]
    assert "P&L $+100.00" in text
    assert "Total: $300.00 | Cost: $200.00" in text
    assert "+50.00%" in text


@pytest.mark.asyncio
async def test_show_and_delete_missing(tmp_path, monkeypatch):
    await setup(tmp_path, monkeypatch, {"BTC": 1.0})
    assert "not found" in (await run("show", "nope"))[0]
    await run("add", "main", "1", "BTC")
    assert "Deleted portfolio main" in (await run("delete", "main"))[0]
    update = DummyUpdate()
    await portfolios.portfolios_cmd(update, DummyContext())
    assert "No portfolios" in update.message.texts[0]
