import pytest

import pandabot.api as api
from pandabot.api import Quote
from pandabot.handlers import currency, prices, stocks


class DummyBot:
    async def send_chat_action(self, chat_id, action):
        pass


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
    def __init__(self, *args, **bot_data):
        self.args = list(args)
        self.bot = DummyBot()
        self.bot_data = bot_data


class DummyCMC:
    async def get_quote(self, symbol, session=None, *, user=None):
        return Quote(
            symbol,
            1.0,
            change_24h=0.0,
            name="Bitcoin",
            change_7d=4.5,
            market_cap=1.2e12,
        )


@pytest.mark.asyncio
async def test_price_merges_binance_and_cmc(monkeypatch):
    async def fake_quote(symbol, session=None, *, user=None):
        return Quote(symbol, 65000.5, change_24h=2.5, volume_24h=3e10)

    monkeypatch.setattr(api, "get_binance_quote", fake_quote)
    update = DummyUpdate()
    await prices.price_cmd(update, DummyContext("btc", cmc=DummyCMC()))
    text = update.message.texts[0]
    assert "Bitcoin (BTC)" in text
    assert "Price: $65000.50" in text
    assert "24h: +2.50%" in text
    assert "7d: +4.50%" in text
    assert "Market cap: $1.20T" in text


@pytest.mark.asyncio
async def test_price_not_found(monkeypatch):
    async def fake_quote(symbol, session=None, *, user=None):
        return None

    monkeypatch.setattr(api, "get_binance_quote", fake_quote)
    update = DummyUpdate()
    await prices.price_cmd(update, DummyContext("nope"))
    await prices.price_cmd(update, DummyContext("b$"))
    assert "No price found for NOPE" in update.message.texts[0]
    assert "Invalid symbol" in update.message.texts[1]


@pytest.mark.asyncio
async def test_multi_price_reports_missing(monkeypatch):
    async def fake_quotes(symbols, session=None, *, user=None):
        return {"BTC": Quote("BTC", 100.25, change_24h=-1.0)}

    monkeypatch.setattr(api, "get_binance_quotes", fake_quotes)
    update = DummyUpdate()
    await prices.prices_cmd(update, DummyContext("btc", "xyz", "btc"))
    text = update.message.texts[0]
    assert "BTC: $100.25 (-1.00%)" in text
    assert "XYZ: not found" in text
    assert text.count("BTC") == 1


@pytest.mark.asyncio
async def test_multi_price_service_down(monkeypatch):
    async def fake_quotes(symbols, session=None, *, user=None):
        return None

    monkeypatch.setattr(api, "get_binance_quotes", fake_quotes)
    update = DummyUpdate()
    await prices.prices_cmd(update, DummyContext("btc"))
    assert "unavailable" in update.message.texts[0]


@pytest.mark.asyncio
async def test_stock_single_and_many(monkeypatch):
    async def fake_stocks(symbols):
        return {
            s: Quote(s, 250.5, change_24h=1.25, currency="TRY")
            for s in symbols
            if s != "ZZZZ"
        }

    monkeypatch.setattr(api, "get_stock_quotes", fake_stocks)
    update = DummyUpdate()
    await stocks.stock_cmd(update, DummyContext("thyao"))
    assert "Price: 250.50 TRY" in update.message.texts[0]
    await stocks.stock_cmd(update, DummyContext("aapl", "zzzz"))
    assert "AAPL: 250.50 TRY (+1.25%)" in update.message.texts[1]
    assert "ZZZZ: not found" in update.message.texts[1]
    await stocks.stock_cmd(update, DummyContext("zzzz"))
    assert "Stock ZZZZ not found" in update.message.texts[2]
    await stocks.stock_cmd(update, DummyContext("123"))
    assert "Invalid symbol" in update.message.texts[3]


@pytest.mark.asyncio
async def test_usdtry(monkeypatch):
    async def fake_rate(session=None, *, user=None):
        return 32.456, None

    monkeypatch.setattr(api, "get_usd_try", fake_rate)
    update = DummyUpdate()
    await currency.usdtry_cmd(update, DummyContext())
    assert "$1 = ₺32.46" in update.message.texts[0]

    async def limited(session=None, *, user=None):
        return None, "rate limited"

    monkeypatch.setattr(api, "get_usd_try", limited)
    await currency.usdtry_cmd(update, DummyContext())
    assert "limit reached" in update.message.texts[1]
