import json

import pytest
from aresponses import Response, ResponsesMockServer

import pandabot.api as api
from pandabot.keys import KeyManager

HOST = "pro-api.coinmarketcap.com"
QUOTES = "/v1/cryptocurrency/quotes/latest"
BTC = {
    "data": {
        "BTC": [
            {
                "symbol": "BTC",
                "name": "Bitcoin",
                "circulating_supply": 19000000,
                "quote": {
                    "USD": {
                        "price": 50000.0,
                        "percent_change_24h": 1.5,
                        "percent_change_7d": -2.0,
                        "market_cap": 9.5e11,
                    }
                },
            }
        ]
    }
}


def json_response(data, status=200):
    return Response(
        text=json.dumps(data),
        status=status,
        headers={"Content-Type": "application/json"},
    )


@pytest.mark.asyncio
async def test_get_quote_sends_active_key():
    seen = []

    def handler(request):
        seen.append(request.headers.get("X-CMC_PRO_API_KEY"))
        return json_response(BTC)

    keys = KeyManager(["k1", "k2"])
    client = api.CoinMarketCapClient(keys)
    async with ResponsesMockServer() as ars:
        ars.add(HOST, QUOTES, "GET", handler)
        quote = await client.get_quote("BTC")
    assert seen == ["k1"]
    assert quote.price == 50000.0
    assert quote.name == "Bitcoin"
    assert quote.change_7d == -2.0
    assert keys.slots[0].requests_used == 1


@pytest.mark.asyncio
async def test_rate_limited_key_is_blocked_and_rotated():
    seen = []

    def limited(request):
        seen.append(request.headers.get("X-CMC_PRO_API_KEY"))
        return json_response({"status": {"error_code": 1008}}, status=429)

    def ok(request):
        seen.append(request.headers.get("X-CMC_PRO_API_KEY"))
        return json_response(BTC)

    keys = KeyManager(["k1", "k2"])
    client = api.CoinMarketCapClient(keys)
    async with ResponsesMockServer() as ars:
        ars.add(HOST, QUOTES, "GET", limited)
        ars.add(HOST, QUOTES, "GET", ok)
        quotes = await client.get_quotes(["BTC"])
    assert seen == ["k1", "k2"]
    assert quotes["BTC"].price == 50000.0
    assert keys.slots[0].is_blocked
    assert keys.current == 1
    assert [s.requests_used for s in keys.slots] == [1, 1]


@pytest.mark.asyncio
async def test_single_key_rate_limited_reports_error():
    keys = KeyManager(["k1"])
    client = api.CoinMarketCapClient(keys)
    async with ResponsesMockServer() as ars:
        ars.add(HOST, QUOTES, "GET", json_response({}, status=429))
        data, err = await client.request(QUOTES.replace("/v1", ""), {"symbol": "BTC"})
    assert data is None
    assert err == "rate limited"
    assert keys.slots[0].is_blocked


@pytest.mark.asyncio
async def test_http_error_is_returned():
    client = api.CoinMarketCapClient(KeyManager(["k1"]))
    async with ResponsesMockServer() as ars:
        ars.add(HOST, QUOTES, "GET", json_response({}, status=500))
        assert await client.get_quotes(["BTC"]) == {}


@pytest.mark.asyncio
async def test_search_filters_listings():
    listings = {
        "data": [
            {"symbol": "BTC", "name": "Bitcoin", "quote": {"USD": {"price": 1.0}}},
            {"symbol": "ETH", "name": "Ethereum", "quote": {"USD": {"price": 2.0}}},
            {"symbol": "WBTC", "name": "Wrapped Bitcoin", "quote": {"USD": {"price": 3.0}}},
        ]
    }
    client = api.CoinMarketCapClient(KeyManager(["k1"]))
    async with ResponsesMockServer() as ars:
        ars.add(HOST, "/v1/cryptocurrency/listings/latest", "GET", json_response(listings))
        found = await client.search("bitcoin")
    assert [q.symbol for q in found] == ["BTC", "WBTC"]
