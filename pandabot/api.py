"""Asynchronous clients for price feeds, exchange rates and the AI proxy.

CoinMarketCap requests go through :class:`pandabot.keys.KeyManager` so that
the key pool rotates when a key is exhausted. Binance and Yahoo Finance are
used without credentials. Every client normalizes responses into
:class:`Quote`.
"""

import asyncio
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Tuple

import aiohttp
import yfinance as yf
from aiolimiter import AsyncLimiter

from . import config
from .keys import KeyManager

CMC_LIMITER = AsyncLimiter(30, 60)
STATUS_HISTORY: Deque[Tuple[float, int]] = deque(maxlen=500)
STATUS_WINDOW = 3 * 3600
THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)


@dataclass
class Quote:
    """A price snapshot for one symbol in USD (or the listing currency)."""

    symbol: str
    price: float
    change_24h: Optional[float] = None
    name: Optional[str] = None
    change_7d: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    currency: str = "USD"
    source: str = ""


@dataclass
class AIResult:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost(self) -> float:
        return (
            self.prompt_tokens * config.AI_PROMPT_PRICE
            + self.completion_tokens * config.AI_COMPLETION_PRICE
        )


def status_counts() -> Dict[int, int]:
    """Return a mapping of HTTP status codes seen in the last three hours."""
    cutoff = time.time() - STATUS_WINDOW
    counts: Dict[int, int] = {}
    for ts, status in STATUS_HISTORY:
        if ts < cutoff:
            continue
        counts[status] = counts.get(status, 0) + 1
    return counts


def new_session(timeout: Optional[float] = None) -> aiohttp.ClientSession:
    """Return a session with the configured request timeout."""
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout or config.REQUEST_TIMEOUT)
    )


async def api_get(
    url: str,
    session: aiohttp.ClientSession,
    headers: Optional[dict] = None,
    params: Optional[dict] = None,
    user: Optional[int] = None,
    limiter: Optional[AsyncLimiter] = None,
    retries: int = 3,
) -> Optional[aiohttp.ClientResponse]:
    """Perform an HTTP GET request with optional rate limiting.

    Parameters
    ----------
    url:
        Endpoint to request.
    session:
        Session used for the request. The caller reads the body and closes it.
    headers:
        Optional headers to include in the request.
    params:
        Optional query string parameters.
    user:
        User ID used for logging purposes.
    limiter:
        Limiter to acquire before each attempt.
    retries:
        Attempts made while the server answers 429. ``1`` disables retrying.

    Returns
    -------
    Optional[aiohttp.ClientResponse]
        The response object or ``None`` when the request fails.
    """
    resp = None
    try:
        for attempt in range(retries):
            if limiter:
                async with limiter:
                    resp = await session.get(url, headers=headers, params=params)
            else:
                resp = await session.get(url, headers=headers, params=params)
            STATUS_HISTORY.append((time.time(), resp.status))
            config.logger.info(
                "api_request user=%s url=%s status=%s", user, url, resp.status
            )
            if resp.status != 429 or attempt == retries - 1:
                return resp
            retry_after = resp.headers.get("Retry-After")
            wait = float(retry_after) if retry_after else 2**attempt
            await asyncio.sleep(wait)
        return resp
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        STATUS_HISTORY.append((time.time(), 0))
        config.logger.error("api request to %s failed: %r", url, exc)
        return None


# Binance


def _binance_quote(symbol: str, data: dict) -> Quote:
    return Quote(
        symbol=symbol,
        price=float(data["lastPrice"]),
        change_24h=float(data["priceChangePercent"]),
        volume_24h=float(data.get("quoteVolume") or 0) or None,
        source="binance",
    )


async def get_binance_quote(
    symbol: str,
    session: Optional[aiohttp.ClientSession] = None,
    *,
    user: Optional[int] = None,
) -> Optional[Quote]:
    """Return the 24h ticker of ``symbol`` against USDT or ``None``."""
    url = f"{config.BINANCE_BASE_URL}/api/v3/ticker/24hr"
    owns_session = session is None
    if owns_session:
        session = new_session()
    try:
        resp = await api_get(
            url, session, params={"symbol": f"{symbol}USDT"}, user=user
        )
        if not resp or resp.status != 200:
            return None
        data = await resp.json()
        return _binance_quote(symbol, data)
    except (KeyError, TypeError, ValueError) as exc:
        config.logger.error("unexpected binance ticker for %s: %r", symbol, exc)
        return None
    finally:
        if owns_session:
            await session.close()


async def get_binance_quotes(
    symbols: Iterable[str],
    session: Optional[aiohttp.ClientSession] = None,
    *,
    user: Optional[int] = None,
) -> Optional[Dict[str, Quote]]:
    """Return quotes for ``symbols`` from a single all-tickers request.

    Symbols without a USDT market are missing from the result. ``None``
    means the request itself failed.
    """
    wanted = {f"{s}USDT": s for s in symbols}
    if not wanted:
        return {}
    url = f"{config.BINANCE_BASE_URL}/api/v3/ticker/24hr"
    owns_session = session is None
    if owns_session:
        session = new_session()
    try:
        resp = await api_get(url, session, user=user)
        if not resp or resp.status != 200:
            return None
        data = await resp.json()
        quotes: Dict[str, Quote] = {}
        for item in data:
            symbol = wanted.get(item.get("symbol"))
            if symbol is None:
                continue
            try:
                quotes[symbol] = _binance_quote(symbol, item)
            except (KeyError, TypeError, ValueError):
                config.logger.warning("skipping malformed ticker %s", item)
        return quotes
    finally:
        if owns_session:
            await session.close()


# CoinMarketCap


def _cmc_quote(item: dict) -> Quote:
    usd = item["quote"]["USD"]
    return Quote(
        symbol=item["symbol"],
        name=item.get("name"),
        price=float(usd["price"]),
        change_24h=usd.get("percent_change_24h"),
        change_7d=usd.get("percent_change_7d"),
        volume_24h=usd.get("volume_24h"),
        market_cap=usd.get("market_cap"),
        circulating_supply=item.get("circulating_supply"),
        total_supply=item.get("total_supply"),
        max_supply=item.get("max_supply"),
        source="coinmarketcap",
    )


class CoinMarketCapClient:
    """CoinMarketCap client that spreads requests over a key pool."""

    def __init__(
        self, keys: KeyManager, base_url: Optional[str] = None
    ) -> None:
        self.keys = keys
        self.base_url = (base_url or config.COINMARKETCAP_BASE_URL).rstrip("/")

    async def request(
        self,
        path: str,
        params: Optional[dict] = None,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user: Optional[int] = None,
    ) -> Tuple[Optional[dict], Optional[str]]:
        """GET ``path`` and return the decoded body or an error message.

        Every received response counts against the active key. A 429 blocks
        that key and the request is repeated once per remaining key.
        """
        owns_session = session is None
        if owns_session:
            session = new_session()
        try:
            for _ in range(len(self.keys.slots)):
                key = self.keys.get_active_key()
                resp = await api_get(
                    f"{self.base_url}{path}",
                    session,
                    headers={"X-CMC_PRO_API_KEY": key, "Accept": "application/json"},
                    params=params,
                    user=user,
                    limiter=CMC_LIMITER,
                    retries=1,
                )
                if resp is None:
                    return None, "request failed"
                self.keys.increment_request_count()
                if resp.status == 429:
                    self.keys.mark_as_blocked()
                    if self.keys.get_active_key() == key:
                        return None, "rate limited"
                    continue
                if resp.status != 200:
                    return None, f"HTTP {resp.status}"
                return await resp.json(), None
            return None, "rate limited"
        finally:
            if owns_session:
                await session.close()

    async def get_quotes(
        self,
        symbols: List[str],
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user: Optional[int] = None,
    ) -> Dict[str, Quote]:
        """Return the latest quotes for ``symbols`` keyed by symbol."""
        if not symbols:
            return {}
        data, err = await self.request(
            "/cryptocurrency/quotes/latest",
            {"symbol": ",".join(symbols)},
            session,
            user=user,
        )
        if err:
            config.logger.warning("cmc quotes for %s failed: %s", symbols, err)
            return {}
        quotes: Dict[str, Quote] = {}
        for symbol, item in (data.get("data") or {}).items():
            if isinstance(item, list):
                if not item:
                    continue
                item = item[0]
            try:
                quotes[symbol] = _cmc_quote(item)
            except (KeyError, TypeError, ValueError):
                config.logger.warning("cmc returned no usd quote for %s", symbol)
        return quotes

    async def get_quote(
        self,
        symbol: str,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user: Optional[int] = None,
    ) -> Optional[Quote]:
        quotes = await self.get_quotes([symbol], session, user=user)
        return quotes.get(symbol)

    async def get_listings(
        self,
        limit: int = 100,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        user: Optional[int] = None,
    ) -> List[Quote]:
        """Return the top ``limit`` coins by market cap."""
        data, err = await self.request(
            "/cryptocurrency/listings/latest",
            {"limit": limit, "sort": "market_cap", "sort_dir": "desc"},
            session,
            user=user,
        )
        if err:
            config.logger.warning("cmc listings failed: %s", err)
            return []
        return [_cmc_quote(item) for item in data.get("data") or []]

    async def search(
        self, query: str, limit: int = 10, *, user: Optional[int] = None
    ) -> List[Quote]:
        """Return listed coins whose symbol or name contains ``query``."""
        needle = query.lower()
        listings = await self.get_listings(500, user=user)
        matches = [
            q
            for q in listings
            if needle in q.symbol.lower() or needle in (q.name or "").lower()
        ]
        return matches[:limit]

    async def health_check(self) -> bool:
        return await self.get_quote("BTC") is not None


# Stocks


def _fetch_stock_sync(symbol: str) -> Optional[Quote]:
    """Fetch a single stock quote synchronously (run in a thread)."""
    try:
        info = yf.Ticker(symbol).fast_info
        price = info.get("lastPrice") or info.get("regularMarketPrice")
        if not price:
            return None
        previous = info.get("previousClose") or info.get("regularMarketPreviousClose")
        change = (price - previous) / previous * 100 if previous else None
        return Quote(
            symbol=symbol,
            price=float(price),
            change_24h=change,
            volume_24h=info.get("lastVolume"),
            market_cap=info.get("marketCap"),
            currency=info.get("currency") or "USD",
            source="yahoo",
        )
    except Exception as exc:
        config.logger.warning("yahoo quote for %s failed: %r", symbol, exc)
        return None


def stock_candidates(symbol: str) -> List[str]:
    """Return the tickers to try for ``symbol``.

    Bare four or five letter symbols may be Borsa Istanbul listings, so the
    ``.IS`` suffix is tried after the plain symbol.
    """
    if "." not in symbol and 4 <= len(symbol) <= 5:
        return [symbol, f"{symbol}.IS"]
    return [symbol]


async def get_stock_quote(symbol: str) -> Optional[Quote]:
    for candidate in stock_candidates(symbol):
        quote = await asyncio.to_thread(_fetch_stock_sync, candidate)
        if quote:
            return quote
    return None


async def get_stock_quotes(symbols: List[str]) -> Dict[str, Quote]:
    """Return stock quotes fetched in parallel, keyed by requested symbol."""
    results = await asyncio.gather(*(get_stock_quote(s) for s in symbols))
    return {s: q for s, q in zip(symbols, results) if q is not None}


# Currency


async def get_usd_try(
    session: Optional[aiohttp.ClientSession] = None,
) -> Tuple[Optional[float], Optional[str]]:
    """Return the USD/TRY rate or an error message."""
    owns_session = session is None
    if owns_session:
        session = new_session()
    try:
        resp = await api_get(config.EXCHANGE_RATE_URL, session)
        if not resp:
            return None, "request failed"
        if resp.status == 429:
            return None, "rate limited"
        if resp.status != 200:
            return None, f"HTTP {resp.status}"
        data = await resp.json()
        rate = (data.get("rates") or {}).get("TRY")
        if rate is None:
            return None, "TRY rate missing"
        return float(rate), None
    finally:
        if owns_session:
            await session.close()


# AI


def strip_think(text: str) -> str:
    """Remove ``<think>`` reasoning blocks some models prepend."""
    return THINK_RE.sub("", text).strip()


def extract_content(data: dict) -> str:
    """Return the completion text from the known response layouts."""
    choices = data.get("choices") or []
    if choices:
        message = choices[0].get("message") or {}
        if message.get("content"):
            return message["content"]
    output = data.get("output") or {}
    if isinstance(output, dict) and output.get("text"):
        return output["text"]
    if choices and choices[0].get("text"):
        return choices[0]["text"]
    return ""


async def ask_ai(
    prompt: str,
    session: Optional[aiohttp.ClientSession] = None,
    *,
    user: Optional[int] = None,
) -> Tuple[Optional[AIResult], Optional[str]]:
    """Send ``prompt`` to the chat completion endpoint.

    Returns
    -------
    tuple[Optional[AIResult], Optional[str]]
        The answer with token usage, or ``None`` and one of ``not_configured``,
        ``unauthorized``, ``forbidden``, ``rate_limited``, ``timeout``,
        ``connection``, ``empty`` or ``HTTP <status>``.
    """
    if not config.AI_API_KEY:
        return None, "not_configured"
    url = f"{config.AI_BASE_URL}/chat/completions"
    payload = {
        "model": config.AI_MODEL,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": 1.0,
        "max_tokens": 3000,
    }
    headers = {
        "Authorization": f"Bearer {config.AI_API_KEY}",
        "Content-Type": "application/json",
    }
    owns_session = session is None
    if owns_session:
        session = new_session(config.AI_TIMEOUT)
    try:
        async with session.post(url, json=payload, headers=headers) as resp:
            STATUS_HISTORY.append((time.time(), resp.status))
            config.logger.info("ai_request user=%s status=%s", user, resp.status)
            if resp.status == 401:
                return None, "unauthorized"
            if resp.status == 403:
                return None, "forbidden"
            if resp.status == 429:
                return None, "rate_limited"
            if resp.status != 200:
                return None, f"HTTP {resp.status}"
            data = await resp.json()
    except asyncio.TimeoutError:
        STATUS_HISTORY.append((time.time(), 0))
        config.logger.error("ai request timed out for user %s", user)
        return None, "timeout"
    except aiohttp.ClientError as exc:
        STATUS_HISTORY.append((time.time(), 0))
        config.logger.error("ai request failed: %r", exc)
        return None, "connection"
    finally:
        if owns_session:
            await session.close()
    text = strip_think(extract_content(data))
    if not text:
        return None, "empty"
    usage = data.get("usage") or {}
    return (
        AIResult(
            text,
            int(usage.get("prompt_tokens") or 0),
            int(usage.get("completion_tokens") or 0),
        ),
        None,
    )
