"""Live market data and financial news lookups used to enrich chat prompts.

Crypto prices come from CoinGecko, stock quotes and FX rates from Alpha
Vantage, and news search from Tavily. Every lookup returns a normalized
dataclass or None; upstream failures are logged and never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

import httpx

from .classifier import CRYPTO_IDS, QueryClassification, classify

logger = logging.getLogger("sydney.market_data")

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"
TAVILY_SEARCH_URL = "https://api.tavily.com/search"

MAX_SEARCH_RESULTS = 5

FINANCIAL_NEWS_DOMAINS = [
    "reuters.com",
    "bloomberg.com",
    "cnbc.com",
    "wsj.com",
    "ft.com",
    "marketwatch.com",
    "finance.yahoo.com",
    "investing.com",
    "coindesk.com",
    "cointelegraph.com",
]

LIVE_DATA_HEADER = "--- LIVE DATA ---"
LIVE_DATA_FOOTER = "--- END LIVE DATA ---"
LIVE_DATA_INSTRUCTION = (
    "Use this live data naturally in your response. Analyze it and relate it "
    "to trading instead of just repeating it."
)


@dataclass(frozen=True)
class CryptoPrice:
    symbol: str
    name: str
    price: float
    change_24h: float
    change_pct_24h: float
    updated_at: str


@dataclass(frozen=True)
class StockQuote:
    symbol: str
    price: float
    change: float
    change_pct: float
    volume: int
    updated_at: str


@dataclass(frozen=True)
class ForexRate:
    from_currency: str
    to_currency: str
    rate: float
    updated_at: str


@dataclass(frozen=True)
class SearchHit:
    title: str
    url: str
    content: str = ""


@dataclass(frozen=True)
class SearchResults:
    query: str
    answer: Optional[str]
    results: tuple[SearchHit, ...] = ()


MarketDatum = Union[CryptoPrice, StockQuote, ForexRate, SearchResults]


@dataclass
class EnrichmentResult:
    prompt: str
    has_live_data: bool
    classification: QueryClassification = field(default_factory=QueryClassification.chat)
    datum: Optional[MarketDatum] = None


def _coin_name(coin_id: str) -> str:
    return " ".join(part.capitalize() for part in coin_id.split("-"))


def _fmt_price(value: float) -> str:
    if abs(value) < 1:
        return f"{value:,.6f}"
    return f"{value:,.2f}"


def _signed(value: float, prefix: str = "") -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{prefix}{abs(value):,.2f}"


def _trend(change_pct: float) -> str:
    return "📈" if change_pct >= 0 else "📉"


def format_datum(datum: MarketDatum) -> str:
    """Render a normalized datum as a short human-readable block."""
    if isinstance(datum, CryptoPrice):
        return "\n".join([
            f"🔸 **{datum.name} ({datum.symbol})**: ${_fmt_price(datum.price)}",
            f"{_trend(datum.change_pct_24h)} **24h Change**: "
            f"{_signed(datum.change_pct_24h)}% ({_signed(datum.change_24h, '$')})",
            f"⏰ **Last Updated**: {datum.updated_at}",
        ])

    if isinstance(datum, StockQuote):
        return "\n".join([
            f"📊 **{datum.symbol}**: ${_fmt_price(datum.price)}",
            f"{_trend(datum.change_pct)} **Change**: "
            f"{_signed(datum.change_pct)}% ({_signed(datum.change, '$')})",
            f"📦 **Volume**: {datum.volume:,}",
            f"⏰ **Last Updated**: {datum.updated_at}",
        ])

    if isinstance(datum, ForexRate):
        return "\n".join([
            f"💱 **{datum.from_currency}/{datum.to_currency}**: {datum.rate:.4f}",
            f"⏰ **Last Updated**: {datum.updated_at}",
        ])

    if isinstance(datum, SearchResults):
        lines = [f"🔎 **Search**: {datum.query}"]
        if datum.answer:
            lines.append(datum.answer)
        if datum.results:
            lines.append("")
            lines.append("**Sources:**")
            for i, hit in enumerate(datum.results, 1):
                lines.append(f"{i}. {hit.title} ({hit.url})")
        return "\n".join(lines)

    raise TypeError(f"Unsupported market datum: {type(datum).__name__}")


class MarketDataGateway:
    """Async gateway to the market data and news providers.

    Owns an httpx.AsyncClient unless one is injected. Use as an async
    context manager or call close() when done.
    """

    def __init__(
        self,
        alpha_vantage_key: str = "demo",
        tavily_key: str | None = None,
        timeout: float = 10,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.alpha_vantage_key = alpha_vantage_key
        self.tavily_key = tavily_key
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _fetch_json(self, method: str, url: str, **kwargs) -> dict | None:
        """Make a request and decode JSON, collapsing every failure to None."""
        try:
            resp = await self._http.request(method, url, **kwargs)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning("HTTP %d: %s %s", e.response.status_code, method, url)
            return None
        except httpx.HTTPError as e:
            logger.warning("Request failed: %s %s — %s", method, url, e)
            return None
        except ValueError:
            logger.warning("Invalid JSON from %s %s", method, url)
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected payload type from %s: %s", url, type(data).__name__)
            return None
        return data

    async def fetch_crypto(self, symbol: str) -> CryptoPrice | None:
        symbol = symbol.upper()
        coin_id = CRYPTO_IDS.get(symbol, symbol.lower())
        data = await self._fetch_json(
            "GET",
            f"{COINGECKO_BASE_URL}/simple/price",
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_last_updated_at": "true",
            },
        )
        if data is None:
            return None

        coin = data.get(coin_id)
        if not isinstance(coin, dict) or "usd" not in coin:
            logger.info("CoinGecko has no price for %s (%s)", symbol, coin_id)
            return None

        try:
            price = float(coin["usd"])
            change_pct = float(coin.get("usd_24h_change") or 0)
            updated_ts = coin.get("last_updated_at")
            updated = (
                datetime.fromtimestamp(int(updated_ts), tz=timezone.utc)
                if updated_ts
                else datetime.now(timezone.utc)
            )
        except (TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning("Malformed CoinGecko payload for %s: %s", symbol, e)
            return None

        # Absolute move implied by the percentage against yesterday's price
        change = price * change_pct / (100 + change_pct) if change_pct != -100 else -price

        return CryptoPrice(
            symbol=symbol,
            name=_coin_name(coin_id),
            price=price,
            change_24h=change,
            change_pct_24h=change_pct,
            updated_at=updated.strftime("%Y-%m-%d %H:%M UTC"),
        )

    async def fetch_stock(self, symbol: str) -> StockQuote | None:
        symbol = symbol.upper()
        data = await self._fetch_json(
            "GET",
            ALPHA_VANTAGE_BASE_URL,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.alpha_vantage_key},
        )
        if data is None:
            return None

        # "Note" / "Information" come back on rate limit instead of a quote
        quote = data.get("Global Quote")
        if not quote or not isinstance(quote, dict):
            logger.info("No quote for %s (%s)", symbol, ", ".join(data) or "empty")
            return None

        try:
            return StockQuote(
                symbol=quote.get("01. symbol", symbol).upper(),
                price=float(quote["05. price"]),
                change=float(quote["09. change"]),
                change_pct=float(str(quote["10. change percent"]).rstrip("%")),
                volume=int(quote["06. volume"]),
                updated_at=quote.get("07. latest trading day", ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed Alpha Vantage quote for %s: %s", symbol, e)
            return None

    async def fetch_forex(self, base: str, quote: str = "USD") -> ForexRate | None:
        base, quote = base.upper(), quote.upper()
        data = await self._fetch_json(
            "GET",
            ALPHA_VANTAGE_BASE_URL,
            params={
                "function": "CURRENCY_EXCHANGE_RATE",
                "from_currency": base,
                "to_currency": quote,
                "apikey": self.alpha_vantage_key,
            },
        )
        if data is None:
            return None

        rate = data.get("Realtime Currency Exchange Rate")
        if not rate or not isinstance(rate, dict):
            logger.info("No exchange rate for %s/%s", base, quote)
            return None

        try:
            refreshed = rate.get("6. Last Refreshed", "")
            tz = rate.get("7. Time Zone")
            return ForexRate(
                from_currency=base,
                to_currency=quote,
                rate=float(rate["5. Exchange Rate"]),
                updated_at=f"{refreshed} {tz}" if refreshed and tz else refreshed,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed Alpha Vantage FX payload for %s/%s: %s", base, quote, e)
            return None

    async def search(self, query: str) -> SearchResults | None:
        if not self.tavily_key:
            logger.info("TAVILY_API_KEY not set — skipping news search")
            return None

        data = await self._fetch_json(
            "POST",
            TAVILY_SEARCH_URL,
            headers={"Authorization": f"Bearer {self.tavily_key}"},
            json={
                "query": query,
                "search_depth": "basic",
                "include_answer": True,
                "max_results": MAX_SEARCH_RESULTS,
                "include_domains": FINANCIAL_NEWS_DOMAINS,
            },
        )
        if data is None:
            return None

        results = data.get("results")
        if not isinstance(results, list):
            results = []
        hits = tuple(
            SearchHit(
                title=item.get("title") or item.get("url", ""),
                url=item.get("url", ""),
                content=item.get("content", ""),
            )
            for item in results[:MAX_SEARCH_RESULTS]
            if isinstance(item, dict)
        )
        answer = data.get("answer")
        if not isinstance(answer, str):
            answer = None
        if not answer and not hits:
            logger.info("Search returned nothing for %r", query)
            return None

        return SearchResults(query=query, answer=answer, results=hits)

    async def fetch(self, classification: QueryClassification) -> MarketDatum | None:
        """Run the lookup that matches a classification; chat yields None."""
        if classification.kind == "crypto":
            return await self.fetch_crypto(classification.symbol)
        if classification.kind == "stock":
            return await self.fetch_stock(classification.symbol)
        if classification.kind == "forex":
            return await self.fetch_forex(classification.base, classification.quote)
        if classification.kind == "search":
            return await self.search(classification.query)
        return None

    async def enrich(self, message: str) -> EnrichmentResult:
        """Attach a LIVE DATA block to the message when a lookup succeeds.

        Otherwise the message comes back unchanged with has_live_data=False.
        """
        classification = classify(message)
        if not classification.is_live_data:
            return EnrichmentResult(prompt=message, has_live_data=False, classification=classification)

        datum = await self.fetch(classification)
        if datum is None:
            logger.info("No live data for %s query", classification.kind)
            return EnrichmentResult(prompt=message, has_live_data=False, classification=classification)

        prompt = (
            f"{message}\n\n"
            f"{LIVE_DATA_HEADER}\n{format_datum(datum)}\n{LIVE_DATA_FOOTER}\n\n"
            f"{LIVE_DATA_INSTRUCTION}"
        )
        return EnrichmentResult(
            prompt=prompt,
            has_live_data=True,
            classification=classification,
            datum=datum,
        )
