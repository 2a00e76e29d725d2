"""Heuristic classification of chat messages into market-data and news queries.

Rules are evaluated in a fixed order:

1. news / informational keywords  -> search
2. known asset names and aliases  -> crypto, stock or forex
3. a bare uppercase ticker token  -> crypto (known coin), forex (6 letters) or stock
4. anything else                  -> chat

News intent goes first because news questions usually name an asset
("latest on Tesla earnings") but need a search rather than a quote.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

QueryKind = Literal["crypto", "stock", "forex", "search", "chat"]

# Ticker -> CoinGecko asset id
CRYPTO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "XRP": "ripple",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "BNB": "binancecoin",
    "SOL": "solana",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "ATOM": "cosmos",
    "DOGE": "dogecoin",
    "SHIB": "shiba-inu",
}

_NEWS_PATTERNS = [
    r"\bnews\b",
    r"\blatest\b",
    r"\bbreaking\b",
    r"\bheadlines?\b",
    r"\bfed\b",
    r"\bfederal reserve\b",
    r"\binflation\b",
    r"\bcpi\b",
    r"\bearnings\b",
    r"\binterest rates?\b",
    r"\bwhat happened\b",
    r"\bwhy is\b",
    r"\brecession\b",
    r"\bgdp\b",
    r"\bjobs report\b",
]

# (pattern, kind, symbol-or-pair). First match wins, so order matters.
_ALIASES: list[tuple[str, str, str]] = [
    (r"\b(?:bitcoin|btc)\b", "crypto", "BTC"),
    (r"\b(?:ethereum|eth)\b", "crypto", "ETH"),
    (r"\bsolana\b", "crypto", "SOL"),
    (r"\bdogecoin\b", "crypto", "DOGE"),
    (r"\bripple\b", "crypto", "XRP"),
    (r"\bcardano\b", "crypto", "ADA"),
    (r"\b(?:apple|aapl)\b", "stock", "AAPL"),
    (r"\b(?:tesla|tsla)\b", "stock", "TSLA"),
    (r"\b(?:microsoft|msft)\b", "stock", "MSFT"),
    (r"\b(?:nvidia|nvda)\b", "stock", "NVDA"),
    (r"\b(?:amazon|amzn)\b", "stock", "AMZN"),
    (r"\b(?:google|alphabet|googl)\b", "stock", "GOOGL"),
    (r"\b(?:eurusd|euro)\b", "forex", "EUR/USD"),
    (r"\b(?:gbpusd|pound)\b", "forex", "GBP/USD"),
    (r"\b(?:usdjpy|yen)\b", "forex", "USD/JPY"),
    (r"\bgold\b", "forex", "XAU/USD"),
]

_TICKER_RE = re.compile(r"\b([A-Z]{2,6})\b")

# Uppercase words that show up in ordinary chat and are never tickers
_NOT_TICKERS = {
    "AM", "PM", "OK", "OMG", "LOL", "USA", "UK", "EU", "CEO", "CFO", "AI",
    "ASAP", "FYI", "IMO", "TBH", "BTW", "PNL", "ROI", "ATH", "FOMO", "HODL",
}


@dataclass(frozen=True)
class QueryClassification:
    kind: QueryKind
    symbol: Optional[str] = None
    base: Optional[str] = None
    quote: Optional[str] = None
    query: Optional[str] = None

    @classmethod
    def crypto(cls, symbol: str) -> QueryClassification:
        return cls("crypto", symbol=symbol)

    @classmethod
    def stock(cls, symbol: str) -> QueryClassification:
        return cls("stock", symbol=symbol)

    @classmethod
    def forex(cls, base: str, quote: str) -> QueryClassification:
        return cls("forex", base=base, quote=quote)

    @classmethod
    def search(cls, query: str) -> QueryClassification:
        return cls("search", query=query)

    @classmethod
    def chat(cls) -> QueryClassification:
        return cls("chat")

    @property
    def is_live_data(self) -> bool:
        return self.kind != "chat"


def is_news_query(text: str) -> bool:
    lowered = text.lower()
    return any(re.search(p, lowered) for p in _NEWS_PATTERNS)


def _match_alias(text: str) -> QueryClassification | None:
    lowered = text.lower()
    for pattern, kind, target in _ALIASES:
        if not re.search(pattern, lowered):
            continue
        if kind == "crypto":
            return QueryClassification.crypto(target)
        if kind == "stock":
            return QueryClassification.stock(target)
        base, quote = target.split("/")
        return QueryClassification.forex(base, quote)
    return None


def _match_ticker(text: str) -> QueryClassification | None:
    for token in _TICKER_RE.findall(text):
        if token in _NOT_TICKERS:
            continue
        if token in CRYPTO_IDS:
            return QueryClassification.crypto(token)
        if len(token) == 6:
            return QueryClassification.forex(token[:3], token[3:])
        return QueryClassification.stock(token)
    return None


def classify(text: str) -> QueryClassification:
    """Classify a free-text message. Ambiguous input falls through to chat."""
    stripped = text.strip()
    if not stripped:
        return QueryClassification.chat()

    if is_news_query(stripped):
        return QueryClassification.search(stripped)

    return _match_alias(stripped) or _match_ticker(stripped) or QueryClassification.chat()
