"""Static catalog of trading jokes and a non-repeating selector."""

from __future__ import annotations

import random
from collections.abc import Collection
from dataclasses import dataclass
from typing import Literal, Optional

JokeCategory = Literal["trading", "market", "crypto", "general"]
JokeDifficulty = Literal["easy", "medium", "advanced"]


@dataclass(frozen=True)
class TradingJoke:
    id: str
    setup: str
    punchline: str
    category: JokeCategory
    difficulty: JokeDifficulty


TRADING_JOKES: tuple[TradingJoke, ...] = (
    TradingJoke(
        "joke_1",
        "Why don't traders ever get lost?",
        "Because they always know where the market is heading! 📈",
        "trading",
        "easy",
    ),
    TradingJoke("joke_2", "What's a trader's favorite music?", "Bull market jazz! 🎵", "market", "easy"),
    TradingJoke(
        "joke_3",
        "Why did the day trader break up with their girlfriend?",
        "She had too much volatility and not enough support! 💔",
        "trading",
        "medium",
    ),
    TradingJoke(
        "joke_4",
        "What do you call a crypto investor who's always calm?",
        "A HODLer with diamond hands! 💎🙌",
        "crypto",
        "easy",
    ),
    TradingJoke("joke_5", "Why don't bears ever win at poker?", "Because they always fold! 🐻", "market", "easy"),
    TradingJoke(
        "joke_6",
        "What's the difference between a trader and a pizza?",
        "A pizza can feed a family of four! 🍕",
        "trading",
        "medium",
    ),
    TradingJoke(
        "joke_7",
        "Why did the algorithm go to therapy?",
        "It had too many emotional stops! 🤖",
        "trading",
        "advanced",
    ),
    TradingJoke("joke_8", "What's a swing trader's favorite dance?", "The market swing! 💃", "trading", "easy"),
    TradingJoke(
        "joke_9",
        "Why don't scalpers ever get speeding tickets?",
        "They're always in and out too fast! ⚡",
        "trading",
        "medium",
    ),
    TradingJoke(
        "joke_10",
        "What did the candlestick say to the moving average?",
        "Stop following me around! 🕯️",
        "trading",
        "advanced",
    ),
    TradingJoke(
        "joke_11",
        "Why did the forex trader go to the doctor?",
        "They had a bad case of currency fever! 🌡️",
        "trading",
        "medium",
    ),
    TradingJoke("joke_12", "What's a bear market's favorite season?", "Fall! 🍂", "market", "easy"),
)


def pick_joke(
    exclude_ids: Collection[str] = (),
    category: Optional[str] = None,
    *,
    rng: random.Random | None = None,
    catalog: tuple[TradingJoke, ...] = TRADING_JOKES,
) -> TradingJoke | None:
    """Pick a random joke the user hasn't heard yet.

    When every joke in the requested category has been told, exclusions are
    ignored so the user still gets one. An unknown category falls back to the
    whole catalog. Returns None only if the catalog is empty.

    The caller records the returned id as used.
    """
    rng = rng or random
    excluded = set(exclude_ids)

    candidates = [j for j in catalog if j.id not in excluded]
    if category:
        candidates = [j for j in candidates if j.category == category]

    if not candidates:
        # Exhausted: recycle within the category before giving up on it
        candidates = [j for j in catalog if not category or j.category == category]
    if not candidates:
        candidates = list(catalog)
    if not candidates:
        return None

    return rng.choice(candidates)


def pick_joke_by_difficulty(
    difficulty: str,
    exclude_ids: Collection[str] = (),
    *,
    rng: random.Random | None = None,
) -> TradingJoke | None:
    """Pick an unused joke of the given difficulty, or None if none is left."""
    rng = rng or random
    excluded = set(exclude_ids)
    candidates = [
        j for j in TRADING_JOKES if j.difficulty == difficulty and j.id not in excluded
    ]
    if not candidates:
        return None
    return rng.choice(candidates)


def format_joke(joke: TradingJoke) -> str:
    return f"{joke.setup}\n\n{joke.punchline}"
