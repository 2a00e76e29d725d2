"""Entry point for a chat turn: jokes, session switching, live data, LLM chat.

Each turn is stateless apart from ConversationMemory:

1. record the user message
2. joke request          -> answer from the joke catalog
3. session switch request -> resolve the session name against the store
4. otherwise enrich with live market data / news when the message asks for it
5. send the (enriched) message, recent memory and trading summary to the LLM
6. record the reply and return it

Store and completion failures become APOLOGY_MESSAGE. The failed assistant
turn is not recorded, so error text never reaches future prompts.
"""

from __future__ import annotations

import logging
import random
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Literal, Optional

from .client import TradingStoreClient
from .completion import CompletionBackend
from .jokes import TRADING_JOKES, JokeDifficulty, format_joke, pick_joke, pick_joke_by_difficulty
from .market_data import EnrichmentResult, MarketDataGateway
from .memory.conversation import ConversationMemory
from .observability import get_run_config
from .prompts.system import build_system_prompt
from .trading import TradingSummary

logger = logging.getLogger("sydney.router")

Route = Literal["joke", "session_switch", "chat", "error"]

APOLOGY_MESSAGE = "I'm sorry, I encountered an error processing your request. Please try again. 🙏"

CONTEXT_MESSAGES = 8
FOLLOW_UP_PROBABILITY = 0.4

_JOKE_PATTERNS = [
    r"tell me a joke",
    r"\bjokes?\b",
    r"\bfunny\b",
    r"make me laugh",
    r"another one",
    r"more jokes?",
    r"that'?s funny",
    r"\bha(?:ha)+\b",
    r"\blol\b",
]

_SESSION_SWITCH_PATTERNS = [
    r"\bload\b.*\bsession\b",
    r"\bswitch to\b",
    r"\bopen\b.*\bsession\b",
    r"\bchange to\b.*\bsession\b",
]

_SESSION_NAME_RE = re.compile(
    r"(?:load|switch to|open|change to)\s+(?:the\s+|my\s+)?(.+?)\s+session", re.IGNORECASE
)

_FOLLOW_UPS = [
    "How's your trading going today? Any interesting setups you're watching? 📈",
    "Want me to look at how your recent trades are doing? 📊",
    "Anything on the charts catching your eye today? 👀",
    "Need a hand reviewing your last session? 🤝",
]

_JOKE_SETUPS = {j.setup for j in TRADING_JOKES}

_DIFFICULTY_PATTERNS: list[tuple[str, JokeDifficulty]] = [
    (r"\b(?:hard|advanced|clever|nerdy|smart)\b", "advanced"),
    (r"\b(?:medium|moderate)\b", "medium"),
    (r"\b(?:easy|simple|basic)\b", "easy"),
]


@dataclass
class RouterReply:
    content: str
    route: Route
    has_live_data: bool = False
    switched_session_id: Optional[str] = None
    run_id: Optional[str] = None
    metrics: dict = field(default_factory=dict)


def is_joke_request(message: str) -> bool:
    lowered = message.lower()
    return any(re.search(p, lowered) for p in _JOKE_PATTERNS)


def joke_category(message: str) -> str:
    lowered = message.lower()
    if "crypto" in lowered or "bitcoin" in lowered:
        return "crypto"
    if "market" in lowered or "bull" in lowered or "bear" in lowered:
        return "market"
    return "trading"


def joke_difficulty(message: str) -> JokeDifficulty | None:
    lowered = message.lower()
    for pattern, difficulty in _DIFFICULTY_PATTERNS:
        if re.search(pattern, lowered):
            return difficulty
    return None


def is_session_switch_request(message: str) -> bool:
    lowered = message.lower()
    return any(re.search(p, lowered) for p in _SESSION_SWITCH_PATTERNS)


def extract_session_name(message: str) -> str | None:
    match = _SESSION_NAME_RE.search(message)
    if not match:
        return None
    return match.group(1).strip(" \"'") or None


class MessageRouter:
    def __init__(
        self,
        memory: ConversationMemory,
        gateway: MarketDataGateway,
        completion: CompletionBackend,
        store: TradingStoreClient | None = None,
        rng: random.Random | None = None,
    ):
        self.memory = memory
        self.gateway = gateway
        self.completion = completion
        self.store = store
        self._rng = rng or random.Random()

    async def handle_message(
        self, user_id: str, message: str, session_id: str | None = None
    ) -> RouterReply:
        self.memory.append(user_id, "user", message)

        if is_joke_request(message):
            return self._reply(user_id, self.handle_joke(user_id, message), "joke")

        if is_session_switch_request(message):
            try:
                content, switched = await self.handle_session_switch(message, user_id)
            except Exception as e:
                logger.error("Session switch failed user=%s: %s", user_id, e)
                return RouterReply(content=APOLOGY_MESSAGE, route="error")
            reply = self._reply(user_id, content, "session_switch")
            reply.switched_session_id = switched
            return reply

        return await self._chat(user_id, message, session_id)

    def _reply(self, user_id: str, content: str, route: Route) -> RouterReply:
        self.memory.append(user_id, "assistant", content)
        return RouterReply(content=content, route=route)

    # --- jokes ---

    def _previous_turn_was_joke(self, user_id: str) -> bool:
        # Skip the message being answered; look at the turn before it
        earlier = self.memory.messages(user_id)[:-1][-2:]
        return any(
            m.role == "assistant" and any(setup in m.content for setup in _JOKE_SETUPS)
            for m in earlier
        )

    def handle_joke(self, user_id: str, message: str) -> str:
        used = self.memory.used_jokes(user_id)
        joke = None
        difficulty = joke_difficulty(message)
        if difficulty:
            joke = pick_joke_by_difficulty(difficulty, used, rng=self._rng)
        if joke is None:
            joke = pick_joke(used, category=joke_category(message), rng=self._rng)
        if joke is None:
            return "I'm all out of fresh jokes for now! 😅 But I'd love to help you with your trading analysis instead!"

        self.memory.mark_joke_used(user_id, joke.id)

        response = ""
        if self._previous_turn_was_joke(user_id):
            wants_another = re.search(r"\b(?:another|more|again)\b", message, re.IGNORECASE)
            mood = self.memory.infer_mood(user_id)
            if wants_another or mood == "excited":
                response = "You're in a good mood! 😄 Here's another one:\n\n"
            elif mood == "frustrated":
                response = "Let's lighten things up a bit. Here's a different one:\n\n"
            else:
                response = "Glad you enjoyed that! Here's a different one:\n\n"

        response += format_joke(joke)

        if self._rng.random() < FOLLOW_UP_PROBABILITY:
            response += "\n\n" + self._rng.choice(_FOLLOW_UPS)

        return response

    # --- session switching ---

    async def handle_session_switch(self, message: str, user_id: str) -> tuple[str, str | None]:
        """Resolve a session by partial name. Returns (reply, session id or None)."""
        name = extract_session_name(message)
        if not name:
            return (
                "I'd be happy to help you switch sessions! Which session would you like "
                'to load? For example: "Load the BTC 5 Minute session"',
                None,
            )

        session = await self._find_session(user_id, name)
        if session is None:
            return (
                f'❌ I couldn\'t find a session named "{name}". Here are some tips:\n'
                "• Check the spelling\n"
                "• Try using part of the session name\n"
                "• Ask me to list your sessions first",
                None,
            )

        session_name = session.get("name", name)
        logger.info("Session switch user=%s session=%s", user_id, session.get("id"))
        return (
            f'✅ Switched to "{session_name}" session! You can now view and analyze the '
            "trades from this session. What would you like to know about it?",
            session.get("id"),
        )

    async def _find_session(self, user_id: str, name: str) -> dict | None:
        if self.store is None:
            return None
        matches = await self.store.find_sessions_by_name(user_id, name)
        needle = name.lower()
        # First substring match wins; no ranking
        for session in matches:
            if needle in str(session.get("name", "")).lower():
                return session
        return None

    # --- chat with live data ---

    async def _trading_summary(self, user_id: str) -> TradingSummary:
        if self.store is None:
            return TradingSummary()
        sessions = await self.store.list_sessions(user_id)
        trades = await self.store.list_trades(user_id)
        return TradingSummary.from_rows(sessions, trades)

    async def _chat(self, user_id: str, message: str, session_id: str | None) -> RouterReply:
        try:
            enrichment = await self.gateway.enrich(message)
        except Exception as e:
            logger.warning("Live data enrichment failed user=%s: %s", user_id, e)
            enrichment = EnrichmentResult(prompt=message, has_live_data=False)

        run_config = get_run_config(
            user_id=user_id,
            session_id=session_id,
            tags=["chat", enrichment.classification.kind],
            metadata={
                "message_length": len(message),
                "has_live_data": enrichment.has_live_data,
            },
        )
        run_id = run_config["run_id"]
        start_time = time.monotonic()

        try:
            summary = await self._trading_summary(user_id)
            system_prompt = build_system_prompt(
                conversation=self.memory.recent_as_text(user_id, CONTEXT_MESSAGES),
                trading_summary=summary.to_prompt(),
                has_live_data=enrichment.has_live_data,
                original_message=message,
                mood=self.memory.infer_mood(user_id),
            )
            completion = await self.completion.generate(
                system_prompt,
                enrichment.prompt,
                config={**run_config, "run_id": uuid.UUID(run_id)},
            )
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.error("Chat error run_id=%s latency=%.2fs: %s", run_id, elapsed, e)
            return RouterReply(
                content=APOLOGY_MESSAGE,
                route="error",
                has_live_data=enrichment.has_live_data,
                run_id=run_id,
                metrics={"error": str(e), "latency_seconds": round(elapsed, 3)},
            )

        elapsed = time.monotonic() - start_time
        metrics = dict(completion.metrics)
        metrics["latency_seconds"] = round(elapsed, 3)
        logger.info(
            "chat run_id=%s latency=%.2fs tokens=%d live_data=%s",
            run_id,
            elapsed,
            metrics.get("total_tokens", 0),
            enrichment.has_live_data,
        )

        self.memory.append(user_id, "assistant", completion.text)
        return RouterReply(
            content=completion.text,
            route="chat",
            has_live_data=enrichment.has_live_data,
            run_id=run_id,
            metrics=metrics,
        )
