"""In-process conversation memory: recent turns, joke history and mood.

One ConversationContext per user, created on first reference. Nothing is
persisted; a restart starts every user from scratch. Contexts idle for
longer than ``idle_ttl_seconds`` are evicted on the next access to the
store, oldest first, so a sweep only touches the contexts it removes.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

logger = logging.getLogger("sydney.memory.conversation")

Role = Literal["user", "assistant"]
Mood = Literal["excited", "frustrated", "curious", "neutral"]

MAX_MESSAGES = 20
MAX_USED_JOKES = 15
IDLE_TTL_SECONDS = 24 * 60 * 60
MOOD_WINDOW = 3

# Checked in this order; excited text is often full of "?!" so it goes first.
_MOOD_LEXICONS: list[tuple[Mood, re.Pattern]] = [
    ("excited", re.compile(r"!+|awesome|great|amazing|excellent|love|perfect")),
    ("frustrated", re.compile(r"damn|shit|fuck|stupid|hate|terrible|awful|bad|wrong|error|fail|broken")),
    ("curious", re.compile(r"\?|how|what|why|when|where|explain|tell me|show me|help")),
]


@dataclass
class Message:
    role: Role
    content: str
    timestamp: datetime

    def as_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp.isoformat()}


@dataclass
class UserPreferences:
    tone: Literal["casual", "professional", "friendly"] = "friendly"
    topics: list[str] = field(default_factory=list)


@dataclass
class ConversationContext:
    session_start_time: datetime
    last_activity: float
    messages: list[Message] = field(default_factory=list)
    used_jokes: list[str] = field(default_factory=list)
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class ConversationMemory:
    """Keyed store of per-user conversation contexts.

    Mutations of one user's context are serialised by that context's lock;
    different users never contend except on the short map lookup.
    """

    def __init__(
        self,
        max_messages: int = MAX_MESSAGES,
        max_used_jokes: int = MAX_USED_JOKES,
        idle_ttl_seconds: float | None = IDLE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_messages = max_messages
        self.max_used_jokes = max_used_jokes
        self.idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        # Least recently active first
        self._contexts: OrderedDict[str, ConversationContext] = OrderedDict()
        self._map_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._contexts

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _evict_idle(self, now: float) -> None:
        if not self.idle_ttl_seconds:
            return
        cutoff = now - self.idle_ttl_seconds
        evicted = 0
        while self._contexts:
            oldest = next(iter(self._contexts.values()))
            if oldest.last_activity >= cutoff:
                break
            self._contexts.popitem(last=False)
            evicted += 1
        if evicted:
            logger.info("Evicted %d idle conversation(s)", evicted)

    def get_context(self, user_id: str) -> ConversationContext:
        now = self._clock()
        with self._map_lock:
            self._evict_idle(now)
            ctx = self._contexts.get(user_id)
            if ctx is None:
                ctx = ConversationContext(session_start_time=self._now(), last_activity=now)
                self._contexts[user_id] = ctx
            else:
                ctx.last_activity = now
                self._contexts.move_to_end(user_id)
            return ctx

    def clear(self, user_id: str) -> None:
        with self._map_lock:
            self._contexts.pop(user_id, None)

    # --- messages ---

    def append(self, user_id: str, role: Role, content: str) -> None:
        ctx = self.get_context(user_id)
        with ctx.lock:
            ctx.messages.append(Message(role=role, content=content, timestamp=self._now()))
            if len(ctx.messages) > self.max_messages:
                del ctx.messages[: len(ctx.messages) - self.max_messages]

    def messages(self, user_id: str) -> list[Message]:
        ctx = self.get_context(user_id)
        with ctx.lock:
            return list(ctx.messages)

    def recent_as_text(self, user_id: str, n: int = 10) -> str:
        """Last *n* messages as ``role: content`` lines, oldest first."""
        if n <= 0:
            return ""
        recent = self.messages(user_id)[-n:]
        return "\n".join(f"{m.role}: {m.content}" for m in recent)

    # --- jokes ---

    def mark_joke_used(self, user_id: str, joke_id: str) -> None:
        ctx = self.get_context(user_id)
        with ctx.lock:
            ctx.used_jokes.append(joke_id)
            if len(ctx.used_jokes) > self.max_used_jokes:
                del ctx.used_jokes[: len(ctx.used_jokes) - self.max_used_jokes]

    def used_jokes(self, user_id: str) -> list[str]:
        ctx = self.get_context(user_id)
        with ctx.lock:
            return list(ctx.used_jokes)

    def reset_jokes(self, user_id: str) -> None:
        ctx = self.get_context(user_id)
        with ctx.lock:
            ctx.used_jokes.clear()

    # --- derived ---

    def infer_mood(self, user_id: str) -> Mood:
        recent_user = [m.content.lower() for m in self.messages(user_id) if m.role == "user"]
        text = " ".join(recent_user[-MOOD_WINDOW:])
        for mood, pattern in _MOOD_LEXICONS:
            if pattern.search(text):
                return mood
        return "neutral"

    def stats(self, user_id: str) -> dict:
        ctx = self.get_context(user_id)
        with ctx.lock:
            duration = self._now() - ctx.session_start_time
            last: Optional[datetime] = ctx.messages[-1].timestamp if ctx.messages else None
            return {
                "message_count": len(ctx.messages),
                "session_duration_minutes": int(duration.total_seconds() // 60),
                "jokes_told": len(ctx.used_jokes),
                "last_activity": last,
            }

    def suggestions(self, user_id: str) -> list[str]:
        """Canned openers matched to the user's mood and how the chat is going."""
        mood = self.infer_mood(user_id)
        stats = self.stats(user_id)
        suggestions = []

        if mood == "excited":
            suggestions += ["That's fantastic! 🎉", "I love your enthusiasm! 😄"]
        elif mood == "frustrated":
            suggestions += [
                "I understand that can be frustrating. Let me help! 🤝",
                "Don't worry, we'll figure this out together! 💪",
            ]
        elif mood == "curious":
            suggestions += [
                "Great question! Let me explain... 🤔",
                "I'd be happy to help you understand that! 📚",
            ]

        if stats["message_count"] > 10:
            suggestions.append("We've been chatting for a while! How can I help you further? 💬")
        if stats["jokes_told"] > 3:
            suggestions.append("You seem to enjoy the jokes! 😄")

        return suggestions
