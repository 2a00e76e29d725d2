"""Transcript of the chat as the user saw it.

ConversationMemory only keeps successful turns for prompting; this log keeps
every reply shown to the user, apologies included, tagged with the route that
produced it. One Redis list per user (key hashed from the user id), capped at
``max_messages`` entries and expiring 7 days after the last write.

Without Redis the local deque is the transcript. With Redis, the local deque
only buffers entries that failed to write; they are replayed ahead of the
next turn once Redis answers again.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

logger = logging.getLogger("sydney.memory.chat_history")

# 7 days in seconds
CHAT_TTL_SECONDS = 7 * 24 * 60 * 60
MAX_TRANSCRIPT_MESSAGES = 200


def _chat_key(user_id: str) -> str:
    return f"sydney:chat:{hashlib.sha256(user_id.encode()).hexdigest()[:16]}"


@dataclass(frozen=True)
class TranscriptEntry:
    role: str
    content: str
    at: str
    route: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_raw(cls, raw: str | bytes) -> TranscriptEntry | None:
        try:
            data = json.loads(raw if isinstance(raw, str) else raw.decode())
            return cls(
                role=data["role"],
                content=data["content"],
                at=data.get("at", ""),
                route=data.get("route"),
            )
        except (ValueError, KeyError, TypeError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable transcript entry: %s", e)
            return None

    def as_dict(self) -> dict:
        out = {"role": self.role, "content": self.content, "at": self.at}
        if self.route:
            out["route"] = self.route
        return out


class ChatHistoryStore:
    def __init__(
        self,
        redis_client=None,
        max_messages: int = MAX_TRANSCRIPT_MESSAGES,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self.max_messages = max_messages
        self._clock = clock
        self._local: dict[str, deque[TranscriptEntry]] = {}

    @property
    def is_persistent(self) -> bool:
        return self._redis is not None

    def _stamp(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(timespec="seconds")

    def _buffer(self, key: str, entries: Iterable[TranscriptEntry]) -> None:
        self._local.setdefault(key, deque(maxlen=self.max_messages)).extend(entries)

    async def _write(self, key: str, entries: list[TranscriptEntry]) -> None:
        pipe = self._redis.pipeline()
        pipe.rpush(key, *(e.to_json() for e in entries))
        pipe.ltrim(key, -self.max_messages, -1)
        pipe.expire(key, CHAT_TTL_SECONDS)
        await pipe.execute()

    async def append_turn(self, user_id: str, message: str, reply: str, route: str) -> None:
        """Record one user message and the reply shown for it."""
        key = _chat_key(user_id)
        at = self._stamp()
        entries = [
            TranscriptEntry(role="user", content=message, at=at),
            TranscriptEntry(role="assistant", content=reply, at=at, route=route),
        ]

        if self._redis is None:
            self._buffer(key, entries)
            return

        pending = list(self._local.pop(key, ()))
        try:
            await self._write(key, pending + entries)
        except Exception as e:
            logger.warning("Redis transcript write failed, buffering %d entries: %s", len(pending) + 2, e)
            self._buffer(key, pending + entries)
            return
        if pending:
            logger.info("Replayed %d buffered transcript entries for %s", len(pending), key)

    async def get_history(self, user_id: str) -> list[dict]:
        key = _chat_key(user_id)
        pending = list(self._local.get(key, ()))

        stored: list[TranscriptEntry] = []
        if self._redis is not None:
            try:
                raw = await self._redis.lrange(key, -self.max_messages, -1)
            except Exception as e:
                logger.warning("Redis transcript read failed, showing local entries only: %s", e)
            else:
                stored = [e for e in map(TranscriptEntry.from_raw, raw) if e is not None]

        return [e.as_dict() for e in (stored + pending)[-self.max_messages:]]

    async def clear_history(self, user_id: str) -> None:
        key = _chat_key(user_id)
        self._local.pop(key, None)
        if self._redis is not None:
            try:
                await self._redis.delete(key)
            except Exception as e:
                logger.warning("Redis transcript clear failed: %s", e)
