"""LangSmith tracing configuration.

Tracing is automatically enabled when these env vars are set:
  LANGCHAIN_TRACING_V2=true
  LANGCHAIN_API_KEY=<key>
  LANGCHAIN_PROJECT=<project>

get_run_config() builds the per-turn run configuration (run id, tags and
metadata) so completion calls are searchable in the dashboard.
"""

from __future__ import annotations

import os
import uuid

_TRACING_ENABLED: bool | None = None


def configure_tracing() -> bool:
    """Check if LangSmith tracing is configured. Called once at startup."""
    global _TRACING_ENABLED
    enabled = os.getenv("LANGCHAIN_TRACING_V2", "").lower() == "true"
    has_key = bool(os.getenv("LANGCHAIN_API_KEY"))
    _TRACING_ENABLED = enabled and has_key
    return _TRACING_ENABLED


def is_tracing_enabled() -> bool:
    if _TRACING_ENABLED is None:
        return configure_tracing()
    return _TRACING_ENABLED


def get_run_config(
    *,
    user_id: str | None = None,
    session_id: str | None = None,
    tags: list[str] | None = None,
    metadata: dict | None = None,
) -> dict:
    """Build a LangChain RunnableConfig with LangSmith metadata.

    Args:
        user_id: Hashed or opaque id of the chatting user.
        session_id: Trading session the user has open, if any.
        tags: Filterable tags (e.g. ["chat", "live-data"]).
        metadata: Arbitrary key-value pairs attached to the trace.
    """
    run_id = str(uuid.uuid4())

    config: dict = {
        "run_id": run_id,
        "run_name": "sydney-chat",
    }

    all_tags = ["sydney"]
    if tags:
        all_tags.extend(tags)
    config["tags"] = all_tags

    all_metadata = {"run_id": run_id}
    if user_id:
        all_metadata["user_id"] = user_id
    if session_id:
        all_metadata["session_id"] = session_id
    if metadata:
        all_metadata.update(metadata)
    config["metadata"] = all_metadata

    return config
