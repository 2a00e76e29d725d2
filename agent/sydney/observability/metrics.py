"""Extract token usage from a chat model reply."""

from __future__ import annotations


def extract_metrics(message) -> dict:
    """Pull token counts from an AIMessage.

    Prefers the provider-neutral ``usage_metadata`` and falls back to the
    OpenAI-style ``response_metadata["token_usage"]``.
    """
    input_tokens = output_tokens = total_tokens = 0

    usage = getattr(message, "usage_metadata", None)
    if usage:
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        total_tokens = usage.get("total_tokens", input_tokens + output_tokens)
    else:
        token_usage = (getattr(message, "response_metadata", None) or {}).get("token_usage", {})
        input_tokens = token_usage.get("prompt_tokens", 0)
        output_tokens = token_usage.get("completion_tokens", 0)
        total_tokens = token_usage.get("total_tokens", 0)

    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": total_tokens,
    }
