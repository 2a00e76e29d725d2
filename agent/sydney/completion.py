from __future__ import annotations

import logging
from dataclasses import dataclass, field

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .observability import calculate_cost, extract_metrics

logger = logging.getLogger("sydney.completion")

DEFAULT_MODEL = "gpt-4o-mini"


class CompletionError(Exception):
    """Raised when the completion backend fails or returns nothing usable."""


@dataclass
class Completion:
    text: str
    metrics: dict = field(default_factory=dict)


class CompletionBackend:
    """Single-shot text completion over a LangChain chat model.

    The chat model is built on first use so the service can start without
    credentials; pass ``llm`` to inject a model (tests, other providers).
    """

    def __init__(
        self,
        llm=None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.8,
        request_timeout: float = 60,
    ):
        self.model = model
        self.temperature = temperature
        self.request_timeout = request_timeout
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                max_tokens=1000,
                max_retries=2,
                request_timeout=self.request_timeout,
            )
        return self._llm

    async def generate(
        self, system_prompt: str, user_prompt: str, *, config: dict | None = None
    ) -> Completion:
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            result = await self.llm.ainvoke(messages, config=config)
        except Exception as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        text = result.content if isinstance(result.content, str) else _join_parts(result.content)
        if not text.strip():
            raise CompletionError("Completion backend returned an empty reply")

        metrics = extract_metrics(result)
        metrics["cost"] = calculate_cost(
            input_tokens=metrics["input_tokens"],
            output_tokens=metrics["output_tokens"],
            model=self.model,
        )
        return Completion(text=text, metrics=metrics)

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        return (await self.generate(system_prompt, user_prompt)).text


def _join_parts(parts: list) -> str:
    """Flatten multi-part message content into plain text."""
    chunks = []
    for part in parts:
        if isinstance(part, str):
            chunks.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            chunks.append(part.get("text", ""))
    return "".join(chunks)
