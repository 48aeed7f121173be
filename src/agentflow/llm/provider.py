"""Provider abstractions used by the agents for their generation step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError


@dataclass
class PromptContext:
    """Metadata about the prompt being generated."""

    agent_name: str
    system_prompt: str


class LLMProvider(Protocol):
    """Interface for language model providers."""

    async def generate(self, prompt: str, context: PromptContext) -> str:  # pragma: no cover - interface
        """Return a response for the given prompt."""


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests).

    Every prompt it receives is kept in ``calls`` so tests can inspect what an
    agent sent.
    """

    def __init__(self, responses: Iterable[str]):
        self._responses = iter(responses)
        self.calls: List[str] = []

    async def generate(self, prompt: str, context: PromptContext) -> str:
        self.calls.append(prompt)
        try:
            return next(self._responses)
        except StopIteration as exc:
            raise RuntimeError("StaticResponseProvider exhausted") from exc


class OpenAIChatProvider:
    """Calls any OpenAI-compatible chat completions endpoint.

    Works against OpenAI itself and local servers exposing the same API
    (Ollama, LM Studio, vLLM). ``timeout=None`` leaves requests unbounded.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: int = 8192,
        options: Dict[str, Any] | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.options = options or {}
        self.client = AsyncOpenAI(
            api_key=api_key or "dummy-key",
            base_url=base_url,
            timeout=timeout,
        )

    async def generate(self, prompt: str, context: PromptContext) -> str:
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": context.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_completion_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
            **self.options,
        }
        try:
            response = await self.client.chat.completions.create(**request)
        except OpenAIError as exc:
            raise RuntimeError(f"LLM call failed for {context.agent_name}: {exc}") from exc
        if not response.choices:
            raise RuntimeError(f"LLM returned no choices for {context.agent_name}")
        return response.choices[0].message.content or ""
