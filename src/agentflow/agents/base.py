"""The capability contract every agent fulfils."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..llm.provider import LLMProvider, PromptContext
from ..states import AgentType

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """Outcome of a successful task, handed to the tasks after it."""

    agent: AgentType
    action: str
    result: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"agent": AgentType(self.agent).value, "action": self.action, "result": self.result}


@dataclass
class AgentContext:
    goal: str
    history: List[HistoryEntry] = field(default_factory=list)
    current_task: Optional[str] = None
    available_tools: List[str] = field(default_factory=list)


@dataclass
class AgentResult:
    success: bool
    result: Any = None
    error: Optional[str] = None
    reasoning: Optional[str] = None
    tools_used: List[str] = field(default_factory=list)


def format_history(history: Sequence[HistoryEntry]) -> str:
    return "\n".join(f"{AgentType(entry.agent).value}: {json.dumps(entry.result, default=str)}" for entry in history)


class BaseAgent:
    """Agent that turns one context into one result through a single generation call.

    ``execute`` never raises: provider errors, unparseable replies and
    validation failures all come back as ``AgentResult(success=False)``.
    Subclasses supply the prompts and the interpretation of the JSON reply.
    """

    agent_type: AgentType
    system_prompt: str = ""
    default_tools: Sequence[str] = ()
    failure_reasoning: str = "Failed to complete task"

    def __init__(
        self,
        llm_provider: LLMProvider,
        *,
        tools: Sequence[str] | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self.llm_provider = llm_provider
        self.tools = list(self.default_tools if tools is None else tools)
        if system_prompt is not None:
            self.system_prompt = system_prompt

    @property
    def name(self) -> str:
        return AgentType(self.agent_type).value

    def get_tools(self) -> List[str]:
        return list(self.tools)

    async def execute(self, context: AgentContext) -> AgentResult:
        try:
            prompt = self.build_prompt(context)
            response = await self.llm_provider.generate(
                prompt, PromptContext(agent_name=self.name, system_prompt=self.system_prompt)
            )
            return self.interpret(self._parse_response(response), context)
        except Exception as exc:
            logger.warning("%s agent failed: %s", self.name, exc)
            return AgentResult(
                success=False,
                error=str(exc) or exc.__class__.__name__,
                reasoning=self.failure_reasoning,
            )

    def build_prompt(self, context: AgentContext) -> str:  # pragma: no cover - abstract
        raise NotImplementedError

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:  # pragma: no cover - abstract
        raise NotImplementedError

    def _parse_response(self, response: str) -> Dict[str, Any]:
        try:
            payload = json.loads(response)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed JSON response: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise ValueError("Expected a JSON object response")
        return payload
