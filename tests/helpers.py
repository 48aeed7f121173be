"""Shared builders for the test suite."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Sequence, Union

from agentflow.agents.base import AgentContext, AgentResult, BaseAgent
from agentflow.agents.orchestrator import Orchestrator
from agentflow.agents.registry import AGENT_CLASSES, AgentRegistry
from agentflow.events import EventRecorder
from agentflow.llm.provider import StaticResponseProvider
from agentflow.states import AgentType
from agentflow.store.memory import InMemoryExecutionStore

Script = Union[Sequence[AgentResult], Callable[[AgentContext], AgentResult]]


def reply(**payload) -> str:
    return json.dumps(payload)


def plan_reply(*tasks: tuple) -> str:
    """``plan_reply(("researcher", "Find data"), ("coder", "Write script"))``"""

    return json.dumps(
        {
            "reasoning": "split the goal",
            "tasks": [
                {"description": description, "agentType": agent_type, "dependencies": []}
                for agent_type, description in tasks
            ],
        }
    )


def analyst_reply(summary: str = "All done") -> str:
    return reply(
        reasoning="looked at everything",
        insights=[{"finding": "f", "significance": "s", "recommendation": "r"}],
        summary=summary,
        conclusion="ship it",
    )


class ScriptedAgent(BaseAgent):
    """Agent returning canned results and remembering every context it saw."""

    def __init__(self, agent_type: AgentType, script: Script, tools: Sequence[str] = ("tool_a",)) -> None:
        super().__init__(llm_provider=None, tools=tools)
        self.agent_type = agent_type
        self._script = script if callable(script) else list(script)
        self.contexts: List[AgentContext] = []

    async def execute(self, context: AgentContext) -> AgentResult:
        self.contexts.append(context)
        if callable(self._script):
            return self._script(context)
        return self._script.pop(0)


@dataclass
class Harness:
    orchestrator: Orchestrator
    store: InMemoryExecutionStore
    recorder: EventRecorder
    providers: Dict[AgentType, StaticResponseProvider] = field(default_factory=dict)

    async def run(self, goal: str = "Ship the report"):
        execution = await self.store.create_execution(goal)
        return await self.orchestrator.execute_goal(execution.id, goal), execution.id


def llm_harness(responses: Dict[AgentType, List[str]], skip: Iterable[AgentType] = ()) -> Harness:
    """Orchestrator with the real agent classes fed by static replies."""

    registry = AgentRegistry()
    providers: Dict[AgentType, StaticResponseProvider] = {}
    for agent_type, agent_cls in AGENT_CLASSES.items():
        if agent_type in set(skip):
            continue
        provider = StaticResponseProvider(responses.get(agent_type, []))
        providers[agent_type] = provider
        registry.register(agent_cls(provider))
    store = InMemoryExecutionStore()
    recorder = EventRecorder()
    return Harness(Orchestrator(registry, store, recorder), store, recorder, providers)


def scripted_harness(*agents: ScriptedAgent) -> Harness:
    registry = AgentRegistry()
    for agent in agents:
        registry.register(agent)
    store = InMemoryExecutionStore()
    recorder = EventRecorder()
    return Harness(Orchestrator(registry, store, recorder), store, recorder)
