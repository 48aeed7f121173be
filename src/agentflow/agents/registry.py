"""Lookup of agents keyed by their agent type."""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Type

from ..llm.provider import LLMProvider
from ..states import AgentType
from .base import BaseAgent
from .planner import PlannerAgent
from .specialists import AnalystAgent, CoderAgent, ExecutorAgent, ResearcherAgent

AGENT_CLASSES: Dict[AgentType, Type[BaseAgent]] = {
    AgentType.PLANNER: PlannerAgent,
    AgentType.EXECUTOR: ExecutorAgent,
    AgentType.RESEARCHER: ResearcherAgent,
    AgentType.CODER: CoderAgent,
    AgentType.ANALYST: AnalystAgent,
}


class AgentRegistry:
    """Holds at most one agent per agent type."""

    def __init__(self) -> None:
        self._agents: Dict[AgentType, BaseAgent] = {}

    def register(self, agent: BaseAgent, *, overwrite: bool = False) -> None:
        agent_type = AgentType(agent.agent_type)
        if agent_type in self._agents and not overwrite:
            raise ValueError(f"Agent {agent_type.value} already registered")
        self._agents[agent_type] = agent

    def get(self, agent_type: AgentType | str) -> Optional[BaseAgent]:
        return self._agents.get(AgentType(agent_type))

    def require(self, agent_type: AgentType | str) -> BaseAgent:
        agent = self.get(agent_type)
        if agent is None:
            raise KeyError(f"Agent {AgentType(agent_type).value} not found")
        return agent

    def __contains__(self, agent_type: object) -> bool:
        try:
            return AgentType(agent_type) in self._agents
        except ValueError:
            return False

    def __iter__(self) -> Iterator[BaseAgent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)


def build_default_registry(llm_provider: LLMProvider) -> AgentRegistry:
    """Register all five agent types against one shared provider."""

    registry = AgentRegistry()
    for agent_cls in AGENT_CLASSES.values():
        registry.register(agent_cls(llm_provider))
    return registry
