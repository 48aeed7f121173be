"""Agent package exports."""

from .base import AgentContext, AgentResult, BaseAgent, HistoryEntry
from .orchestrator import Orchestrator
from .planner import PlanItem, PlannerAgent
from .registry import AgentRegistry, build_default_registry
from .specialists import AnalystAgent, CoderAgent, ExecutorAgent, ResearcherAgent

__all__ = [
    "AgentContext",
    "AgentRegistry",
    "AgentResult",
    "AnalystAgent",
    "BaseAgent",
    "CoderAgent",
    "ExecutorAgent",
    "HistoryEntry",
    "Orchestrator",
    "PlanItem",
    "PlannerAgent",
    "ResearcherAgent",
    "build_default_registry",
]
