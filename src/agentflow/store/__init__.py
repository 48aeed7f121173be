"""Execution persistence."""

from .analytics import AgentPerformance, Analytics, ToolStats, compute_analytics
from .base import AgentLog, Execution, ExecutionStore, Task, ToolUsage
from .memory import InMemoryExecutionStore

__all__ = [
    "AgentLog",
    "AgentPerformance",
    "Analytics",
    "Execution",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "Task",
    "ToolStats",
    "ToolUsage",
    "compute_analytics",
]
