"""Aggregate execution, agent and tool statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..states import AgentType, ExecutionStatus, TaskStatus
from .base import Execution, Task, ToolUsage


@dataclass
class AgentPerformance:
    tasks_completed: int = 0
    success_rate: float = 0.0  # percentage, 0-100
    avg_duration: int = 0  # milliseconds

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tasksCompleted": self.tasks_completed,
            "successRate": self.success_rate,
            "avgDuration": self.avg_duration,
        }


@dataclass
class ToolStats:
    count: int = 0
    success_rate: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {"count": self.count, "successRate": self.success_rate}


@dataclass
class Analytics:
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    avg_execution_time: int = 0
    agent_performance: Dict[str, AgentPerformance] = field(default_factory=dict)
    tool_usage_stats: Dict[str, ToolStats] = field(default_factory=dict)

    def performance_for(self, agent_type: AgentType | str) -> AgentPerformance:
        """Snapshot for one agent type, zeros when it has no tasks yet."""

        key = AgentType(agent_type).value
        return self.agent_performance.get(key) or AgentPerformance()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "totalExecutions": self.total_executions,
            "successfulExecutions": self.successful_executions,
            "failedExecutions": self.failed_executions,
            "avgExecutionTime": self.avg_execution_time,
            "agentPerformance": {
                name: perf.to_payload() for name, perf in self.agent_performance.items()
            },
            "toolUsageStats": {
                name: stats.to_payload() for name, stats in self.tool_usage_stats.items()
            },
        }


def percentage(part: int, total: int) -> float:
    return (part / total) * 100 if total > 0 else 0.0


def _millis(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    if start is None or end is None:
        return None
    return (end - start).total_seconds() * 1000


def _mean_millis(values: Iterable[Optional[float]]) -> int:
    present = [value for value in values if value is not None]
    if not present:
        return 0
    return int(sum(present) / len(present))


def compute_analytics(
    executions: Iterable[Execution],
    tasks: Iterable[Task],
    tool_usages: Iterable[ToolUsage],
) -> Analytics:
    """Build :class:`Analytics` from in-memory records.

    Durations only count records that carry both endpoints, the same way the
    SQL aggregate in the postgres store ignores nulls.
    """

    executions = list(executions)
    analytics = Analytics(
        total_executions=len(executions),
        successful_executions=sum(
            1 for item in executions if item.status == ExecutionStatus.COMPLETED
        ),
        failed_executions=sum(1 for item in executions if item.status == ExecutionStatus.FAILED),
        avg_execution_time=_mean_millis(
            _millis(item.created_at, item.completed_at) for item in executions
        ),
    )

    by_agent: Dict[str, List[Task]] = {}
    for task in tasks:
        by_agent.setdefault(AgentType(task.agent_type).value, []).append(task)
    for agent_type, items in by_agent.items():
        completed = sum(1 for task in items if task.status == TaskStatus.COMPLETED)
        analytics.agent_performance[agent_type] = AgentPerformance(
            tasks_completed=completed,
            success_rate=percentage(completed, len(items)),
            avg_duration=_mean_millis(_millis(task.started_at, task.completed_at) for task in items),
        )

    by_tool: Dict[str, List[ToolUsage]] = {}
    for usage in tool_usages:
        by_tool.setdefault(usage.tool_name, []).append(usage)
    for tool_name, usages in by_tool.items():
        successful = sum(1 for usage in usages if usage.success)
        analytics.tool_usage_stats[tool_name] = ToolStats(
            count=len(usages),
            success_rate=percentage(successful, len(usages)),
        )
    return analytics
