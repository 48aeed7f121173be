"""Persisted records and the store interface the orchestrator writes through."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol

from ..states import AgentType, ExecutionStatus, LogLevel, TaskStatus

if TYPE_CHECKING:  # pragma: no cover
    from .analytics import Analytics


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Execution:
    """One user goal and its overall run."""

    id: str
    goal: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "goal": self.goal,
            "status": ExecutionStatus(self.status).value,
            "result": self.result,
            "error": self.error,
            "createdAt": _iso(self.created_at),
            "completedAt": _iso(self.completed_at),
            "metadata": self.metadata,
        }


@dataclass
class Task:
    """One planned unit of work assigned to one agent type."""

    id: str
    execution_id: str
    agent_type: AgentType
    description: str
    order: int
    status: TaskStatus = TaskStatus.PENDING
    dependencies: List[Any] = field(default_factory=list)
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "executionId": self.execution_id,
            "agentType": AgentType(self.agent_type).value,
            "description": self.description,
            "status": TaskStatus(self.status).value,
            "order": self.order,
            "dependencies": list(self.dependencies),
            "result": self.result,
            "error": self.error,
            "createdAt": _iso(self.created_at),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "metadata": self.metadata,
        }


@dataclass
class AgentLog:
    """Append-only record of one agent action."""

    id: str
    execution_id: str
    agent_type: AgentType
    action: str
    task_id: Optional[str] = None
    input: Any = None
    output: Any = None
    reasoning: Optional[str] = None
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = field(default_factory=utcnow)
    metadata: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "executionId": self.execution_id,
            "taskId": self.task_id,
            "agentType": AgentType(self.agent_type).value,
            "action": self.action,
            "input": self.input,
            "output": self.output,
            "reasoning": self.reasoning,
            "level": LogLevel(self.level).value,
            "timestamp": _iso(self.timestamp),
            "metadata": self.metadata,
        }


@dataclass
class ToolUsage:
    """A named tool invoked while executing a task."""

    id: str
    execution_id: str
    task_id: Optional[str]
    tool_name: str
    input: Any = None
    output: Any = None
    success: bool = True
    duration: Optional[int] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "executionId": self.execution_id,
            "taskId": self.task_id,
            "toolName": self.tool_name,
            "input": self.input,
            "output": self.output,
            "success": self.success,
            "duration": self.duration,
            "error": self.error,
            "timestamp": _iso(self.timestamp),
        }


class ExecutionStore(Protocol):
    """Durable CRUD for executions and their children, plus analytics.

    ``get_*`` return ``None`` for unknown ids while ``update_*`` raise
    :class:`~agentflow.errors.RecordNotFoundError`. Implementations must be
    safe to call from several executions running concurrently.
    """

    async def create_execution(
        self,
        goal: str,
        *,
        status: ExecutionStatus = ExecutionStatus.PENDING,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Execution: ...

    async def get_execution(self, execution_id: str) -> Optional[Execution]: ...

    async def list_executions(self, limit: int = 50) -> List[Execution]: ...

    async def update_execution(self, execution_id: str, **fields: Any) -> Execution: ...

    async def delete_execution(self, execution_id: str) -> bool: ...

    async def create_task(
        self,
        execution_id: str,
        agent_type: AgentType,
        description: str,
        order: int,
        *,
        status: TaskStatus = TaskStatus.PENDING,
        dependencies: Optional[List[Any]] = None,
    ) -> Task: ...

    async def get_task(self, task_id: str) -> Optional[Task]: ...

    async def list_tasks(self, execution_id: str) -> List[Task]: ...

    async def update_task(self, task_id: str, **fields: Any) -> Task: ...

    async def create_agent_log(
        self,
        execution_id: str,
        agent_type: AgentType,
        action: str,
        *,
        task_id: Optional[str] = None,
        input: Any = None,
        output: Any = None,
        reasoning: Optional[str] = None,
        level: LogLevel = LogLevel.INFO,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentLog: ...

    async def list_logs(self, execution_id: str) -> List[AgentLog]: ...

    async def list_task_logs(self, task_id: str) -> List[AgentLog]: ...

    async def create_tool_usage(
        self,
        execution_id: str,
        task_id: Optional[str],
        tool_name: str,
        *,
        input: Any = None,
        output: Any = None,
        success: bool = True,
        duration: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ToolUsage: ...

    async def list_tool_usage(self, execution_id: str) -> List[ToolUsage]: ...

    async def get_analytics(self) -> "Analytics": ...
