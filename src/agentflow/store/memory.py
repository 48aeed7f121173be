"""In-process execution store used for local runs and tests."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional

from ..errors import RecordNotFoundError
from ..states import AgentType, ExecutionStatus, LogLevel, TaskStatus
from .analytics import Analytics, compute_analytics
from .base import AgentLog, Execution, Task, ToolUsage, new_id


class InMemoryExecutionStore:
    """Keeps every record in dicts keyed by id.

    Records are copied on the way in and out so callers never hold a live
    reference to stored state. None of the methods await while mutating, so
    concurrent executions on one event loop cannot interleave inside a call.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, Execution] = {}
        self._tasks: Dict[str, Task] = {}
        self._logs: List[AgentLog] = []
        self._tool_usage: List[ToolUsage] = []

    # executions

    async def create_execution(
        self,
        goal: str,
        *,
        status: ExecutionStatus = ExecutionStatus.PENDING,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Execution:
        execution = Execution(id=new_id(), goal=goal, status=status, metadata=metadata)
        self._executions[execution.id] = execution
        return replace(execution)

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        execution = self._executions.get(execution_id)
        return replace(execution) if execution else None

    async def list_executions(self, limit: int = 50) -> List[Execution]:
        items = sorted(self._executions.values(), key=lambda item: item.created_at, reverse=True)
        return [replace(item) for item in items[:limit]]

    async def update_execution(self, execution_id: str, **fields: Any) -> Execution:
        current = self._executions.get(execution_id)
        if current is None:
            raise RecordNotFoundError("Execution", execution_id)
        updated = replace(current, **fields)
        self._executions[execution_id] = updated
        return replace(updated)

    async def delete_execution(self, execution_id: str) -> bool:
        if self._executions.pop(execution_id, None) is None:
            return False
        self._tasks = {
            key: task for key, task in self._tasks.items() if task.execution_id != execution_id
        }
        self._logs = [log for log in self._logs if log.execution_id != execution_id]
        self._tool_usage = [
            usage for usage in self._tool_usage if usage.execution_id != execution_id
        ]
        return True

    # tasks

    async def create_task(
        self,
        execution_id: str,
        agent_type: AgentType,
        description: str,
        order: int,
        *,
        status: TaskStatus = TaskStatus.PENDING,
        dependencies: Optional[List[Any]] = None,
    ) -> Task:
        if execution_id not in self._executions:
            raise RecordNotFoundError("Execution", execution_id)
        task = Task(
            id=new_id(),
            execution_id=execution_id,
            agent_type=AgentType(agent_type),
            description=description,
            order=order,
            status=status,
            dependencies=list(dependencies or []),
        )
        self._tasks[task.id] = task
        return replace(task)

    async def get_task(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    async def list_tasks(self, execution_id: str) -> List[Task]:
        items = [task for task in self._tasks.values() if task.execution_id == execution_id]
        return [replace(task) for task in sorted(items, key=lambda task: task.order)]

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        current = self._tasks.get(task_id)
        if current is None:
            raise RecordNotFoundError("Task", task_id)
        updated = replace(current, **fields)
        self._tasks[task_id] = updated
        return replace(updated)

    # logs and tool usage

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
    ) -> AgentLog:
        log = AgentLog(
            id=new_id(),
            execution_id=execution_id,
            task_id=task_id,
            agent_type=AgentType(agent_type),
            action=action,
            input=input,
            output=output,
            reasoning=reasoning,
            level=LogLevel(level),
            metadata=metadata,
        )
        self._logs.append(log)
        return replace(log)

    async def list_logs(self, execution_id: str) -> List[AgentLog]:
        items = [log for log in self._logs if log.execution_id == execution_id]
        return [replace(log) for log in sorted(items, key=lambda log: log.timestamp)]

    async def list_task_logs(self, task_id: str) -> List[AgentLog]:
        items = [log for log in self._logs if log.task_id == task_id]
        return [replace(log) for log in sorted(items, key=lambda log: log.timestamp)]

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
    ) -> ToolUsage:
        usage = ToolUsage(
            id=new_id(),
            execution_id=execution_id,
            task_id=task_id,
            tool_name=tool_name,
            input=input,
            output=output,
            success=success,
            duration=duration,
            error=error,
        )
        self._tool_usage.append(usage)
        return replace(usage)

    async def list_tool_usage(self, execution_id: str) -> List[ToolUsage]:
        items = [usage for usage in self._tool_usage if usage.execution_id == execution_id]
        return [replace(usage) for usage in sorted(items, key=lambda usage: usage.timestamp)]

    async def get_analytics(self) -> Analytics:
        return compute_analytics(
            self._executions.values(), self._tasks.values(), self._tool_usage
        )
