"""Postgres persistence for executions, tasks, logs and tool usage."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..errors import RecordNotFoundError
from ..states import AgentType, ExecutionStatus, LogLevel, TaskStatus
from .analytics import AgentPerformance, Analytics, ToolStats, percentage
from .base import AgentLog, Execution, Task, ToolUsage, new_id

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS af_executions (
        id TEXT PRIMARY KEY,
        goal TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        result JSONB,
        error TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        completed_at TIMESTAMPTZ,
        metadata JSONB
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS af_tasks (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL REFERENCES af_executions(id) ON DELETE CASCADE,
        agent_type TEXT NOT NULL,
        description TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        task_order INTEGER NOT NULL,
        dependencies JSONB NOT NULL DEFAULT '[]'::jsonb,
        result JSONB,
        error TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        started_at TIMESTAMPTZ,
        completed_at TIMESTAMPTZ,
        metadata JSONB,
        UNIQUE (execution_id, task_order)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS af_agent_logs (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL REFERENCES af_executions(id) ON DELETE CASCADE,
        task_id TEXT REFERENCES af_tasks(id) ON DELETE CASCADE,
        agent_type TEXT NOT NULL,
        action TEXT NOT NULL,
        input JSONB,
        output JSONB,
        reasoning TEXT,
        level TEXT NOT NULL DEFAULT 'info',
        timestamp TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
        metadata JSONB
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS af_tool_usage (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL REFERENCES af_executions(id) ON DELETE CASCADE,
        task_id TEXT REFERENCES af_tasks(id) ON DELETE CASCADE,
        tool_name TEXT NOT NULL,
        input JSONB,
        output JSONB,
        success BOOLEAN NOT NULL DEFAULT true,
        duration INTEGER,
        error TEXT,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
    )
    """,
    "CREATE INDEX IF NOT EXISTS af_tasks_execution_idx ON af_tasks(execution_id)",
    "CREATE INDEX IF NOT EXISTS af_agent_logs_execution_idx ON af_agent_logs(execution_id)",
    "CREATE INDEX IF NOT EXISTS af_tool_usage_execution_idx ON af_tool_usage(execution_id)",
)

# record attribute -> column; JSON columns are wrapped before binding
EXECUTION_COLUMNS = {
    "goal": "goal",
    "status": "status",
    "result": "result",
    "error": "error",
    "completed_at": "completed_at",
    "metadata": "metadata",
}
TASK_COLUMNS = {
    "description": "description",
    "status": "status",
    "result": "result",
    "error": "error",
    "started_at": "started_at",
    "completed_at": "completed_at",
    "metadata": "metadata",
    "dependencies": "dependencies",
}
JSON_COLUMNS = {"result", "metadata", "dependencies", "input", "output"}


def _bind(column: str, value: Any) -> Any:
    if isinstance(value, (ExecutionStatus, TaskStatus, AgentType, LogLevel)):
        return value.value
    if column in JSON_COLUMNS:
        return Jsonb(value) if value is not None else None
    return value


def _execution_from_row(row: Mapping[str, Any]) -> Execution:
    return Execution(
        id=row["id"],
        goal=row["goal"],
        status=ExecutionStatus(row["status"]),
        result=row["result"],
        error=row["error"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
        metadata=row["metadata"],
    )


def _task_from_row(row: Mapping[str, Any]) -> Task:
    return Task(
        id=row["id"],
        execution_id=row["execution_id"],
        agent_type=AgentType(row["agent_type"]),
        description=row["description"],
        order=int(row["task_order"]),
        status=TaskStatus(row["status"]),
        dependencies=list(row["dependencies"] or []),
        result=row["result"],
        error=row["error"],
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        metadata=row["metadata"],
    )


def _log_from_row(row: Mapping[str, Any]) -> AgentLog:
    return AgentLog(
        id=row["id"],
        execution_id=row["execution_id"],
        task_id=row["task_id"],
        agent_type=AgentType(row["agent_type"]),
        action=row["action"],
        input=row["input"],
        output=row["output"],
        reasoning=row["reasoning"],
        level=LogLevel(row["level"]),
        timestamp=row["timestamp"],
        metadata=row["metadata"],
    )


def _usage_from_row(row: Mapping[str, Any]) -> ToolUsage:
    return ToolUsage(
        id=row["id"],
        execution_id=row["execution_id"],
        task_id=row["task_id"],
        tool_name=row["tool_name"],
        input=row["input"],
        output=row["output"],
        success=bool(row["success"]),
        duration=row["duration"],
        error=row["error"],
        timestamp=row["timestamp"],
    )


class PostgresExecutionStore:
    """Execution store backed by PostgreSQL through psycopg's async API.

    A short-lived connection is opened per call, so the store can be shared
    by executions running concurrently on the same event loop.
    """

    def __init__(self, db_url: str) -> None:
        self.db_url = db_url

    @classmethod
    async def connect(cls, db_url: str) -> "PostgresExecutionStore":
        store = cls(db_url)
        await store.ensure_schema()
        return store

    async def _connect(self) -> psycopg.AsyncConnection:
        return await psycopg.AsyncConnection.connect(self.db_url, row_factory=dict_row)

    async def ensure_schema(self) -> None:
        async with await self._connect() as conn:
            for statement in SCHEMA:
                await conn.execute(statement)
            await conn.commit()

    async def _fetchone(self, query: Any, params: tuple = ()) -> Optional[Dict[str, Any]]:
        async with await self._connect() as conn:
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            await conn.commit()
        return row

    async def _fetchall(self, query: Any, params: tuple = ()) -> List[Dict[str, Any]]:
        async with await self._connect() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return rows

    async def _update(
        self, table: str, kind: str, columns: Dict[str, str], record_id: str, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        unknown = sorted(set(fields) - set(columns))
        if unknown:
            raise TypeError(f"Cannot update {kind} fields: {', '.join(unknown)}")
        if not fields:
            row = await self._fetchone(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(table)),
                (record_id,),
            )
        else:
            assignments = sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(columns[name])) for name in fields
            )
            query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
                sql.Identifier(table), assignments
            )
            params = tuple(_bind(columns[name], value) for name, value in fields.items())
            row = await self._fetchone(query, params + (record_id,))
        if row is None:
            raise RecordNotFoundError(kind, record_id)
        return row

    # executions

    async def create_execution(
        self,
        goal: str,
        *,
        status: ExecutionStatus = ExecutionStatus.PENDING,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Execution:
        row = await self._fetchone(
            """
            INSERT INTO af_executions (id, goal, status, metadata)
            VALUES (%s, %s, %s, %s)
            RETURNING *
            """,
            (new_id(), goal, ExecutionStatus(status).value, _bind("metadata", metadata)),
        )
        return _execution_from_row(row)

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        row = await self._fetchone("SELECT * FROM af_executions WHERE id = %s", (execution_id,))
        return _execution_from_row(row) if row else None

    async def list_executions(self, limit: int = 50) -> List[Execution]:
        rows = await self._fetchall(
            "SELECT * FROM af_executions ORDER BY created_at DESC LIMIT %s", (limit,)
        )
        return [_execution_from_row(row) for row in rows]

    async def update_execution(self, execution_id: str, **fields: Any) -> Execution:
        row = await self._update("af_executions", "Execution", EXECUTION_COLUMNS, execution_id, fields)
        return _execution_from_row(row)

    async def delete_execution(self, execution_id: str) -> bool:
        row = await self._fetchone(
            "DELETE FROM af_executions WHERE id = %s RETURNING id", (execution_id,)
        )
        return row is not None

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
        try:
            row = await self._fetchone(
                """
                INSERT INTO af_tasks (id, execution_id, agent_type, description, status, task_order, dependencies)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    new_id(),
                    execution_id,
                    AgentType(agent_type).value,
                    description,
                    TaskStatus(status).value,
                    order,
                    Jsonb(list(dependencies or [])),
                ),
            )
        except psycopg.errors.ForeignKeyViolation as exc:
            raise RecordNotFoundError("Execution", execution_id) from exc
        return _task_from_row(row)

    async def get_task(self, task_id: str) -> Optional[Task]:
        row = await self._fetchone("SELECT * FROM af_tasks WHERE id = %s", (task_id,))
        return _task_from_row(row) if row else None

    async def list_tasks(self, execution_id: str) -> List[Task]:
        rows = await self._fetchall(
            "SELECT * FROM af_tasks WHERE execution_id = %s ORDER BY task_order ASC",
            (execution_id,),
        )
        return [_task_from_row(row) for row in rows]

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        row = await self._update("af_tasks", "Task", TASK_COLUMNS, task_id, fields)
        return _task_from_row(row)

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
        row = await self._fetchone(
            """
            INSERT INTO af_agent_logs
                (id, execution_id, task_id, agent_type, action, input, output, reasoning, level, metadata)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                new_id(),
                execution_id,
                task_id,
                AgentType(agent_type).value,
                action,
                _bind("input", input),
                _bind("output", output),
                reasoning,
                LogLevel(level).value,
                _bind("metadata", metadata),
            ),
        )
        return _log_from_row(row)

    async def list_logs(self, execution_id: str) -> List[AgentLog]:
        rows = await self._fetchall(
            "SELECT * FROM af_agent_logs WHERE execution_id = %s ORDER BY timestamp ASC",
            (execution_id,),
        )
        return [_log_from_row(row) for row in rows]

    async def list_task_logs(self, task_id: str) -> List[AgentLog]:
        rows = await self._fetchall(
            "SELECT * FROM af_agent_logs WHERE task_id = %s ORDER BY timestamp ASC", (task_id,)
        )
        return [_log_from_row(row) for row in rows]

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
        row = await self._fetchone(
            """
            INSERT INTO af_tool_usage
                (id, execution_id, task_id, tool_name, input, output, success, duration, error)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
            """,
            (
                new_id(),
                execution_id,
                task_id,
                tool_name,
                _bind("input", input),
                _bind("output", output),
                success,
                duration,
                error,
            ),
        )
        return _usage_from_row(row)

    async def list_tool_usage(self, execution_id: str) -> List[ToolUsage]:
        rows = await self._fetchall(
            "SELECT * FROM af_tool_usage WHERE execution_id = %s ORDER BY timestamp ASC",
            (execution_id,),
        )
        return [_usage_from_row(row) for row in rows]

    async def get_analytics(self) -> Analytics:
        async with await self._connect() as conn:
            totals = await (
                await conn.execute(
                    """
                    SELECT count(*)::int AS total,
                           count(*) FILTER (WHERE status = 'completed')::int AS successful,
                           count(*) FILTER (WHERE status = 'failed')::int AS failed,
                           coalesce(avg(extract(epoch FROM (completed_at - created_at)) * 1000)
                                    FILTER (WHERE completed_at IS NOT NULL), 0)::int AS avg_duration
                    FROM af_executions
                    """
                )
            ).fetchone()
            agent_rows = await (
                await conn.execute(
                    """
                    SELECT agent_type,
                           count(*) FILTER (WHERE status = 'completed')::int AS completed,
                           count(*)::int AS total,
                           coalesce(avg(extract(epoch FROM (completed_at - started_at)) * 1000), 0)::int
                               AS avg_duration
                    FROM af_tasks
                    GROUP BY agent_type
                    """
                )
            ).fetchall()
            tool_rows = await (
                await conn.execute(
                    """
                    SELECT tool_name,
                           count(*)::int AS count,
                           count(*) FILTER (WHERE success)::int AS successful
                    FROM af_tool_usage
                    GROUP BY tool_name
                    """
                )
            ).fetchall()

        analytics = Analytics(
            total_executions=totals["total"],
            successful_executions=totals["successful"],
            failed_executions=totals["failed"],
            avg_execution_time=totals["avg_duration"],
        )
        for row in agent_rows:
            analytics.agent_performance[row["agent_type"]] = AgentPerformance(
                tasks_completed=row["completed"],
                success_rate=percentage(row["completed"], row["total"]),
                avg_duration=row["avg_duration"],
            )
        for row in tool_rows:
            analytics.tool_usage_stats[row["tool_name"]] = ToolStats(
                count=row["count"],
                success_rate=percentage(row["successful"], row["count"]),
            )
        return analytics
