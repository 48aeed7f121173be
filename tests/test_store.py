from datetime import datetime, timedelta, timezone

import pytest

from agentflow.errors import InvalidTransitionError, RecordNotFoundError
from agentflow.states import (
    AgentType,
    ExecutionStatus,
    TaskStatus,
    check_execution_transition,
    check_task_transition,
)
from agentflow.store.analytics import compute_analytics, percentage
from agentflow.store.base import Execution, Task, ToolUsage
from agentflow.store.memory import InMemoryExecutionStore

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_execution_roundtrip():
    store = InMemoryExecutionStore()
    execution = await store.create_execution("Write a report", metadata={"user": "ada"})

    assert execution.status == ExecutionStatus.PENDING
    assert execution.result is None and execution.completed_at is None
    fetched = await store.get_execution(execution.id)
    assert fetched == execution
    assert await store.get_execution("missing") is None


@pytest.mark.asyncio
async def test_returned_records_are_copies():
    store = InMemoryExecutionStore()
    execution = await store.create_execution("goal")
    execution.status = ExecutionStatus.FAILED

    assert (await store.get_execution(execution.id)).status == ExecutionStatus.PENDING


@pytest.mark.asyncio
async def test_list_executions_newest_first():
    store = InMemoryExecutionStore()
    older = await store.create_execution("older")
    await store.update_execution(older.id, created_at=START)
    newer = await store.create_execution("newer")

    listed = await store.list_executions()
    assert [item.id for item in listed] == [newer.id, older.id]
    assert len(await store.list_executions(limit=1)) == 1


@pytest.mark.asyncio
async def test_update_unknown_records_raise():
    store = InMemoryExecutionStore()

    with pytest.raises(RecordNotFoundError, match="Execution nope not found"):
        await store.update_execution("nope", status=ExecutionStatus.PLANNING)
    with pytest.raises(RecordNotFoundError):
        await store.update_task("nope", status=TaskStatus.RUNNING)
    with pytest.raises(RecordNotFoundError):
        await store.create_task("nope", AgentType.CODER, "orphan", 0)


@pytest.mark.asyncio
async def test_tasks_listed_by_order():
    store = InMemoryExecutionStore()
    execution = await store.create_execution("goal")
    second = await store.create_task(execution.id, AgentType.CODER, "second", 1)
    first = await store.create_task(execution.id, "researcher", "first", 0, dependencies=[1])

    tasks = await store.list_tasks(execution.id)
    assert [task.id for task in tasks] == [first.id, second.id]
    assert tasks[0].agent_type == AgentType.RESEARCHER
    assert tasks[0].dependencies == [1]


@pytest.mark.asyncio
async def test_delete_cascades():
    store = InMemoryExecutionStore()
    execution = await store.create_execution("goal")
    task = await store.create_task(execution.id, AgentType.EXECUTOR, "run", 0)
    await store.create_agent_log(execution.id, AgentType.EXECUTOR, "Executing: run", task_id=task.id)
    await store.create_tool_usage(execution.id, task.id, "execution_engine")

    assert await store.delete_execution(execution.id)
    assert await store.get_task(task.id) is None
    assert await store.list_logs(execution.id) == []
    assert await store.list_tool_usage(execution.id) == []
    assert not await store.delete_execution(execution.id)


@pytest.mark.asyncio
async def test_task_logs_are_filtered_by_task():
    store = InMemoryExecutionStore()
    execution = await store.create_execution("goal")
    task = await store.create_task(execution.id, AgentType.EXECUTOR, "run", 0)
    await store.create_agent_log(execution.id, AgentType.PLANNER, "Starting execution planning")
    await store.create_agent_log(execution.id, AgentType.EXECUTOR, "Executing: run", task_id=task.id)

    assert len(await store.list_logs(execution.id)) == 2
    assert [log.action for log in await store.list_task_logs(task.id)] == ["Executing: run"]


def test_payloads_use_camel_case():
    task = Task(
        id="t1",
        execution_id="e1",
        agent_type=AgentType.CODER,
        description="code",
        order=0,
        created_at=START,
    )
    payload = task.to_payload()

    assert payload["executionId"] == "e1"
    assert payload["agentType"] == "coder"
    assert payload["createdAt"] == START.isoformat()
    assert payload["startedAt"] is None


def test_compute_analytics():
    executions = [
        Execution(id="a", goal="g", status=ExecutionStatus.COMPLETED, created_at=START,
                  completed_at=START + timedelta(seconds=4)),
        Execution(id="b", goal="g", status=ExecutionStatus.FAILED, created_at=START,
                  completed_at=START + timedelta(seconds=2)),
        Execution(id="c", goal="g", status=ExecutionStatus.EXECUTING, created_at=START),
    ]
    tasks = [
        Task(id="1", execution_id="a", agent_type=AgentType.CODER, description="x", order=0,
             status=TaskStatus.COMPLETED, started_at=START, completed_at=START + timedelta(milliseconds=300)),
        Task(id="2", execution_id="b", agent_type=AgentType.CODER, description="y", order=0,
             status=TaskStatus.FAILED, started_at=START, completed_at=START + timedelta(milliseconds=100)),
        Task(id="3", execution_id="c", agent_type=AgentType.CODER, description="z", order=0),
    ]
    usages = [
        ToolUsage(id="u1", execution_id="a", task_id="1", tool_name="code_generator", success=True),
        ToolUsage(id="u2", execution_id="b", task_id="2", tool_name="code_generator", success=False),
    ]

    analytics = compute_analytics(executions, tasks, usages)

    assert analytics.total_executions == 3
    assert analytics.successful_executions == 1
    assert analytics.failed_executions == 1
    assert analytics.avg_execution_time == 3000
    coder = analytics.performance_for(AgentType.CODER)
    assert coder.tasks_completed == 1
    assert coder.success_rate == pytest.approx(100 / 3)
    assert coder.avg_duration == 200
    assert analytics.tool_usage_stats["code_generator"].success_rate == 50.0
    assert analytics.performance_for("executor").tasks_completed == 0
    assert analytics.to_payload()["agentPerformance"]["coder"]["tasksCompleted"] == 1


def test_percentage_of_nothing_is_zero():
    assert percentage(0, 0) == 0.0


def test_execution_transitions():
    check_execution_transition(ExecutionStatus.PENDING, ExecutionStatus.PLANNING)
    check_execution_transition(ExecutionStatus.PLANNING, ExecutionStatus.FAILED)
    check_execution_transition(ExecutionStatus.EXECUTING, ExecutionStatus.COMPLETED)

    with pytest.raises(InvalidTransitionError):
        check_execution_transition(ExecutionStatus.PENDING, ExecutionStatus.EXECUTING)
    with pytest.raises(InvalidTransitionError):
        check_execution_transition(ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


def test_task_transitions():
    check_task_transition(TaskStatus.PENDING, TaskStatus.RUNNING)
    check_task_transition(TaskStatus.RUNNING, TaskStatus.FAILED)

    with pytest.raises(InvalidTransitionError, match="pending -> completed"):
        check_task_transition(TaskStatus.PENDING, TaskStatus.COMPLETED)
    with pytest.raises(InvalidTransitionError):
        check_task_transition(TaskStatus.FAILED, TaskStatus.RUNNING)
    assert TaskStatus.CANCELLED.is_terminal
    assert not ExecutionStatus.EXECUTING.is_terminal
