"""High-level orchestration: one goal in, a supervised sequence of agent runs out."""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional

from .. import events
from ..errors import AnalysisError, PlanningError, RecordNotFoundError
from ..events import Broadcaster, Publisher
from ..states import (
    AgentType,
    ExecutionStatus,
    LogLevel,
    TaskStatus,
    check_execution_transition,
    check_task_transition,
)
from ..store.base import Execution, ExecutionStore, Task, utcnow
from .base import AgentContext, AgentResult, HistoryEntry
from .planner import PlanItem
from .registry import AgentRegistry

logger = logging.getLogger(__name__)

ANALYSIS_TASK = "Analyze all results and create final summary"


def _message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class Orchestrator:
    """Plans a goal, runs its tasks in order and reports every state change.

    The orchestrator is the only writer of execution and task status. Every
    change is persisted through ``store`` first and then published, so the
    event stream for one execution follows the order of its state changes.
    Tasks of one execution run strictly one after another; separate
    executions may run concurrently on the same orchestrator.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        store: ExecutionStore,
        publisher: Publisher | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.publisher = publisher if publisher is not None else Broadcaster()

    async def execute_goal(self, execution_id: str, goal: str) -> Execution:
        """Run ``goal`` for a pending execution until it completes or fails.

        Failures after the execution left ``pending`` mark it ``failed`` and
        are re-raised to the caller.
        """

        current = await self.store.get_execution(execution_id)
        if current is None:
            raise RecordNotFoundError("Execution", execution_id)
        check_execution_transition(current.status, ExecutionStatus.PLANNING)

        execution: Optional[Execution] = None
        try:
            execution = await self._transition_execution(current, ExecutionStatus.PLANNING)
            history: List[HistoryEntry] = []

            await self._log(execution.id, AgentType.PLANNER, "Starting execution planning")
            self._publish(
                events.execution_update(
                    execution.id, ExecutionStatus.PLANNING, current_agent=AgentType.PLANNER
                )
            )
            plan = await self._plan(execution, goal)
            tasks = await self._create_tasks(execution, plan)

            execution = await self._transition_execution(execution, ExecutionStatus.EXECUTING)
            for task in tasks:
                await self._execute_task(execution, task, history)

            summary = await self._analyze(execution, goal, history)
            execution = await self._transition_execution(
                execution,
                ExecutionStatus.COMPLETED,
                completed_at=utcnow(),
                result=summary,
            )
            logger.info("Execution %s completed with %d task(s)", execution.id, len(tasks))
            return execution
        except Exception as exc:
            if execution is None:
                raise
            # the store may already hold a newer status than the local copy
            execution = await self.store.get_execution(execution.id) or execution
            if ExecutionStatus(execution.status).is_terminal:
                logger.error("Execution %s already %s: %s", execution_id, execution.status.value, exc)
                raise
            if isinstance(exc, (PlanningError, AnalysisError)):
                logger.error("Execution %s failed: %s", execution_id, exc)
            else:
                logger.exception("Execution %s failed", execution_id)
            await self._transition_execution(
                execution,
                ExecutionStatus.FAILED,
                completed_at=utcnow(),
                error=_message(exc),
            )
            raise

    # planning and analysis

    async def _plan(self, execution: Execution, goal: str) -> List[PlanItem]:
        planner = self.registry.get(AgentType.PLANNER)
        if planner is None:
            raise PlanningError("Planning failed: Agent planner not found")
        result = await planner.execute(AgentContext(goal=goal, history=[], available_tools=[]))
        if not result.success:
            error = result.error or "unknown error"
            await self._log(
                execution.id,
                AgentType.PLANNER,
                "Planning failed",
                level=LogLevel.ERROR,
                input={"goal": goal},
                output={"error": error},
                reasoning=result.reasoning,
            )
            raise PlanningError(f"Planning failed: {error}")

        plan: List[PlanItem] = list(result.result or [])
        await self._log(
            execution.id,
            AgentType.PLANNER,
            "Created execution plan",
            level=LogLevel.SUCCESS,
            input={"goal": goal},
            output=[item.to_dict() for item in plan],
            reasoning=result.reasoning,
        )
        return plan

    async def _create_tasks(self, execution: Execution, plan: List[PlanItem]) -> List[Task]:
        tasks: List[Task] = []
        for order, item in enumerate(plan):
            task = await self.store.create_task(
                execution.id,
                item.agent_type,
                item.description,
                order,
                dependencies=item.dependencies,
            )
            tasks.append(task)
            self._publish(events.task_update(task))
        logger.debug("Execution %s planned %d task(s)", execution.id, len(tasks))
        return tasks

    async def _analyze(
        self, execution: Execution, goal: str, history: List[HistoryEntry]
    ) -> Any:
        analyst = self.registry.get(AgentType.ANALYST)
        if analyst is None:
            raise AnalysisError("Final analysis failed: Agent analyst not found")
        self._publish(
            events.execution_update(
                execution.id,
                ExecutionStatus.EXECUTING,
                current_agent=AgentType.ANALYST,
                current_task=ANALYSIS_TASK,
            )
        )
        result = await analyst.execute(
            AgentContext(goal=goal, history=list(history), current_task=ANALYSIS_TASK, available_tools=[])
        )
        history_payload = [entry.to_dict() for entry in history]
        if not result.success:
            error = result.error or "unknown error"
            await self._log(
                execution.id,
                AgentType.ANALYST,
                "Final analysis failed",
                level=LogLevel.ERROR,
                input={"history": history_payload},
                output={"error": error},
                reasoning=result.reasoning,
            )
            raise AnalysisError(f"Final analysis failed: {error}")
        await self._log(
            execution.id,
            AgentType.ANALYST,
            "Final analysis completed",
            level=LogLevel.SUCCESS,
            input={"history": history_payload},
            output=result.result,
            reasoning=result.reasoning,
        )
        return result.result

    # per-task protocol

    async def _execute_task(
        self, execution: Execution, task: Task, history: List[HistoryEntry]
    ) -> None:
        """Run one task; agent failures stay inside, infrastructure faults propagate."""

        agent = self.registry.get(task.agent_type)
        try:
            task = await self._transition_task(task, TaskStatus.RUNNING, started_at=utcnow())
            self._publish(
                events.execution_update(
                    execution.id,
                    ExecutionStatus.EXECUTING,
                    current_agent=task.agent_type,
                    current_task=task.description,
                )
            )
            await self._log(
                execution.id, task.agent_type, f"Executing: {task.description}", task_id=task.id
            )

            started = time.perf_counter()
            if agent is None:
                result = AgentResult(
                    success=False,
                    error=f"Agent {AgentType(task.agent_type).value} not found",
                    reasoning="No agent is registered for this task type",
                )
            else:
                result = await agent.execute(
                    AgentContext(
                        goal=execution.goal,
                        history=list(history),
                        current_task=task.description,
                        available_tools=agent.get_tools(),
                    )
                )
            duration = int((time.perf_counter() - started) * 1000)

            for tool_name in result.tools_used:
                await self.store.create_tool_usage(
                    execution.id,
                    task.id,
                    tool_name,
                    input={"task": task.description},
                    output=result.result,
                    success=result.success,
                    duration=duration,
                    error=result.error,
                )

            if result.success:
                task = await self._transition_task(
                    task, TaskStatus.COMPLETED, completed_at=utcnow(), result=result.result
                )
                await self._log(
                    execution.id,
                    task.agent_type,
                    f"Completed: {task.description}",
                    level=LogLevel.SUCCESS,
                    task_id=task.id,
                    output=result.result,
                    reasoning=result.reasoning,
                )
                history.append(
                    HistoryEntry(agent=task.agent_type, action=task.description, result=result.result)
                )
            else:
                error = result.error or "Agent reported failure"
                task = await self._transition_task(
                    task, TaskStatus.FAILED, completed_at=utcnow(), error=error
                )
                await self._log(
                    execution.id,
                    task.agent_type,
                    f"Failed: {task.description}",
                    level=LogLevel.ERROR,
                    task_id=task.id,
                    output={"error": error},
                    reasoning=result.reasoning,
                )
                logger.warning("Task %s (%s) failed: %s", task.id, task.agent_type.value, error)

            await self._publish_performance(task.agent_type)
            final = await self.store.get_task(task.id)
            self._publish(events.task_update(final or task))
        except Exception as exc:
            await self._abort_task(execution, task, exc)
            raise

    async def _abort_task(self, execution: Execution, task: Task, exc: Exception) -> None:
        """Best-effort failure marking after an infrastructure fault."""

        message = _message(exc)
        try:
            latest = await self.store.get_task(task.id) or task
            if not TaskStatus(latest.status).is_terminal:
                # pending -> failed is only taken here, when the running transition itself broke
                latest = await self.store.update_task(
                    task.id, status=TaskStatus.FAILED, completed_at=utcnow(), error=message
                )
            self._publish(events.task_update(latest))
        except Exception:
            logger.exception("Could not mark task %s as failed", task.id)
        try:
            await self._log(
                execution.id,
                task.agent_type,
                f"Error: {message}",
                level=LogLevel.ERROR,
                task_id=task.id,
                output={"error": message},
            )
        except Exception:
            logger.exception("Could not record error log for task %s", task.id)

    # persistence + broadcast helpers

    async def _transition_execution(
        self, execution: Execution, target: ExecutionStatus, **fields: Any
    ) -> Execution:
        check_execution_transition(execution.status, target)
        updated = await self.store.update_execution(execution.id, status=target, **fields)
        logger.debug("Execution %s -> %s", execution.id, target.value)
        self._publish(events.execution_update(updated.id, target, error=fields.get("error")))
        return updated

    async def _transition_task(self, task: Task, target: TaskStatus, **fields: Any) -> Task:
        check_task_transition(task.status, target)
        updated = await self.store.update_task(task.id, status=target, **fields)
        self._publish(events.task_update(updated))
        return updated

    async def _log(
        self,
        execution_id: str,
        agent_type: AgentType,
        action: str,
        *,
        level: LogLevel = LogLevel.INFO,
        task_id: Optional[str] = None,
        input: Any = None,
        output: Any = None,
        reasoning: Optional[str] = None,
    ) -> None:
        log = await self.store.create_agent_log(
            execution_id,
            agent_type,
            action,
            task_id=task_id,
            input=input,
            output=output,
            reasoning=reasoning,
            level=level,
            metadata={"level": level.value},
        )
        self._publish(events.log_event(log))

    async def _publish_performance(self, agent_type: AgentType) -> None:
        analytics = await self.store.get_analytics()
        self._publish(events.agent_performance(agent_type, analytics.performance_for(agent_type)))

    def _publish(self, event: events.Event) -> None:
        self.publisher.publish(event)
