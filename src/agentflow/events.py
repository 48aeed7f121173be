"""Broadcast event shapes and the subscriber fan-out."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Protocol

from .states import AgentType, ExecutionStatus
from .store.analytics import AgentPerformance
from .store.base import AgentLog, Task

logger = logging.getLogger(__name__)

EXECUTION_UPDATE = "execution_update"
TASK_UPDATE = "task_update"
LOG = "log"
AGENT_PERFORMANCE = "agent_performance"

Event = Dict[str, Any]


class Publisher(Protocol):
    """Anything the orchestrator can hand an event to."""

    def publish(self, event: Event) -> None:  # pragma: no cover - interface
        """Deliver ``event`` to current observers without blocking."""


def now_millis() -> int:
    return int(time.time() * 1000)


def execution_update(
    execution_id: str,
    status: ExecutionStatus,
    *,
    current_agent: Optional[AgentType] = None,
    current_task: Optional[str] = None,
    error: Optional[str] = None,
) -> Event:
    payload: Dict[str, Any] = {"executionId": execution_id, "status": ExecutionStatus(status).value}
    if current_agent is not None:
        payload["currentAgent"] = AgentType(current_agent).value
    if current_task is not None:
        payload["currentTask"] = current_task
    if error is not None:
        payload["error"] = error
    payload["timestamp"] = now_millis()
    return {"type": EXECUTION_UPDATE, "payload": payload}


def task_update(task: Task) -> Event:
    return {"type": TASK_UPDATE, "payload": task.to_payload()}


def log_event(log: AgentLog) -> Event:
    return {"type": LOG, "payload": log.to_payload()}


def agent_performance(agent_type: AgentType, performance: AgentPerformance) -> Event:
    return {
        "type": AGENT_PERFORMANCE,
        "payload": {
            "agentType": AgentType(agent_type).value,
            "performance": performance.to_payload(),
        },
    }


class Broadcaster:
    """Fans events out to every subscribed queue.

    Each subscriber owns a bounded queue. ``publish`` never waits: a subscriber
    whose queue is full misses that event, and nothing is replayed for
    subscribers that join later.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subscribers: List[asyncio.Queue] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event: Event) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for a slow subscriber", event.get("type"))


class EventRecorder:
    """Publisher that keeps every event in memory, in emission order."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.events if event["type"] == event_type]
