"""FastAPI server exposing executions over REST and live updates over a websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket
from fastapi.websockets import WebSocketState
from pydantic import BaseModel, field_validator

from ..agents.orchestrator import Orchestrator
from ..bootstrap import build_orchestrator
from ..config import Settings
from ..events import Broadcaster
from ..store.base import Execution

logger = logging.getLogger(__name__)


class ExecutionRequest(BaseModel):
    goal: str
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("goal")
    @classmethod
    def goal_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("goal must not be empty")
        return value.strip()


def _orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def _spawn_execution(app: FastAPI, execution: Execution) -> None:
    running: Set[asyncio.Task] = app.state.running

    def finished(task: asyncio.Task) -> None:
        running.discard(task)
        if task.cancelled():
            logger.warning("Execution %s was cancelled", execution.id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Execution %s failed: %s", execution.id, exc)

    task = asyncio.create_task(app.state.orchestrator.execute_goal(execution.id, execution.goal))
    running.add(task)
    task.add_done_callback(finished)


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_text(json.dumps(event, default=str))


async def _drain(app: FastAPI) -> None:
    running = list(app.state.running)
    if running:
        logger.info("Waiting for %d running execution(s) before shutdown", len(running))
        await asyncio.gather(*running, return_exceptions=True)


def _build(setup: Optional[Callable[[FastAPI], Awaitable[None]]] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if setup is not None:
            await setup(app)
        yield
        await _drain(app)

    app = FastAPI(title="agentflow", lifespan=lifespan)
    app.state.running = set()

    @app.post("/api/executions")
    async def create_execution(payload: ExecutionRequest, request: Request) -> Dict[str, Any]:
        store = _orchestrator(request).store
        execution = await store.create_execution(payload.goal, metadata=payload.metadata)
        _spawn_execution(request.app, execution)
        return execution.to_payload()

    @app.get("/api/executions")
    async def list_executions(
        request: Request, limit: int = Query(50, ge=1, le=500)
    ) -> List[Dict[str, Any]]:
        executions = await _orchestrator(request).store.list_executions(limit)
        return [execution.to_payload() for execution in executions]

    @app.get("/api/executions/{execution_id}")
    async def get_execution(execution_id: str, request: Request) -> Dict[str, Any]:
        execution = await _orchestrator(request).store.get_execution(execution_id)
        if execution is None:
            raise HTTPException(status_code=404, detail="Execution not found")
        return execution.to_payload()

    @app.get("/api/executions/{execution_id}/tasks")
    async def list_tasks(execution_id: str, request: Request) -> List[Dict[str, Any]]:
        tasks = await _orchestrator(request).store.list_tasks(execution_id)
        return [task.to_payload() for task in tasks]

    @app.get("/api/executions/{execution_id}/logs")
    async def list_logs(execution_id: str, request: Request) -> List[Dict[str, Any]]:
        logs = await _orchestrator(request).store.list_logs(execution_id)
        return [log.to_payload() for log in logs]

    @app.get("/api/analytics")
    async def analytics(request: Request) -> Dict[str, Any]:
        result = await _orchestrator(request).store.get_analytics()
        return result.to_payload()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        broadcaster: Broadcaster = websocket.app.state.broadcaster
        queue = broadcaster.subscribe()
        sender: Optional[asyncio.Task] = None
        try:
            await websocket.accept()
            logger.debug("Websocket client connected (%d subscribers)", broadcaster.subscriber_count)
            sender = asyncio.create_task(_forward_events(websocket, queue))
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            if sender is not None:
                sender.cancel()
                with suppress(asyncio.CancelledError, Exception):
                    await sender
            broadcaster.unsubscribe(queue)
            if websocket.client_state != WebSocketState.DISCONNECTED:
                with suppress(RuntimeError):
                    await websocket.close()
            logger.debug("Websocket client disconnected")

    return app


def create_app(orchestrator: Orchestrator, broadcaster: Broadcaster) -> FastAPI:
    """App around an already constructed orchestrator (tests, embedding)."""

    app = _build()
    app.state.orchestrator = orchestrator
    app.state.broadcaster = broadcaster
    return app


def create_app_from_settings(settings: Settings) -> FastAPI:
    """App that builds its orchestrator and store when the server starts."""

    broadcaster = Broadcaster(queue_size=settings.broadcast.queue_size)

    async def setup(app: FastAPI) -> None:
        app.state.orchestrator = await build_orchestrator(settings, broadcaster)

    app = _build(setup)
    app.state.broadcaster = broadcaster
    return app
