"""Command line interface for agentflow."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import typer
import uvicorn
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from . import events
from .agents.registry import build_default_registry
from .bootstrap import build_orchestrator, create_provider, open_store
from .config import ConfigError, Settings
from .events import EventRecorder
from .log import configure_logging
from .states import ExecutionStatus
from .store.base import Execution, Task
from .web.server import create_app_from_settings

app = typer.Typer(help="Multi-agent goal orchestrator")
console = Console()

STATUS_STYLE = {
    "pending": "[yellow]pending",
    "running": "[cyan]running...",
    "completed": "[green]completed",
    "failed": "[red]failed",
    "cancelled": "[magenta]cancelled",
}

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration")


def _load_settings(config_path: Optional[Path]) -> Settings:
    try:
        return Settings.load(config_path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/] {exc}")
        raise typer.Exit(code=2) from exc


class ProgressPublisher:
    """Mirrors task events onto a rich progress display and records every event."""

    def __init__(self, progress: Progress) -> None:
        self.progress = progress
        self.recorder = EventRecorder()
        self._rows: Dict[str, TaskID] = {}

    def publish(self, event: events.Event) -> None:
        self.recorder.publish(event)
        payload = event["payload"]
        if event["type"] == events.TASK_UPDATE:
            status = STATUS_STYLE.get(payload["status"], payload["status"])
            row = self._rows.get(payload["id"])
            if row is None:
                label = f"{payload['order']}. [{payload['agentType']}] {payload['description']}"
                self._rows[payload["id"]] = self.progress.add_task(label, status=status, total=None)
            else:
                self.progress.update(row, status=status)
        elif event["type"] == events.EXECUTION_UPDATE and payload.get("error"):
            self.progress.console.print(f"[red]Execution failed:[/] {payload['error']}")


def _render_tasks(tasks: List[Task]) -> None:
    table = Table(title="Tasks", show_lines=True)
    table.add_column("#")
    table.add_column("Agent")
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Error")
    for task in tasks:
        table.add_row(
            str(task.order),
            task.agent_type.value,
            task.description,
            STATUS_STYLE.get(task.status.value, task.status.value),
            task.error or "",
        )
    console.print(table)


async def _run_goal(settings: Settings, goal: str, publisher: ProgressPublisher) -> Tuple[Execution, List[Task]]:
    orchestrator = await build_orchestrator(settings, publisher)
    execution = await orchestrator.store.create_execution(goal)
    try:
        execution = await orchestrator.execute_goal(execution.id, goal)
    except Exception:
        execution = await orchestrator.store.get_execution(execution.id) or execution
    tasks = await orchestrator.store.list_tasks(execution.id)
    return execution, tasks


@app.command()
def run(
    goal: str = typer.Argument(..., help="Free-text goal to accomplish"),
    config_path: Optional[Path] = ConfigOption,
    events_path: Optional[Path] = typer.Option(
        None, "--events", help="Write every broadcast event to this JSON lines file"
    ),
) -> None:
    """Plan and execute GOAL in-process, printing progress as tasks run."""

    settings = _load_settings(config_path)
    configure_logging(settings.log_level)
    console.print(f"[bold green]Goal[/] {goal}")
    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.fields[status]}"),
        console=console,
        transient=False,
    )
    publisher = ProgressPublisher(progress)
    with progress:
        execution, tasks = asyncio.run(_run_goal(settings, goal, publisher))

    _render_tasks(tasks)
    if events_path is not None:
        lines = [json.dumps(event, default=str) for event in publisher.recorder.events]
        events_path.write_text("\n".join(lines) + "\n")
        console.print(f"Wrote {len(lines)} events to {events_path}")

    if execution.status != ExecutionStatus.COMPLETED:
        console.print(f"[bold red]Execution {execution.status.value}:[/] {execution.error or ''}")
        raise typer.Exit(code=1)
    console.rule("Result")
    console.print_json(json.dumps(execution.result, default=str))


@app.command()
def serve(
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to config)"),
    port: Optional[int] = typer.Option(None, help="Port (defaults to config)"),
) -> None:
    """Start the HTTP + websocket server."""

    settings = _load_settings(config_path)
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app_from_settings(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_config=None,
    )


@app.command()
def inspect(config_path: Optional[Path] = ConfigOption) -> None:
    """Print the configured provider and the agents with their tools."""

    settings = _load_settings(config_path)
    registry = build_default_registry(create_provider(settings))
    console.print(f"[bold]Provider:[/] {settings.llm.provider} (model={settings.llm.model})")
    console.print(f"[bold]Store:[/] {'postgres' if settings.database_url else 'in-memory'}")
    console.print("[bold]Agents[/]")
    for agent in registry:
        console.print(f"- {agent.name}: tools={agent.get_tools()}")


@app.command()
def analytics(config_path: Optional[Path] = ConfigOption) -> None:
    """Print aggregate execution and agent statistics from the configured store."""

    settings = _load_settings(config_path)

    async def collect():
        store = await open_store(settings)
        return await store.get_analytics()

    result = asyncio.run(collect())
    console.print(
        f"Executions: {result.total_executions} "
        f"([green]{result.successful_executions} completed[/], [red]{result.failed_executions} failed[/]), "
        f"avg {result.avg_execution_time} ms"
    )
    table = Table(title="Agent performance")
    table.add_column("Agent")
    table.add_column("Tasks completed")
    table.add_column("Success rate")
    table.add_column("Avg duration (ms)")
    for agent_type, perf in sorted(result.agent_performance.items()):
        table.add_row(agent_type, str(perf.tasks_completed), f"{perf.success_rate:.1f}%", str(perf.avg_duration))
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
