"""Exception types shared across the orchestrator, store and configuration."""

from __future__ import annotations


class AgentflowError(RuntimeError):
    """Base class for errors raised by agentflow."""


class ConfigError(AgentflowError):
    """Raised when configuration files are invalid."""


class RecordNotFoundError(AgentflowError):
    """Raised when a store update targets a record that does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidTransitionError(AgentflowError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        super().__init__(f"Invalid {kind} transition {current} -> {target}")
        self.kind = kind
        self.current = current
        self.target = target


class PlanningError(AgentflowError):
    """The planner agent failed to produce a usable plan."""


class AnalysisError(AgentflowError):
    """The analyst agent failed to produce the final summary."""


class PlanValidationError(AgentflowError):
    """Planner output did not match the expected task list structure."""
