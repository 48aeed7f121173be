"""Planner agent: breaks a goal into an ordered list of agent-assigned tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from ..errors import PlanValidationError
from ..states import WORKER_TYPES, AgentType
from .base import AgentContext, AgentResult, BaseAgent

SYSTEM_PROMPT = """You are an elite Planner Agent responsible for breaking down complex goals into actionable subtasks.

Your responsibilities:
- Analyze the user's goal and understand the requirements
- Break down the goal into a sequence of concrete, achievable subtasks
- Assign each subtask to the most appropriate agent: executor, researcher, coder, or analyst
- Order the tasks so that each one can build on the results of the tasks before it

Output Format (JSON):
{
  "reasoning": "Brief explanation of your planning approach",
  "tasks": [
    {
      "description": "Clear, specific task description",
      "agentType": "executor | researcher | coder | analyst",
      "dependencies": []
    }
  ]
}

Available Agents:
- executor: Executes API calls, system tasks, and general operations
- researcher: Performs web searches, data gathering, and scraping
- coder: Writes, debugs, and executes code in various languages
- analyst: Processes data, generates insights, and creates summaries"""


@dataclass
class PlanItem:
    """One entry of a plan, before it becomes a persisted task."""

    description: str
    agent_type: AgentType
    dependencies: List[Any] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, index: int, data: Any) -> "PlanItem":
        if not isinstance(data, Mapping):
            raise PlanValidationError(f"task {index} must be an object")
        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            raise PlanValidationError(f"task {index} requires a description")
        agent_type = data.get("agentType")
        if agent_type not in {worker.value for worker in WORKER_TYPES}:
            raise PlanValidationError(f"task {index} has unknown agentType {agent_type!r}")
        dependencies = data.get("dependencies", [])
        if dependencies is None:
            dependencies = []
        if not isinstance(dependencies, list):
            raise PlanValidationError(f"task {index} dependencies must be a list")
        return cls(
            description=description.strip(),
            agent_type=AgentType(agent_type),
            dependencies=list(dependencies),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "agentType": self.agent_type.value,
            "dependencies": list(self.dependencies),
        }


def parse_plan(payload: Mapping[str, Any]) -> List[PlanItem]:
    """Validate a planner reply and return its tasks in order."""

    tasks = payload.get("tasks")
    if not isinstance(tasks, list):
        raise PlanValidationError("Invalid plan format: 'tasks' must be a list")
    try:
        return [PlanItem.from_mapping(index, item) for index, item in enumerate(tasks)]
    except PlanValidationError as exc:
        raise PlanValidationError(f"Invalid plan format: {exc}") from exc


class PlannerAgent(BaseAgent):
    agent_type = AgentType.PLANNER
    system_prompt = SYSTEM_PROMPT
    failure_reasoning = "Failed to create execution plan"

    def build_prompt(self, context: AgentContext) -> str:
        return (
            f"Goal: {context.goal}\n\n"
            "Create a detailed execution plan with specific tasks assigned to appropriate agents.\n"
            "Each task should be concrete and achievable by the assigned agent.\n\n"
            "Respond with valid JSON only."
        )

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:
        plan = parse_plan(payload)
        return AgentResult(
            success=True,
            result=plan,
            reasoning=payload.get("reasoning") or "Created execution plan",
        )
