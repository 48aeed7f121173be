"""Worker agents that carry out planned tasks and the final analysis."""

from __future__ import annotations

from typing import Any, Dict

from ..states import AgentType
from .base import AgentContext, AgentResult, BaseAgent, format_history


def _task_prompt(heading: str, context: AgentContext, instructions: str) -> str:
    parts = [f"{heading}: {context.current_task}", f"Goal Context: {context.goal}"]
    if context.history:
        parts.append(f"Previous Task Results:\n{format_history(context.history)}")
    if context.available_tools:
        parts.append(f"Available tools: {', '.join(context.available_tools)}")
    parts.append(instructions)
    parts.append("Respond with valid JSON only.")
    return "\n\n".join(parts)


class ExecutorAgent(BaseAgent):
    agent_type = AgentType.EXECUTOR
    default_tools = ("api_call", "file_operation", "data_processing")
    failure_reasoning = "Failed to execute task"
    system_prompt = """You are an elite Executor Agent responsible for performing general operations and API calls.

Your responsibilities:
- Execute system tasks and operations
- Make API calls and handle responses
- Process and transform data
- Perform file operations

Output Format (JSON):
{
  "reasoning": "Explanation of approach and execution",
  "result": "The result of the task execution",
  "success": true
}"""

    def build_prompt(self, context: AgentContext) -> str:
        return _task_prompt(
            "Task",
            context,
            "Execute this task and provide the result. If you cannot actually execute it in this "
            "environment, simulate a reasonable response that demonstrates what the execution would produce.",
        )

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:
        success = payload.get("success") is not False
        return AgentResult(
            success=success,
            result=payload.get("result"),
            error=None if success else str(payload.get("error") or "Executor reported failure"),
            reasoning=payload.get("reasoning") or "Task executed",
            tools_used=["execution_engine"],
        )


class ResearcherAgent(BaseAgent):
    agent_type = AgentType.RESEARCHER
    default_tools = ("web_search", "data_scraping")
    failure_reasoning = "Failed to complete research"
    system_prompt = """You are an elite Researcher Agent responsible for gathering information through web searches and data analysis.

Output Format (JSON):
{
  "reasoning": "Research approach and methodology",
  "findings": [
    {"source": "Information source", "data": "Key findings", "relevance": "How this relates to the task"}
  ],
  "summary": "Comprehensive summary of research"
}"""

    def build_prompt(self, context: AgentContext) -> str:
        return _task_prompt(
            "Research Task",
            context,
            "Conduct comprehensive research on this topic. If live web search is unavailable, "
            "provide realistic findings that would help achieve the goal.",
        )

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:
        return AgentResult(
            success=True,
            result={
                "findings": payload.get("findings") or [],
                "summary": payload.get("summary") or "Research completed",
            },
            reasoning=payload.get("reasoning") or "Research conducted",
            tools_used=["web_search", "analysis"],
        )


class CoderAgent(BaseAgent):
    agent_type = AgentType.CODER
    default_tools = ("code_execution", "debugging")
    failure_reasoning = "Failed to complete coding task"
    system_prompt = """You are an elite Coder Agent responsible for writing, debugging, and executing code.

Output Format (JSON):
{
  "reasoning": "Approach and code design decisions",
  "code": "The actual code written",
  "language": "Programming language used",
  "execution_result": "Result of code execution (if applicable)",
  "explanation": "Brief explanation of the code"
}"""

    def build_prompt(self, context: AgentContext) -> str:
        return _task_prompt(
            "Coding Task",
            context,
            "Write code to accomplish this task. Provide clean, production-quality code with "
            "explanations. If execution is required, include the expected output.",
        )

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:
        return AgentResult(
            success=True,
            result={
                "code": payload.get("code"),
                "language": payload.get("language") or "javascript",
                "execution_result": payload.get("execution_result"),
                "explanation": payload.get("explanation"),
            },
            reasoning=payload.get("reasoning") or "Code written and tested",
            tools_used=["code_generator", "code_executor"],
        )


class AnalystAgent(BaseAgent):
    agent_type = AgentType.ANALYST
    default_tools = ("data_analysis", "insight_generation")
    failure_reasoning = "Failed to complete analysis"
    system_prompt = """You are an elite Analyst Agent responsible for processing data, generating insights, and creating comprehensive summaries.

Output Format (JSON):
{
  "reasoning": "Analysis methodology and approach",
  "insights": [
    {"finding": "Key insight discovered", "significance": "Why this matters", "recommendation": "Suggested action"}
  ],
  "summary": "Executive summary of analysis",
  "conclusion": "Final conclusions and recommendations"
}"""

    def build_prompt(self, context: AgentContext) -> str:
        return _task_prompt(
            "Analysis Task",
            context,
            "Analyze all available information and provide comprehensive insights, patterns, and recommendations.",
        )

    def interpret(self, payload: Dict[str, Any], context: AgentContext) -> AgentResult:
        return AgentResult(
            success=True,
            result={
                "insights": payload.get("insights") or [],
                "summary": payload.get("summary") or "Analysis completed",
                "conclusion": payload.get("conclusion") or "",
            },
            reasoning=payload.get("reasoning") or "Analysis performed",
            tools_used=["analysis_engine"],
        )
