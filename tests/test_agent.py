import pytest

from agentflow.agents.base import AgentContext, HistoryEntry
from agentflow.agents.planner import PlanItem, PlannerAgent, parse_plan
from agentflow.agents.registry import AgentRegistry, build_default_registry
from agentflow.agents.specialists import AnalystAgent, CoderAgent, ExecutorAgent, ResearcherAgent
from agentflow.errors import PlanValidationError
from agentflow.llm.provider import StaticResponseProvider
from agentflow.states import AgentType

from tests.helpers import plan_reply, reply


def test_agent_initialization():
    provider = StaticResponseProvider([])
    agent = ExecutorAgent(provider)

    assert agent.name == "executor"
    assert agent.llm_provider is provider
    assert agent.get_tools() == ["api_call", "file_operation", "data_processing"]


def test_agent_tools_can_be_overridden():
    agent = ResearcherAgent(StaticResponseProvider([]), tools=["custom_search"])

    assert agent.get_tools() == ["custom_search"]


@pytest.mark.asyncio
async def test_planner_returns_ordered_plan():
    provider = StaticResponseProvider(
        [plan_reply(("researcher", "Collect sources"), ("coder", "Write the parser"))]
    )
    result = await PlannerAgent(provider).execute(AgentContext(goal="Build a scraper"))

    assert result.success
    assert [item.agent_type for item in result.result] == [AgentType.RESEARCHER, AgentType.CODER]
    assert result.result[0].description == "Collect sources"
    assert result.reasoning == "split the goal"
    assert "Build a scraper" in provider.calls[0]


@pytest.mark.asyncio
async def test_planner_accepts_empty_plan():
    provider = StaticResponseProvider([reply(reasoning="nothing to do", tasks=[])])
    result = await PlannerAgent(provider).execute(AgentContext(goal="Nothing"))

    assert result.success
    assert result.result == []


@pytest.mark.asyncio
async def test_planner_reports_malformed_json():
    provider = StaticResponseProvider(["this is not json"])
    result = await PlannerAgent(provider).execute(AgentContext(goal="Anything"))

    assert not result.success
    assert "Malformed JSON" in result.error
    assert result.reasoning == "Failed to create execution plan"


@pytest.mark.asyncio
async def test_planner_rejects_tasks_that_are_not_a_list():
    provider = StaticResponseProvider([reply(tasks="write code")])
    result = await PlannerAgent(provider).execute(AgentContext(goal="Anything"))

    assert not result.success
    assert result.error == "Invalid plan format: 'tasks' must be a list"


@pytest.mark.asyncio
async def test_planner_rejects_unknown_agent_type():
    provider = StaticResponseProvider([plan_reply(("planner", "Plan again"))])
    result = await PlannerAgent(provider).execute(AgentContext(goal="Anything"))

    assert not result.success
    assert "unknown agentType 'planner'" in result.error


def test_parse_plan_requires_description():
    with pytest.raises(PlanValidationError, match="task 1 requires a description"):
        parse_plan(
            {
                "tasks": [
                    {"description": "ok", "agentType": "executor"},
                    {"description": "  ", "agentType": "executor"},
                ]
            }
        )


def test_plan_item_keeps_dependencies():
    item = PlanItem.from_mapping(0, {"description": "Run", "agentType": "executor", "dependencies": [0]})

    assert item.dependencies == [0]
    assert item.to_dict() == {"description": "Run", "agentType": "executor", "dependencies": [0]}


@pytest.mark.asyncio
async def test_provider_error_becomes_failed_result():
    # an exhausted static provider raises on the first call
    result = await CoderAgent(StaticResponseProvider([])).execute(
        AgentContext(goal="g", current_task="Write code")
    )

    assert not result.success
    assert "exhausted" in result.error
    assert result.reasoning == "Failed to complete coding task"


@pytest.mark.asyncio
async def test_non_object_reply_is_a_failure():
    result = await ResearcherAgent(StaticResponseProvider(["[1, 2, 3]"])).execute(
        AgentContext(goal="g", current_task="Look around")
    )

    assert not result.success
    assert result.error == "Expected a JSON object response"


@pytest.mark.asyncio
async def test_executor_mirrors_reported_failure():
    provider = StaticResponseProvider([reply(success=False, error="API down", result=None)])
    result = await ExecutorAgent(provider).execute(AgentContext(goal="g", current_task="Call API"))

    assert not result.success
    assert result.error == "API down"
    assert result.tools_used == ["execution_engine"]


@pytest.mark.asyncio
async def test_executor_success_without_flag():
    provider = StaticResponseProvider([reply(result="200 OK")])
    result = await ExecutorAgent(provider).execute(AgentContext(goal="g", current_task="Call API"))

    assert result.success
    assert result.result == "200 OK"
    assert result.error is None


@pytest.mark.asyncio
async def test_researcher_result_shape():
    findings = [{"source": "docs", "data": "42", "relevance": "high"}]
    provider = StaticResponseProvider([reply(findings=findings, summary="Found it")])
    result = await ResearcherAgent(provider).execute(AgentContext(goal="g", current_task="Search"))

    assert result.result == {"findings": findings, "summary": "Found it"}
    assert result.tools_used == ["web_search", "analysis"]


@pytest.mark.asyncio
async def test_coder_defaults_language():
    provider = StaticResponseProvider([reply(code="print(1)", explanation="prints")])
    result = await CoderAgent(provider).execute(AgentContext(goal="g", current_task="Code"))

    assert result.result["language"] == "javascript"
    assert result.result["code"] == "print(1)"
    assert result.tools_used == ["code_generator", "code_executor"]


@pytest.mark.asyncio
async def test_analyst_prompt_contains_history():
    provider = StaticResponseProvider([reply(insights=[], conclusion="done")])
    context = AgentContext(
        goal="Summarise",
        history=[HistoryEntry(agent=AgentType.RESEARCHER, action="Search", result={"summary": "cats"})],
        current_task="Analyze all results and create final summary",
    )
    result = await AnalystAgent(provider).execute(context)

    prompt = provider.calls[0]
    assert "researcher" in prompt
    assert "cats" in prompt
    assert result.result["summary"] == "Analysis completed"
    assert result.tools_used == ["analysis_engine"]


def test_default_registry_has_every_agent_type():
    registry = build_default_registry(StaticResponseProvider([]))

    assert len(registry) == 5
    for agent_type in AgentType:
        assert agent_type in registry
    assert "unknown" not in registry


def test_registry_rejects_duplicates():
    registry = AgentRegistry()
    registry.register(CoderAgent(StaticResponseProvider([])))

    with pytest.raises(ValueError):
        registry.register(CoderAgent(StaticResponseProvider([])))
    registry.register(CoderAgent(StaticResponseProvider([])), overwrite=True)
    assert registry.get("executor") is None
    with pytest.raises(KeyError):
        registry.require(AgentType.EXECUTOR)
