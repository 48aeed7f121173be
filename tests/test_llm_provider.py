from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from openai import OpenAIError

from agentflow.llm.provider import OpenAIChatProvider, PromptContext


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.asyncio
async def test_chat_provider_requests_json_objects(monkeypatch):
    provider = OpenAIChatProvider("llama3", api_key="sk-test", max_tokens=512, options={"temperature": 0.1})
    create = AsyncMock(return_value=_completion('{"tasks": []}'))
    monkeypatch.setattr(provider.client.chat.completions, "create", create)

    reply = await provider.generate("Goal: ship", PromptContext(agent_name="planner", system_prompt="plan well"))

    assert reply == '{"tasks": []}'
    request = create.await_args.kwargs
    assert request["model"] == "llama3"
    assert request["response_format"] == {"type": "json_object"}
    assert request["max_completion_tokens"] == 512
    assert request["temperature"] == 0.1
    assert request["messages"] == [
        {"role": "system", "content": "plan well"},
        {"role": "user", "content": "Goal: ship"},
    ]


@pytest.mark.asyncio
async def test_chat_provider_wraps_client_errors(monkeypatch):
    provider = OpenAIChatProvider(api_key="sk-test")
    monkeypatch.setattr(provider.client.chat.completions, "create", AsyncMock(side_effect=OpenAIError("quota")))

    with pytest.raises(RuntimeError, match="LLM call failed for coder: quota"):
        await provider.generate("code", PromptContext(agent_name="coder", system_prompt=""))


@pytest.mark.asyncio
async def test_chat_provider_rejects_empty_choices(monkeypatch):
    provider = OpenAIChatProvider(api_key="sk-test")
    monkeypatch.setattr(
        provider.client.chat.completions, "create", AsyncMock(return_value=SimpleNamespace(choices=[]))
    )

    with pytest.raises(RuntimeError, match="no choices"):
        await provider.generate("x", PromptContext(agent_name="analyst", system_prompt=""))
