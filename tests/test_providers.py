"""Tests for provider message conversion and response parsing. No network calls."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ProviderConfig
from dialectic.models import ToolCall
from dialectic.providers.anthropic import to_anthropic_messages, to_anthropic_tools
from dialectic.providers.base import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_TOOL,
    ROLE_USER,
    ChatMessage,
    CompletionRequest,
    ProviderError,
    request_messages,
)
from dialectic.providers.gemini import GeminiProvider, to_gemini_contents, to_gemini_tools
from dialectic.providers.openai_provider import OpenAIProvider, to_openai_messages, to_openai_tools
from dialectic.providers.openrouter import OpenRouterProvider
from dialectic.tools.context_search import ContextSearchTool


@pytest.fixture
def tool_conversation() -> list[ChatMessage]:
    call = ToolCall(id="call_1", name="context_search", arguments='{"term": "cache"}')
    return [
        ChatMessage(role=ROLE_SYSTEM, content="You are an architect."),
        ChatMessage(role=ROLE_USER, content="Design a cache."),
        ChatMessage(role=ROLE_ASSISTANT, content="", tool_calls=[call]),
        ChatMessage(role=ROLE_TOOL, content='{"status": "success"}', tool_call_id="call_1", name="context_search"),
    ]


@pytest.fixture
def openai_config(monkeypatch) -> ProviderConfig:
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    return ProviderConfig(name="openai", sdk="openai", api_key_env="TEST_OPENAI_KEY", timeout_sec=5)


def test_request_messages_built_from_prompts():
    request = CompletionRequest(model="m", temperature=0.5, system_prompt="sys", user_prompt="user")
    assert [(m.role, m.content) for m in request_messages(request)] == [("system", "sys"), ("user", "user")]


def test_openai_message_conversion(tool_conversation):
    converted = to_openai_messages(tool_conversation)
    assert converted[0] == {"role": "system", "content": "You are an architect."}
    assert converted[2]["content"] is None
    assert converted[2]["tool_calls"][0]["function"] == {"name": "context_search", "arguments": '{"term": "cache"}'}
    assert converted[3] == {"role": "tool", "tool_call_id": "call_1", "content": '{"status": "success"}'}


def test_openai_tool_schema_wrapping():
    [tool] = to_openai_tools([ContextSearchTool.schema])
    assert tool["type"] == "function"
    assert tool["function"]["name"] == "context_search"


def test_anthropic_message_conversion(tool_conversation):
    system, messages = to_anthropic_messages(tool_conversation)
    assert system == "You are an architect."
    assert messages[0] == {"role": "user", "content": "Design a cache."}
    assert messages[1]["content"][0] == {
        "type": "tool_use", "id": "call_1", "name": "context_search", "input": {"term": "cache"},
    }
    assert messages[2]["content"][0]["type"] == "tool_result"


def test_anthropic_consecutive_tool_results_share_one_turn(tool_conversation):
    extra = ChatMessage(role=ROLE_TOOL, content="{}", tool_call_id="call_2", name="file_read")
    _, messages = to_anthropic_messages([*tool_conversation, extra])
    assert len(messages) == 3
    assert [b["tool_use_id"] for b in messages[2]["content"]] == ["call_1", "call_2"]


def test_anthropic_tool_schema():
    [tool] = to_anthropic_tools([ContextSearchTool.schema])
    assert tool["input_schema"]["required"] == ["term"]


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("TEST_MISSING_KEY", raising=False)
    config = ProviderConfig(name="openai", sdk="openai", api_key_env="TEST_MISSING_KEY")
    with pytest.raises(ProviderError, match="Missing API key"):
        OpenAIProvider(config)


def _openai_response(content, tool_calls=None, total_tokens=42):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    usage = SimpleNamespace(prompt_tokens=30, completion_tokens=12, total_tokens=total_tokens)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


async def test_openai_complete_parses_text_and_usage(openai_config):
    provider = OpenAIProvider(openai_config)
    create = AsyncMock(return_value=_openai_response("Use Redis."))
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    response = await provider.complete(CompletionRequest(
        model="gpt-4o", temperature=0.4, system_prompt="sys", user_prompt="user", tools=[ContextSearchTool.schema],
    ))

    assert response.text == "Use Redis."
    assert response.usage.total_tokens == 42
    kwargs = create.await_args.kwargs
    assert kwargs["temperature"] == 0.4
    assert kwargs["max_tokens"] == 4096
    assert kwargs["tools"][0]["function"]["name"] == "context_search"


async def test_openai_complete_parses_tool_calls(openai_config):
    provider = OpenAIProvider(openai_config)
    call = SimpleNamespace(id="call_9", function=SimpleNamespace(name="file_read", arguments='{"path": "a.md"}'))
    create = AsyncMock(return_value=_openai_response(None, tool_calls=[call]))
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    response = await provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))

    assert response.text == ""
    assert response.tool_calls == [ToolCall(id="call_9", name="file_read", arguments='{"path": "a.md"}')]


async def test_openai_api_failure_wrapped(openai_config):
    provider = OpenAIProvider(openai_config)
    create = AsyncMock(side_effect=RuntimeError("503"))
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    with pytest.raises(ProviderError, match="API call failed: 503"):
        await provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))


async def test_openai_empty_response_raises(openai_config):
    provider = OpenAIProvider(openai_config)
    create = AsyncMock(return_value=_openai_response(""))
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    with pytest.raises(ProviderError, match="Empty response content"):
        await provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))


def test_openrouter_defaults_base_url(monkeypatch):
    monkeypatch.setenv("TEST_OPENROUTER_KEY", "sk-or-test")
    provider = OpenRouterProvider(ProviderConfig(name="openrouter", sdk="openrouter", api_key_env="TEST_OPENROUTER_KEY"))
    assert str(provider._client.base_url).startswith("https://openrouter.ai/api/v1")
    assert provider.name() == "openrouter"


# --- Gemini ---

@pytest.fixture
def gemini_provider(monkeypatch) -> GeminiProvider:
    monkeypatch.setenv("TEST_GEMINI_KEY", "gm-test")
    return GeminiProvider(ProviderConfig(name="gemini", sdk="gemini", api_key_env="TEST_GEMINI_KEY", timeout_sec=5))


def _two_call_conversation() -> list[ChatMessage]:
    calls = [
        ToolCall(id="call_1", name="context_search", arguments='{"term": "cache"}'),
        ToolCall(id="call_2", name="file_read", arguments='{"path": "a.md"}'),
    ]
    return [
        ChatMessage(role=ROLE_SYSTEM, content="You are an architect."),
        ChatMessage(role=ROLE_USER, content="Design a cache."),
        ChatMessage(role=ROLE_ASSISTANT, content="", tool_calls=calls),
        ChatMessage(role=ROLE_TOOL, content='{"status": "success"}', tool_call_id="call_1", name="context_search"),
        ChatMessage(role=ROLE_TOOL, content="not json", tool_call_id="call_2", name="file_read"),
    ]


def test_gemini_consecutive_tool_results_share_one_turn():
    system, contents = to_gemini_contents(_two_call_conversation())

    assert system == "You are an architect."
    assert [(c.role, len(c.parts)) for c in contents] == [("user", 1), ("model", 2), ("user", 2)]
    responses = [p.function_response for p in contents[2].parts]
    assert [r.name for r in responses] == ["context_search", "file_read"]
    assert responses[0].response == {"result": {"status": "success"}}
    assert responses[1].response == {"result": "not json"}


def test_gemini_function_call_args_decoded(tool_conversation):
    _, contents = to_gemini_contents(tool_conversation)
    call = contents[1].parts[0].function_call
    assert call.name == "context_search"
    assert call.args == {"term": "cache"}


def test_gemini_tool_declarations():
    [tool] = to_gemini_tools([ContextSearchTool.schema])
    [declaration] = tool.function_declarations
    assert declaration.name == "context_search"
    assert declaration.parameters_json_schema["required"] == ["term"]


def _gemini_response(parts, usage=True):
    usage_metadata = (
        SimpleNamespace(prompt_token_count=20, candidates_token_count=5, total_token_count=25) if usage else None
    )
    candidate = SimpleNamespace(content=SimpleNamespace(parts=parts))
    return SimpleNamespace(candidates=[candidate] if parts is not None else [], usage_metadata=usage_metadata)


def _mock_gemini_client(provider: GeminiProvider, generate: AsyncMock) -> None:
    provider._client = SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate)))


async def test_gemini_complete_parses_text_and_usage(gemini_provider):
    generate = AsyncMock(return_value=_gemini_response([
        SimpleNamespace(text="Use ", function_call=None),
        SimpleNamespace(text="Redis.", function_call=None),
    ]))
    _mock_gemini_client(gemini_provider, generate)

    response = await gemini_provider.complete(CompletionRequest(
        model="gemini-2.5-pro", temperature=0.4, system_prompt="sys", user_prompt="user",
        tools=[ContextSearchTool.schema],
    ))

    assert response.text == "Use Redis."
    assert response.tool_calls == []
    assert (response.usage.input_tokens, response.usage.output_tokens, response.usage.total_tokens) == (20, 5, 25)
    kwargs = generate.await_args.kwargs
    assert kwargs["model"] == "gemini-2.5-pro"
    assert kwargs["config"].system_instruction == "sys"
    assert kwargs["config"].temperature == 0.4
    assert kwargs["config"].tools[0].function_declarations[0].name == "context_search"


async def test_gemini_complete_parses_tool_calls(gemini_provider):
    generate = AsyncMock(return_value=_gemini_response([
        SimpleNamespace(text=None, function_call=SimpleNamespace(id="fc-1", name="file_read", args={"path": "a.md"})),
        SimpleNamespace(text=None, function_call=SimpleNamespace(id=None, name="list_files", args=None)),
    ], usage=False))
    _mock_gemini_client(gemini_provider, generate)

    response = await gemini_provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))

    assert response.text == ""
    assert response.usage is None
    assert response.tool_calls[0] == ToolCall(id="fc-1", name="file_read", arguments='{"path": "a.md"}')
    assert response.tool_calls[1].id.startswith("call_")
    assert response.tool_calls[1].arguments == "{}"


async def test_gemini_api_failure_wrapped(gemini_provider):
    _mock_gemini_client(gemini_provider, AsyncMock(side_effect=RuntimeError("429 quota")))

    with pytest.raises(ProviderError, match=r"\[gemini\] API call failed: 429 quota"):
        await gemini_provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))


async def test_gemini_empty_response_raises(gemini_provider):
    _mock_gemini_client(gemini_provider, AsyncMock(return_value=_gemini_response(None)))

    with pytest.raises(ProviderError, match="Empty response text"):
        await gemini_provider.complete(CompletionRequest(model="m", temperature=0.5, system_prompt="s", user_prompt="u"))
