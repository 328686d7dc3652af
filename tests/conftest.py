"""Shared pytest fixtures."""

from unittest.mock import AsyncMock

import pytest

from config.config_loader import AgentConfig, DebateConfig, SummarizationConfig
from dialectic.agent import Agent
from dialectic.judge import Judge
from dialectic.models import (
    CRITIQUE,
    PROPOSAL,
    REFINEMENT,
    Contribution,
    ContributionMetadata,
    DebateRound,
    ToolCall,
)
from dialectic.providers.base import CompletionRequest, CompletionResponse, CompletionUsage, LLMProvider


def text_response(text: str, tokens: int | None = 10) -> CompletionResponse:
    usage = CompletionUsage(total_tokens=tokens) if tokens is not None else None
    return CompletionResponse(text=text, usage=usage)


def tool_response(name: str, arguments: str = "{}", call_id: str = "call_1", text: str = "") -> CompletionResponse:
    return CompletionResponse(
        text=text,
        usage=CompletionUsage(total_tokens=5),
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)],
    )


class MockProvider(LLMProvider):
    """Test double LLMProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because complete is defined in the class body below.
        self.complete = AsyncMock(return_value=text_response(response_content))  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return text_response(self._response_content)


def make_agent_config(agent_id: str = "agent-a", role: str = "architect", **overrides) -> AgentConfig:
    fields = dict(
        id=agent_id,
        name=agent_id.replace("-", " ").title(),
        role=role,
        model="mock-model",
        provider="mock",
        temperature=0.5,
    )
    fields.update(overrides)
    return AgentConfig(**fields)


def make_agent(
    agent_id: str = "agent-a",
    role: str = "architect",
    provider: MockProvider | None = None,
    summary_config: SummarizationConfig | None = None,
    **config_overrides,
) -> Agent:
    return Agent(
        config=make_agent_config(agent_id, role, **config_overrides),
        provider=provider or MockProvider(agent_id, f"Response from {agent_id}"),
        system_prompt=None,
        summary_config=summary_config or SummarizationConfig(enabled=False),
    )


def make_contribution(
    agent_id: str,
    contribution_type: str = PROPOSAL,
    content: str = "content",
    role: str = "architect",
    target_agent_id: str | None = None,
    tokens: int | None = 10,
) -> Contribution:
    return Contribution(
        agent_id=agent_id,
        agent_role=role,
        type=contribution_type,
        content=content,
        metadata=ContributionMetadata(tokens_used=tokens, latency_ms=5, model="mock-model"),
        target_agent_id=target_agent_id,
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def debate_config() -> DebateConfig:
    return DebateConfig(
        rounds=1,
        timeout_per_round_sec=5,
        summarization=SummarizationConfig(enabled=False),
    )


@pytest.fixture
def judge_config() -> AgentConfig:
    return make_agent_config("judge-main", "generalist", temperature=0.3)


@pytest.fixture
def judge_provider() -> MockProvider:
    return MockProvider("judge", "## Final\nUse a token bucket.")


@pytest.fixture
def judge(judge_config: AgentConfig, judge_provider: MockProvider) -> Judge:
    return Judge(judge_config, judge_provider)


@pytest.fixture
def two_agents() -> list[Agent]:
    return [make_agent("agent-a", "architect"), make_agent("agent-b", "security")]


@pytest.fixture
def sample_round() -> DebateRound:
    return DebateRound(
        round_number=1,
        contributions=(
            make_contribution("agent-a", PROPOSAL, "Use a token bucket per client.", "architect"),
            make_contribution("agent-b", PROPOSAL, "Authenticate before rate limiting.", "security"),
            make_contribution("agent-a", CRITIQUE, "Auth adds latency.", "architect", target_agent_id="agent-b"),
            make_contribution("agent-b", CRITIQUE, "Buckets leak identity.", "security", target_agent_id="agent-a"),
            make_contribution("agent-a", REFINEMENT, "Token bucket keyed by API key.", "architect"),
            make_contribution("agent-b", REFINEMENT, "Auth at the edge, then limit.", "security"),
        ),
    )
