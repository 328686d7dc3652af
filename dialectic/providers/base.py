"""Abstract base for all LLM providers, plus the request/response shapes they share."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from dialectic.models import ToolCall

# Chat message roles for tool calling
ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


@dataclass
class ChatMessage:
    role: str
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)  # assistant messages only
    tool_call_id: str | None = None                           # tool messages only
    name: str | None = None                                   # tool name, for tool messages


@dataclass
class CompletionRequest:
    model: str
    temperature: float
    system_prompt: str
    user_prompt: str
    tools: list[dict[str, Any]] | None = None   # tool schemas: {name, description, parameters}
    messages: list[ChatMessage] | None = None   # takes precedence over system/user prompt when set
    max_tokens: int | None = None


@dataclass
class CompletionUsage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class CompletionResponse:
    text: str
    usage: CompletionUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


def request_messages(request: CompletionRequest) -> list[ChatMessage]:
    """Return the conversation for a request, building it from the prompts when absent."""
    if request.messages:
        return request.messages
    return [
        ChatMessage(role=ROLE_SYSTEM, content=request.system_prompt),
        ChatMessage(role=ROLE_USER, content=request.user_prompt),
    ]


class LLMProvider(ABC):
    """Abstract base for all LLM providers. Must be safe to call concurrently."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'anthropic')."""
        ...

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run one completion.

        Args:
            request: Model, temperature, prompts, optional tool schemas and
                optional full message list.

        Returns:
            CompletionResponse with text, optional usage and any tool calls
            the model requested.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
