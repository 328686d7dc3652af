"""OpenAI provider using openai SDK with native async and function calling."""

import asyncio
import logging
import os
import time
from typing import Any

from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from dialectic.models import ToolCall
from dialectic.providers.base import (
    ROLE_ASSISTANT,
    ROLE_TOOL,
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    CompletionUsage,
    LLMProvider,
    ProviderError,
    request_messages,
)

logger = logging.getLogger(__name__)


def to_openai_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert chat messages to the OpenAI chat.completions wire format."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == ROLE_TOOL:
            converted.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content})
        elif msg.role == ROLE_ASSISTANT and msg.tool_calls:
            converted.append({
                "role": "assistant",
                "content": msg.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in msg.tool_calls
                ],
            })
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return converted


def to_openai_tools(schemas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{"type": "function", "function": schema} for schema in schemas]


class OpenAIProvider(LLMProvider):
    """OpenAI provider via openai SDK."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._build_client(api_key)

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        if self._config.base_url:
            return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
        return AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": to_openai_messages(request_messages(request)),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens or self._config.max_tokens,
        }
        if request.tools:
            kwargs["tools"] = to_openai_tools(request.tools)

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if choice is None:
            raise ProviderError(self._config.name, "Empty response choices")

        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (choice.message.tool_calls or [])
        ]
        text = choice.message.content or ""
        if not text and not tool_calls:
            raise ProviderError(self._config.name, "Empty response content")

        usage: CompletionUsage | None = None
        if response.usage:
            usage = CompletionUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.debug(
            "%s %s: %.2fs, %s tokens, %d tool calls",
            self._config.name,
            request.model,
            latency,
            usage.total_tokens if usage else None,
            len(tool_calls),
        )

        return CompletionResponse(text=text, usage=usage, tool_calls=tool_calls)
