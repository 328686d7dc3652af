"""Anthropic Claude provider using anthropic SDK with native async and tool use."""

import asyncio
import json
import logging
import os
import time
from typing import Any

import anthropic as anthropic_sdk

from config.config_loader import ProviderConfig
from dialectic.models import ToolCall
from dialectic.providers.base import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
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


def to_anthropic_messages(messages: list[ChatMessage]) -> tuple[str, list[dict[str, Any]]]:
    """Split out the system prompt and convert the rest to Anthropic message blocks.

    Consecutive tool results are merged into a single user turn, as the
    Messages API requires.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == ROLE_SYSTEM:
            system_parts.append(msg.content)
        elif msg.role == ROLE_TOOL:
            block = {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
            last = converted[-1] if converted else None
            if last and last["role"] == "user" and isinstance(last["content"], list):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif msg.role == ROLE_ASSISTANT and msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                try:
                    tool_input = json.loads(call.arguments or "{}")
                except json.JSONDecodeError:
                    tool_input = {}
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": tool_input})
            converted.append({"role": "assistant", "content": blocks})
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return "\n\n".join(system_parts), converted


def to_anthropic_tools(schemas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {"name": s["name"], "description": s.get("description", ""), "input_schema": s["parameters"]}
        for s in schemas
    ]


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        system, messages = to_anthropic_messages(request_messages(request))
        kwargs: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or self._config.max_tokens,
            "temperature": request.temperature,
            "system": system,
            "messages": messages,
        }
        if request.tools:
            kwargs["tools"] = to_anthropic_tools(request.tools)

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**kwargs),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        tool_calls = [
            ToolCall(id=b.id, name=b.name, arguments=json.dumps(b.input))
            for b in response.content
            if b.type == "tool_use"
        ]
        if not text_blocks and not tool_calls:
            raise ProviderError(self._config.name, "No text or tool_use blocks in response")

        usage: CompletionUsage | None = None
        if response.usage:
            usage = CompletionUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.debug(
            "Anthropic %s: %.2fs, %s tokens, %d tool calls",
            request.model,
            latency,
            usage.total_tokens if usage else None,
            len(tool_calls),
        )

        return CompletionResponse(text="\n".join(text_blocks), usage=usage, tool_calls=tool_calls)
