"""Gemini provider using google-genai SDK with native async and function calling."""

import asyncio
import json
import logging
import os
import time
import uuid
from typing import Any

from google import genai
from google.genai import types as genai_types

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


def _loads_or_raw(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def to_gemini_contents(messages: list[ChatMessage]) -> tuple[str, list[genai_types.Content]]:
    """Split out the system instruction and convert the rest to Gemini contents."""
    system_parts: list[str] = []
    contents: list[genai_types.Content] = []
    for msg in messages:
        if msg.role == ROLE_SYSTEM:
            system_parts.append(msg.content)
        elif msg.role == ROLE_TOOL:
            part = genai_types.Part.from_function_response(
                name=msg.name or "tool",
                response={"result": _loads_or_raw(msg.content)},
            )
            # results of one assistant turn share a single user turn
            last = contents[-1] if contents else None
            if last is not None and last.role == "user" and last.parts and all(p.function_response for p in last.parts):
                last.parts.append(part)
            else:
                contents.append(genai_types.Content(role="user", parts=[part]))
        elif msg.role == ROLE_ASSISTANT:
            parts: list[genai_types.Part] = []
            if msg.content:
                parts.append(genai_types.Part(text=msg.content))
            for call in msg.tool_calls:
                args = _loads_or_raw(call.arguments or "{}")
                parts.append(genai_types.Part.from_function_call(
                    name=call.name,
                    args=args if isinstance(args, dict) else {},
                ))
            contents.append(genai_types.Content(role="model", parts=parts))
        else:
            contents.append(genai_types.Content(role="user", parts=[genai_types.Part(text=msg.content)]))
    return "\n\n".join(system_parts), contents


def to_gemini_tools(schemas: list[dict[str, Any]]) -> list[genai_types.Tool]:
    declarations = [
        genai_types.FunctionDeclaration(
            name=s["name"],
            description=s.get("description", ""),
            parameters_json_schema=s["parameters"],
        )
        for s in schemas
    ]
    return [genai_types.Tool(function_declarations=declarations)]


class GeminiProvider(LLMProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        system, contents = to_gemini_contents(request_messages(request))
        gen_config = genai_types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=request.temperature,
            max_output_tokens=request.max_tokens or self._config.max_tokens,
            tools=to_gemini_tools(request.tools) if request.tools else None,
        )

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=request.model,
                    contents=contents,
                    config=gen_config,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        candidate = response.candidates[0] if response.candidates else None
        parts = candidate.content.parts if candidate and candidate.content and candidate.content.parts else []
        text = "".join(p.text for p in parts if p.text)
        tool_calls = [
            ToolCall(
                id=p.function_call.id or f"call_{uuid.uuid4().hex[:8]}",
                name=p.function_call.name,
                arguments=json.dumps(p.function_call.args or {}),
            )
            for p in parts
            if p.function_call
        ]
        if not text and not tool_calls:
            raise ProviderError(self._config.name, "Empty response text")

        usage: CompletionUsage | None = None
        if response.usage_metadata:
            usage = CompletionUsage(
                input_tokens=response.usage_metadata.prompt_token_count,
                output_tokens=response.usage_metadata.candidates_token_count,
                total_tokens=response.usage_metadata.total_token_count,
            )

        logger.debug(
            "Gemini %s: %.2fs, %s tokens, %d tool calls",
            request.model,
            latency,
            usage.total_tokens if usage else None,
            len(tool_calls),
        )

        return CompletionResponse(text=text, usage=usage, tool_calls=tool_calls)
