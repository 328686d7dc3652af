"""Tool implementation base class, result helpers and the per-agent tool registry."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from dialectic.context import DebateContext

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def tool_success_json(result: Any) -> str:
    return json.dumps({"status": STATUS_SUCCESS, "result": result})


def tool_error_json(message: str) -> str:
    return json.dumps({"status": STATUS_ERROR, "error": message})


class ToolImplementation(ABC):
    """A synchronous tool the model may call by name.

    Subclasses define ``name``, ``schema`` (OpenAI function format:
    name, description, JSON-schema parameters) and ``execute``.
    """

    name: str
    schema: dict[str, Any]

    def invoke(self, arguments: str, context: DebateContext | None = None) -> str:
        """Parse the JSON arguments and execute. Always returns a status JSON string."""
        try:
            args = json.loads(arguments) if arguments and arguments.strip() else {}
        except json.JSONDecodeError as exc:
            return tool_error_json(f"Invalid JSON arguments: {exc}")
        if not isinstance(args, dict):
            return tool_error_json("Tool arguments must be a JSON object")
        return self.execute(args, context)

    @abstractmethod
    def execute(self, args: dict[str, Any], context: DebateContext | None = None) -> str:
        ...


class ToolRegistry:
    """Name → tool lookup. Registering an existing name replaces it."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolImplementation] = {}

    def register(self, tool: ToolImplementation) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolImplementation | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def has_tools(self) -> bool:
        return bool(self._tools)

    def get_all_schemas(self) -> list[dict[str, Any]]:
        return [tool.schema for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)
