"""Build each agent's independent tool registry from its configured tool names."""

import logging
from collections.abc import Callable
from pathlib import Path

from config.config_loader import AgentConfig
from dialectic.tools.base import ToolImplementation, ToolRegistry
from dialectic.tools.context_search import ContextSearchTool
from dialectic.tools.filesystem import FileReadTool, ListFilesTool

logger = logging.getLogger(__name__)

AVAILABLE_TOOLS: dict[str, Callable[[Path | None], ToolImplementation]] = {
    "context_search": lambda base_dir: ContextSearchTool(),
    "file_read": lambda base_dir: FileReadTool(base_dir),
    "list_files": lambda base_dir: ListFilesTool(base_dir),
}


def build_tool_registry(agent_config: AgentConfig, base_dir: Path | None = None) -> ToolRegistry:
    """Register the agent's configured tools. Unknown or empty names are skipped with a warning."""
    registry = ToolRegistry()
    for tool_name in agent_config.tools:
        if not tool_name.strip():
            logger.warning("Invalid tool name (empty string) configured for agent %s, skipping", agent_config.id)
            continue
        factory = AVAILABLE_TOOLS.get(tool_name)
        if factory is None:
            logger.warning("Unknown tool %r configured for agent %s, skipping", tool_name, agent_config.id)
            continue
        registry.register(factory(base_dir))
    return registry
