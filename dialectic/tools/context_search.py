"""context_search: find a term in the debate history visible to the calling agent."""

from typing import Any

from dialectic.context import DebateContext
from dialectic.tools.base import ToolImplementation, tool_error_json, tool_success_json

_SNIPPET_CHARS = 200


class ContextSearchTool(ToolImplementation):
    name = "context_search"
    schema = {
        "name": "context_search",
        "description": (
            "Search for a term in the debate history. "
            "Returns relevant contributions containing the search term."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "term": {"type": "string", "description": "The search term to find in debate history"},
            },
            "required": ["term"],
        },
    }

    def execute(self, args: dict[str, Any], context: DebateContext | None = None) -> str:
        if context is None:
            return tool_error_json("Context is required for context search")
        term = args.get("term")
        if not isinstance(term, str) or not term:
            return tool_error_json("Search term is required and must be a string")

        needle = term.lower()
        matches = []
        for rnd in context.history:
            for c in rnd.contributions:
                if needle not in c.content.lower():
                    continue
                snippet = c.content[:_SNIPPET_CHARS]
                if len(c.content) > _SNIPPET_CHARS:
                    snippet += "..."
                matches.append({
                    "roundNumber": rnd.round_number,
                    "agentId": c.agent_id,
                    "agentRole": c.agent_role,
                    "type": c.type,
                    "contentSnippet": snippet,
                })
        return tool_success_json({"matches": matches})
