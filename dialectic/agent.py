"""Role-based debate agent: phase prompts, the tool-calling loop and context preparation."""

import json
import logging
import re
import time
from dataclasses import replace

from config.config_loader import AgentConfig, SummarizationConfig
from dialectic.context import ContextPreparationResult, DebateContext
from dialectic.models import (
    PROPOSAL,
    REFINEMENT,
    AgentResponse,
    ClarificationItem,
    Contribution,
    ContributionMetadata,
    DebateSummary,
    PromptSource,
    ToolCall,
    ToolResult,
)
from dialectic.prompts import get_prompts_for_role
from dialectic.providers.base import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_TOOL,
    ROLE_USER,
    ChatMessage,
    CompletionRequest,
    LLMProvider,
)
from dialectic.summarizer import ContextSummarizer, LengthBasedSummarizer
from dialectic.tools.base import ToolRegistry, tool_error_json

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _strip_code_fences(text: str) -> str:
    match = _CODE_FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_clarifying_questions(text: str) -> list[str]:
    """Extract question texts from ``{"questions": [{"text": ...}]}``.

    Returns an empty list if the text is not parseable in that shape.
    """
    try:
        data = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        return []
    questions: list[str] = []
    for item in data["questions"]:
        raw = item.get("text") if isinstance(item, dict) else item
        if isinstance(raw, str) and raw.strip():
            questions.append(raw.strip())
    return questions


def format_critiques(critiques: list[Contribution]) -> str:
    return "\n\n".join(f"[{c.agent_role}] critique:\n{c.content}" for c in critiques)


class Agent:
    """A debate participant bound to one role, one model and one provider.

    Every phase method builds the role's prompt and delegates to ``call_llm``.
    Provider errors propagate; tool errors never do.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: LLMProvider,
        system_prompt: str | None,
        summary_config: SummarizationConfig,
        summarizer: ContextSummarizer | None = None,
        tool_registry: ToolRegistry | None = None,
        summary_prompt: str | None = None,
        clarification_prompt: str | None = None,
        prompt_source: PromptSource | None = None,
        summary_prompt_source: PromptSource | None = None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._role_prompts = get_prompts_for_role(config.role)
        self.system_prompt = system_prompt or self._role_prompts.system_prompt
        self.summary_config = config.summarization or summary_config
        self.summarizer = summarizer or LengthBasedSummarizer(provider, config.model)
        self.tool_registry = tool_registry or ToolRegistry()
        self.summary_prompt = summary_prompt
        self.clarification_prompt = clarification_prompt
        self.prompt_source = prompt_source
        self.summary_prompt_source = summary_prompt_source

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def id(self) -> str:
        return self._config.id

    @property
    def role(self) -> str:
        return self._config.role

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    # --- Phases ---

    async def propose(self, problem: str, context: DebateContext | None = None) -> AgentResponse:
        prompt = self._role_prompts.propose_prompt(problem, context)
        return await self.call_llm(self.system_prompt, prompt, context)

    async def critique(self, proposal: Contribution, context: DebateContext | None = None) -> AgentResponse:
        prompt = self._role_prompts.critique_prompt(proposal.content, context)
        return await self.call_llm(self.system_prompt, prompt, context)

    async def refine(
        self,
        original: Contribution,
        critiques: list[Contribution],
        context: DebateContext | None = None,
    ) -> AgentResponse:
        prompt = self._role_prompts.refine_prompt(original.content, format_critiques(critiques), context)
        return await self.call_llm(self.system_prompt, prompt, context)

    async def ask_clarifying_questions(
        self, problem: str, context: DebateContext | None = None
    ) -> list[ClarificationItem]:
        """Ask the model which questions it needs answered. Ids are ``q1..qN``.

        Unparseable output yields no questions and a warning.
        """
        if self.clarification_prompt:
            prompt = f"{self.clarification_prompt.strip()}\n\nProblem to clarify:\n{problem}\n"
        else:
            prompt = self._role_prompts.clarify_prompt(problem, context)
        response = await self.call_llm(self.system_prompt, prompt, context)
        questions = parse_clarifying_questions(response.content)
        if not questions and response.content.strip():
            logger.warning("Agent %s returned unparseable clarifying questions, treating as none", self.id)
        return [ClarificationItem(id=f"q{i}", question=q) for i, q in enumerate(questions, start=1)]

    # --- Tool-calling loop ---

    async def call_llm(
        self, system_prompt: str, user_prompt: str, context: DebateContext | None = None
    ) -> AgentResponse:
        """Call the provider, running requested tools until it stops asking or the limit is hit.

        One iteration is a provider response that requested tools whose
        results were then appended. At ``tool_call_limit`` iterations the
        last text is returned as-is.

        Raises:
            ProviderError: If any provider call fails.
        """
        messages = [
            ChatMessage(role=ROLE_SYSTEM, content=system_prompt),
            ChatMessage(role=ROLE_USER, content=user_prompt),
        ]
        schemas = self.tool_registry.get_all_schemas() or None
        limit = self._config.tool_call_limit
        tool_calls: list[ToolCall] = []
        tool_results: list[ToolResult] = []
        iterations = 0
        tokens: int | None = None
        start = time.monotonic()

        while True:
            response = await self._provider.complete(CompletionRequest(
                model=self._config.model,
                temperature=self._config.temperature,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                tools=schemas,
                messages=list(messages),
            ))
            if response.usage and response.usage.total_tokens is not None:
                tokens = (tokens or 0) + response.usage.total_tokens
            text = response.text

            if not response.tool_calls:
                break

            iterations += 1
            messages.append(ChatMessage(role=ROLE_ASSISTANT, content=text, tool_calls=list(response.tool_calls)))
            for call in response.tool_calls:
                result = self._execute_tool(call, context)
                tool_calls.append(call)
                tool_results.append(result)
                messages.append(ChatMessage(
                    role=ROLE_TOOL, content=result.content, tool_call_id=call.id, name=call.name,
                ))

            if iterations >= limit:
                logger.warning(
                    "Agent %s reached tool call limit (%d), returning last response", self.id, limit,
                )
                break

        return AgentResponse(
            content=text,
            metadata=ContributionMetadata(
                tokens_used=tokens,
                latency_ms=int((time.monotonic() - start) * 1000),
                model=self._config.model,
                tool_calls=tool_calls,
                tool_results=tool_results,
                tool_call_iterations=iterations,
            ),
        )

    def _execute_tool(self, call: ToolCall, context: DebateContext | None) -> ToolResult:
        tool = self.tool_registry.get(call.name)
        if tool is None:
            logger.warning("Agent %s requested unknown tool %r", self.id, call.name)
            return ToolResult(tool_call_id=call.id, content=tool_error_json(f"Tool not found: {call.name}"))
        try:
            content = tool.invoke(call.arguments, context)
        except Exception as exc:
            logger.warning("Tool %s failed for agent %s: %s", call.name, self.id, exc)
            content = tool_error_json(f"Tool execution failed: {exc}")
        return ToolResult(tool_call_id=call.id, content=content)

    # --- Context preparation ---

    def _own_history(self, context: DebateContext) -> list[tuple[int, Contribution]]:
        return [
            (rnd.round_number, c)
            for rnd in context.history
            for c in rnd.contributions
            if c.agent_id == self.id and c.type in (PROPOSAL, REFINEMENT)
        ]

    def should_summarize(self, context: DebateContext) -> bool:
        """True when summarization is on and this agent's own history exceeds the threshold."""
        if not self.summary_config.enabled or not context.history:
            return False
        own_chars = sum(len(c.content) for _, c in self._own_history(context))
        return own_chars > self.summary_config.threshold

    async def prepare_context(self, context: DebateContext, round_number: int) -> ContextPreparationResult:
        """Return the context unchanged, or a copy carrying this agent's summary.

        Raises:
            ProviderError: If summarization was needed and failed.
        """
        if not self.should_summarize(context):
            return ContextPreparationResult(context=context)

        content = "\n\n".join(
            f"Round {rnd_no} {c.type}:\n{c.content}" for rnd_no, c in self._own_history(context)
        )
        if self.summary_prompt:
            summary_prompt = f"{self.summary_prompt.strip()}\n\n{content}"
        else:
            summary_prompt = self._role_prompts.summarize_prompt(content, self.summary_config.max_length)

        result = await self.summarizer.summarize(
            content, self.role, self.summary_config, self.system_prompt, summary_prompt,
        )
        logger.info(
            "Agent %s summarized history for round %d: %d -> %d chars",
            self.id, round_number, result.metadata.before_chars, result.metadata.after_chars,
        )
        summary = DebateSummary(
            agent_id=self.id, agent_role=self.role, summary=result.summary, metadata=result.metadata,
        )
        return ContextPreparationResult(
            context=replace(context, summary=result.summary, summary_round=round_number),
            summary=summary,
        )
