"""Final synthesis: serialize every round's contributions and ask the judge model for one solution."""

import logging

from config.config_loader import AgentConfig, SummarizationConfig
from dialectic.models import PROPOSAL, REFINEMENT, DebateRound, DebateSummary, Solution
from dialectic.prompts import JUDGE_SYNTHESIS_INSTRUCTIONS, JUDGE_SYSTEM_PROMPT, judge_summary_prompt
from dialectic.providers.base import CompletionRequest, LLMProvider, ProviderError
from dialectic.summarizer import ContextSummarizer, LengthBasedSummarizer

logger = logging.getLogger(__name__)

DEFAULT_JUDGE_TEMPERATURE = 0.3
DEFAULT_CONFIDENCE = 75


def format_transcript(rounds: list[DebateRound]) -> str:
    """Every contribution of every round, labelled ``[role] type:``."""
    parts: list[str] = []
    for rnd in rounds:
        parts.append(f"Round {rnd.round_number}:")
        for c in rnd.contributions:
            parts.append(f"[{c.agent_role}] {c.type}:\n{c.content}")
        parts.append("")  # blank line between rounds
    return "\n\n".join(parts).strip()


def final_round_content(rounds: list[DebateRound]) -> str:
    """Proposals and refinements of the last round, which is what the judge summarizes."""
    if not rounds:
        return ""
    return "\n\n".join(
        f"[{c.agent_role}] {c.type}:\n{c.content}"
        for c in rounds[-1].contributions
        if c.type in (PROPOSAL, REFINEMENT)
    )


class Judge:
    def __init__(
        self,
        config: AgentConfig,
        provider: LLMProvider,
        system_prompt: str | None = None,
        summary_config: SummarizationConfig | None = None,
        summarizer: ContextSummarizer | None = None,
        summary_prompt: str | None = None,
    ) -> None:
        self.config = config
        self._provider = provider
        self.system_prompt = system_prompt or JUDGE_SYSTEM_PROMPT
        self.summary_config = summary_config or SummarizationConfig(enabled=False)
        self.summarizer = summarizer or LengthBasedSummarizer(provider, config.model)
        self.summary_prompt = summary_prompt

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def role(self) -> str:
        return self.config.role

    # --- Summarization ---

    def should_summarize(self, rounds: list[DebateRound]) -> bool:
        """True when summarization is on and the final round's proposals and refinements reach the threshold."""
        if not self.summary_config.enabled or not rounds:
            return False
        return len(final_round_content(rounds)) >= self.summary_config.threshold

    async def prepare_context(self, rounds: list[DebateRound]) -> DebateSummary | None:
        """Summarize the final round for the record, or return None when below threshold.

        A failed summarizer call is logged and yields None; synthesis does not depend on it.
        """
        if not self.should_summarize(rounds):
            return None

        content = final_round_content(rounds)
        if self.summary_prompt:
            prompt = f"{self.summary_prompt.strip()}\n\n{content}"
        else:
            prompt = judge_summary_prompt(content, self.summary_config.max_length)

        try:
            result = await self.summarizer.summarize(
                content, self.role, self.summary_config, self.system_prompt, prompt,
            )
        except Exception as exc:
            logger.warning("Judge %s summarization failed, continuing without summary: %s", self.id, exc)
            return None

        logger.info(
            "Judge %s summarized final round: %d -> %d chars",
            self.id, result.metadata.before_chars, result.metadata.after_chars,
        )
        return DebateSummary(
            agent_id=self.id,
            agent_role=self.role,
            summary=result.summary,
            metadata=result.metadata,
        )

    # --- Synthesis ---

    def build_synthesis_prompt(self, problem: str, rounds: list[DebateRound]) -> str:
        return (
            f"Problem:\n{problem}\n\n"
            f"{format_transcript(rounds)}\n\n"
            f"{JUDGE_SYNTHESIS_INSTRUCTIONS}\n"
        )

    async def synthesize(self, problem: str, rounds: list[DebateRound]) -> Solution:
        """Call the judge model once and wrap its text as the Solution.

        Does not touch debate state; calling it twice on the same input
        sends the same request twice.

        Raises:
            ProviderError: If the provider fails or returns no text.
        """
        temperature = self.config.temperature if self.config.temperature is not None else DEFAULT_JUDGE_TEMPERATURE
        logger.info("Running synthesis via %s (%s)", self.config.id, self.config.model)

        response = await self._provider.complete(CompletionRequest(
            model=self.config.model,
            temperature=temperature,
            system_prompt=self.system_prompt,
            user_prompt=self.build_synthesis_prompt(problem, rounds),
        ))
        if not response.text.strip():
            raise ProviderError(self._provider.name(), f"Judge {self.config.id} returned empty content")

        return Solution(
            description=response.text,
            synthesized_by=self.config.id,
            tradeoffs=[],
            recommendations=[],
            confidence=DEFAULT_CONFIDENCE,
        )
