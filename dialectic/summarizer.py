"""Context summarization: condense an agent's own debate history into a bounded summary."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from config.config_loader import SummarizationConfig
from dialectic.models import SummarizationMetadata, utcnow
from dialectic.providers.base import CompletionRequest, LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_TEMPERATURE = 0.3
METHOD_LENGTH_BASED = "length-based"


@dataclass
class SummarizationResult:
    summary: str
    metadata: SummarizationMetadata


class ContextSummarizer(ABC):
    """Strategy for turning debate history into a summary."""

    @abstractmethod
    async def summarize(
        self,
        content: str,
        role: str,
        config: SummarizationConfig,
        system_prompt: str,
        summary_prompt: str,
    ) -> SummarizationResult:
        ...


class LengthBasedSummarizer(ContextSummarizer):
    """Ask the model for a summary, then hard-truncate it to ``config.max_length``."""

    def __init__(
        self,
        provider: LLMProvider,
        model: str,
        temperature: float = DEFAULT_SUMMARY_TEMPERATURE,
    ) -> None:
        self._provider = provider
        self._model = model
        self._temperature = temperature

    async def summarize(
        self,
        content: str,
        role: str,
        config: SummarizationConfig,
        system_prompt: str,
        summary_prompt: str,
    ) -> SummarizationResult:
        """Summarize ``content`` for ``role``.

        Raises:
            ProviderError: If the underlying provider call fails.
        """
        start = time.monotonic()
        response = await self._provider.complete(CompletionRequest(
            model=self._model,
            temperature=self._temperature,
            system_prompt=system_prompt,
            user_prompt=summary_prompt,
        ))
        latency_ms = int((time.monotonic() - start) * 1000)

        summary = response.text.strip()
        if len(summary) > config.max_length:
            logger.debug("Truncating %s summary from %d to %d chars", role, len(summary), config.max_length)
            summary = summary[:config.max_length]

        metadata = SummarizationMetadata(
            before_chars=len(content),
            after_chars=len(summary),
            method=METHOD_LENGTH_BASED,
            timestamp=utcnow(),
            latency_ms=latency_ms,
            tokens_used=response.usage.total_tokens if response.usage else None,
            model=self._model,
            temperature=self._temperature,
        )
        return SummarizationResult(summary=summary, metadata=metadata)
