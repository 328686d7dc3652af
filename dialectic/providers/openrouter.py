"""OpenRouter provider using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from dialectic.providers.openai_provider import OpenAIProvider

_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter provider via OpenAI-compatible API. base_url defaults to the public endpoint."""

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url or _DEFAULT_BASE_URL)
