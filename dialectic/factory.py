"""Wire configuration into live providers, agents and the judge, resolving prompt files."""

import logging
from pathlib import Path

from config.config_loader import AgentConfig, AppConfig, ConfigError
from dialectic.agent import Agent
from dialectic.judge import Judge
from dialectic.models import SOURCE_BUILT_IN, SOURCE_FILE, AgentPromptMetadata, PromptSource, PromptSources
from dialectic.prompts import JUDGE_SYSTEM_PROMPT, get_prompts_for_role
from dialectic.providers.anthropic import AnthropicProvider
from dialectic.providers.base import LLMProvider
from dialectic.providers.gemini import GeminiProvider
from dialectic.providers.openai_provider import OpenAIProvider
from dialectic.providers.openrouter import OpenRouterProvider
from dialectic.summarizer import LengthBasedSummarizer
from dialectic.tools.registry_builder import build_tool_registry
from dialectic.tracing import Tracer, TracingAgent

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "openrouter": OpenRouterProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def resolve_prompt(
    label: str, config_dir: Path, prompt_path: str | None, default_text: str | None
) -> tuple[str | None, PromptSource]:
    """Read a prompt file relative to the config directory.

    A missing, unreadable or empty file falls back to ``default_text`` with a warning.
    """
    if not prompt_path:
        return default_text, PromptSource(source=SOURCE_BUILT_IN)

    path = Path(prompt_path)
    if not path.is_absolute():
        path = config_dir / path
    try:
        text = path.read_text(encoding="utf-8").strip() if path.is_file() else ""
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("%s: cannot read prompt file %s (%s), using built-in prompt", label, path, exc)
        return default_text, PromptSource(source=SOURCE_BUILT_IN)
    if not text:
        logger.warning("%s: prompt file %s is missing or empty, using built-in prompt", label, path)
        return default_text, PromptSource(source=SOURCE_BUILT_IN)
    return text, PromptSource(source=SOURCE_FILE, path=str(path.resolve()))


def build_providers(config: AppConfig, needed: set[str]) -> dict[str, LLMProvider]:
    """Instantiate the named providers. Ones that fail to construct are logged and left out."""
    providers: dict[str, LLMProvider] = {}
    for name in sorted(needed):
        provider_cfg = config.providers[name]
        provider_cls = PROVIDER_CLASSES.get(provider_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, provider_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(provider_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def build_agent(
    agent_cfg: AgentConfig,
    provider: LLMProvider,
    config: AppConfig,
    tool_base_dir: Path | None = None,
) -> Agent:
    role_prompts = get_prompts_for_role(agent_cfg.role)
    label = f"Agent {agent_cfg.id}"
    system_prompt, system_source = resolve_prompt(
        label, config.config_dir, agent_cfg.system_prompt_path, role_prompts.system_prompt,
    )
    summary_prompt, summary_source = resolve_prompt(label, config.config_dir, agent_cfg.summary_prompt_path, None)
    clarification_prompt, _ = resolve_prompt(label, config.config_dir, agent_cfg.clarification_prompt_path, None)
    return Agent(
        config=agent_cfg,
        provider=provider,
        system_prompt=system_prompt,
        summary_config=config.debate.summarization,
        summarizer=LengthBasedSummarizer(provider, agent_cfg.model),
        tool_registry=build_tool_registry(agent_cfg, tool_base_dir),
        summary_prompt=summary_prompt,
        clarification_prompt=clarification_prompt,
        prompt_source=system_source,
        summary_prompt_source=summary_source,
    )


def build_agents(
    config: AppConfig,
    providers: dict[str, LLMProvider],
    tracer: Tracer | None = None,
    tool_base_dir: Path | None = None,
) -> list[Agent]:
    """One Agent per enabled config entry whose provider is available, in declared order."""
    agents: list[Agent] = []
    for agent_cfg in config.enabled_agents:
        provider = providers.get(agent_cfg.provider)
        if provider is None:
            logger.warning("Agent %s skipped: provider '%s' unavailable", agent_cfg.id, agent_cfg.provider)
            continue
        agent = build_agent(agent_cfg, provider, config, tool_base_dir)
        agents.append(TracingAgent(agent, tracer) if tracer is not None else agent)
    if not agents:
        raise ConfigError("No agents could be built. Check API keys in .env.")
    return agents


def build_judge(config: AppConfig, providers: dict[str, LLMProvider]) -> tuple[Judge, PromptSource]:
    judge_cfg = config.judge
    provider = providers.get(judge_cfg.provider)
    if provider is None:
        raise ConfigError(f"Judge provider '{judge_cfg.provider}' unavailable. Check API keys in .env.")
    label = f"Judge {judge_cfg.id}"
    system_prompt, source = resolve_prompt(label, config.config_dir, judge_cfg.system_prompt_path, JUDGE_SYSTEM_PROMPT)
    summary_prompt, _ = resolve_prompt(label, config.config_dir, judge_cfg.summary_prompt_path, None)
    judge = Judge(
        judge_cfg,
        provider,
        system_prompt,
        summary_config=config.debate.summarization,
        summarizer=LengthBasedSummarizer(provider, judge_cfg.model),
        summary_prompt=summary_prompt,
    )
    return judge, source


def collect_prompt_sources(agents: list[Agent], judge_source: PromptSource) -> PromptSources:
    return PromptSources(
        agents=[
            AgentPromptMetadata(
                agent_id=a.id,
                role=a.role,
                system_prompt=a.prompt_source or PromptSource(source=SOURCE_BUILT_IN),
                summary_prompt=a.summary_prompt_source,
            )
            for a in agents
        ],
        judge=judge_source,
    )
