"""Load settings.yaml into typed dataclasses. Validates debate parameters at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

AGENT_ROLES = ("architect", "performance", "security", "testing", "generalist", "kiss", "data-modeling")
TERMINATION_TYPES = ("fixed", "convergence", "quality")
SYNTHESIS_METHODS = ("judge", "voting", "merge")
SUMMARIZATION_METHODS = ("length-based",)

DEFAULT_TOOL_CALL_LIMIT = 10
DEFAULT_CLARIFICATIONS_MAX_PER_AGENT = 5


class ConfigError(Exception):
    """Raised for invalid configuration. Fatal, never retried."""


@dataclass
class SummarizationConfig:
    enabled: bool = True
    threshold: int = 5000       # characters of an agent's own history before summarizing
    max_length: int = 2500      # summary is truncated to this many characters
    method: str = "length-based"


@dataclass
class ProviderConfig:
    name: str
    sdk: str                    # "openai", "openrouter", "anthropic", "gemini"
    api_key_env: str
    timeout_sec: int = 120
    max_tokens: int = 4096
    base_url: str | None = None


@dataclass
class AgentConfig:
    id: str
    name: str
    role: str
    model: str
    provider: str
    temperature: float = 0.5
    system_prompt_path: str | None = None
    summary_prompt_path: str | None = None
    clarification_prompt_path: str | None = None
    tools: list[str] = field(default_factory=list)
    tool_call_limit: int = DEFAULT_TOOL_CALL_LIMIT
    summarization: SummarizationConfig | None = None  # per-agent override
    enabled: bool = True


@dataclass
class TerminationCondition:
    type: str = "fixed"
    threshold: float | None = None


@dataclass
class DebateConfig:
    rounds: int = 3
    termination: TerminationCondition = field(default_factory=TerminationCondition)
    synthesis_method: str = "judge"
    include_full_history: bool = True
    timeout_per_round_sec: float = 300.0
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    clarifications_max_per_agent: int = DEFAULT_CLARIFICATIONS_MAX_PER_AGENT
    interactive_clarifications: bool = False

    def validate(self) -> None:
        if self.rounds < 1:
            raise ConfigError(f"rounds must be >= 1, got {self.rounds}")
        if self.termination.type not in TERMINATION_TYPES:
            raise ConfigError(f"Unknown termination type: {self.termination.type}")
        if self.synthesis_method not in SYNTHESIS_METHODS:
            raise ConfigError(f"Unknown synthesis method: {self.synthesis_method}")
        if self.timeout_per_round_sec <= 0:
            raise ConfigError(f"timeout_per_round_sec must be > 0, got {self.timeout_per_round_sec}")
        if self.clarifications_max_per_agent < 0:
            raise ConfigError("clarifications_max_per_agent must be >= 0")


@dataclass
class AppConfig:
    agents: list[AgentConfig]
    judge: AgentConfig
    debate: DebateConfig
    providers: dict[str, ProviderConfig]
    output_dir: Path
    config_dir: Path
    available_providers: set[str] = field(default_factory=set)

    @property
    def enabled_agents(self) -> list[AgentConfig]:
        return [a for a in self.agents if a.enabled]


def _load_summarization(
    raw: dict[str, Any] | None, base: SummarizationConfig | None = None
) -> SummarizationConfig:
    base = base or SummarizationConfig()
    raw = raw or {}
    cfg = SummarizationConfig(
        enabled=bool(raw.get("enabled", base.enabled)),
        threshold=int(raw.get("threshold", base.threshold)),
        max_length=int(raw.get("max_length", base.max_length)),
        method=str(raw.get("method", base.method)),
    )
    if cfg.method not in SUMMARIZATION_METHODS:
        raise ConfigError(f"Unknown summarization method: {cfg.method}")
    if cfg.threshold < 0 or cfg.max_length <= 0:
        raise ConfigError("summarization threshold must be >= 0 and max_length > 0")
    return cfg


def _load_agent(raw: dict[str, Any], debate_summary: SummarizationConfig) -> AgentConfig:
    try:
        agent_id = str(raw["id"])
        role = str(raw["role"])
        model = str(raw["model"])
        provider = str(raw["provider"])
    except KeyError as exc:
        raise ConfigError(f"Agent entry missing required key {exc}: {raw}") from exc

    if role not in AGENT_ROLES:
        raise ConfigError(f"Agent {agent_id}: unknown role {role!r} (expected one of {', '.join(AGENT_ROLES)})")

    tool_call_limit = int(raw.get("tool_call_limit", DEFAULT_TOOL_CALL_LIMIT))
    if tool_call_limit < 1:
        raise ConfigError(f"Agent {agent_id}: tool_call_limit must be >= 1")

    override = raw.get("summarization")
    return AgentConfig(
        id=agent_id,
        name=str(raw.get("name", agent_id)),
        role=role,
        model=model,
        provider=provider,
        temperature=float(raw.get("temperature", 0.5)),
        system_prompt_path=raw.get("system_prompt_path"),
        summary_prompt_path=raw.get("summary_prompt_path"),
        clarification_prompt_path=raw.get("clarification_prompt_path"),
        tools=[str(t) for t in raw.get("tools", [])],
        tool_call_limit=tool_call_limit,
        summarization=_load_summarization(override, debate_summary) if override else None,
        enabled=bool(raw.get("enabled", True)),
    )


def _load_judge(raw: dict[str, Any] | None) -> AgentConfig:
    if not raw:
        raise ConfigError("Missing 'judge' section")
    try:
        return AgentConfig(
            id=str(raw.get("id", "judge")),
            name=str(raw.get("name", "Judge")),
            role="generalist",
            model=str(raw["model"]),
            provider=str(raw["provider"]),
            temperature=float(raw.get("temperature", 0.3)),
            system_prompt_path=raw.get("system_prompt_path"),
            summary_prompt_path=raw.get("summary_prompt_path"),
        )
    except KeyError as exc:
        raise ConfigError(f"Judge entry missing required key {exc}") from exc


def load_debate_config(raw: dict[str, Any] | None) -> DebateConfig:
    raw = raw or {}
    termination_raw = raw.get("termination", {}) or {}
    debate = DebateConfig(
        rounds=int(raw.get("rounds", 3)),
        termination=TerminationCondition(
            type=str(termination_raw.get("type", "fixed")),
            threshold=termination_raw.get("threshold"),
        ),
        synthesis_method=str(raw.get("synthesis_method", "judge")),
        include_full_history=bool(raw.get("include_full_history", True)),
        timeout_per_round_sec=float(raw.get("timeout_per_round_sec", 300)),
        summarization=_load_summarization(raw.get("summarization")),
        clarifications_max_per_agent=int(
            raw.get("clarifications_max_per_agent", DEFAULT_CLARIFICATIONS_MAX_PER_AGENT)
        ),
        interactive_clarifications=bool(raw.get("interactive_clarifications", False)),
    )
    debate.validate()
    return debate


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from a settings.yaml file.

    Raises FileNotFoundError if the settings file is missing and ConfigError
    for invalid content. Missing API keys are only logged; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    debate = load_debate_config(raw.get("debate"))

    agents_raw = raw.get("agents") or []
    agents = [_load_agent(a, debate.summarization) for a in agents_raw]
    if not any(a.enabled for a in agents):
        raise ConfigError("At least one enabled agent is required")
    seen: set[str] = set()
    for agent in agents:
        if agent.id in seen:
            raise ConfigError(f"Duplicate agent id: {agent.id}")
        seen.add(agent.id)

    judge = _load_judge(raw.get("judge"))

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()
    for provider_name, provider_raw in (raw.get("providers") or {}).items():
        providers[provider_name] = ProviderConfig(
            name=provider_name,
            sdk=str(provider_raw.get("sdk", provider_name)),
            api_key_env=str(provider_raw["api_key_env"]),
            timeout_sec=int(provider_raw.get("timeout_sec", 120)),
            max_tokens=int(provider_raw.get("max_tokens", 4096)),
            base_url=provider_raw.get("base_url"),
        )
        if os.environ.get(provider_raw["api_key_env"], "").strip():
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                provider_raw["api_key_env"],
            )

    for agent in [*agents, judge]:
        if agent.provider not in providers:
            raise ConfigError(f"{agent.id}: provider {agent.provider!r} is not defined under 'providers'")

    defaults_raw = raw.get("defaults") or {}
    config_dir = settings_path.resolve().parent

    return AppConfig(
        agents=agents,
        judge=judge,
        debate=debate,
        providers=providers,
        output_dir=Path(defaults_raw.get("output_dir", "./debates")),
        config_dir=config_dir,
        available_providers=available_providers,
    )
