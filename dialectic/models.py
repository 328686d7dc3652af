"""Dataclasses for debate state, contributions and results. No I/O."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Contribution types, in phase order
PROPOSAL = "proposal"
CRITIQUE = "critique"
REFINEMENT = "refinement"
PHASES = (PROPOSAL, CRITIQUE, REFINEMENT)

# Debate status values
STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    STATUS_PENDING: {STATUS_RUNNING, STATUS_FAILED},
    STATUS_RUNNING: {STATUS_COMPLETED, STATUS_FAILED},
    STATUS_COMPLETED: set(),
    STATUS_FAILED: set(),
}

# Prompt provenance
SOURCE_BUILT_IN = "built-in"
SOURCE_FILE = "file"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat()


def _parse_dt(value: str | None) -> datetime:
    return datetime.fromisoformat(value) if value else utcnow()


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON string as requested by the model

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolCall":
        return cls(id=raw["id"], name=raw["name"], arguments=raw.get("arguments", "{}"))


@dataclass
class ToolResult:
    tool_call_id: str
    content: str  # JSON: {"status": "success", "result": ...} or {"status": "error", "error": ...}
    role: str = "tool"

    def to_dict(self) -> dict[str, Any]:
        return {"tool_call_id": self.tool_call_id, "role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ToolResult":
        return cls(tool_call_id=raw["tool_call_id"], content=raw["content"], role=raw.get("role", "tool"))


@dataclass
class ContributionMetadata:
    tokens_used: int | None = None
    latency_ms: int | None = None
    model: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    tool_call_iterations: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tokensUsed": self.tokens_used,
            "latencyMs": self.latency_ms,
            "model": self.model,
        }
        if self.tool_calls:
            data["toolCalls"] = [c.to_dict() for c in self.tool_calls]
            data["toolResults"] = [r.to_dict() for r in self.tool_results]
            data["toolCallIterations"] = self.tool_call_iterations
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ContributionMetadata":
        return cls(
            tokens_used=raw.get("tokensUsed"),
            latency_ms=raw.get("latencyMs"),
            model=raw.get("model"),
            tool_calls=[ToolCall.from_dict(c) for c in raw.get("toolCalls", [])],
            tool_results=[ToolResult.from_dict(r) for r in raw.get("toolResults", [])],
            tool_call_iterations=int(raw.get("toolCallIterations", 0)),
        )


@dataclass
class AgentResponse:
    """What an agent phase method returns: text plus call metadata."""

    content: str
    metadata: ContributionMetadata = field(default_factory=ContributionMetadata)


@dataclass(frozen=True)
class Contribution:
    agent_id: str
    agent_role: str
    type: str               # PROPOSAL, CRITIQUE or REFINEMENT
    content: str
    metadata: ContributionMetadata = field(default_factory=ContributionMetadata)
    target_agent_id: str | None = None  # critiques only

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agentId": self.agent_id,
            "agentRole": self.agent_role,
            "type": self.type,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }
        if self.target_agent_id:
            data["targetAgentId"] = self.target_agent_id
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Contribution":
        return cls(
            agent_id=raw["agentId"],
            agent_role=raw["agentRole"],
            type=raw["type"],
            content=raw["content"],
            metadata=ContributionMetadata.from_dict(raw.get("metadata", {})),
            target_agent_id=raw.get("targetAgentId"),
        )


@dataclass
class SummarizationMetadata:
    before_chars: int
    after_chars: int
    method: str
    timestamp: datetime = field(default_factory=utcnow)
    latency_ms: int | None = None
    tokens_used: int | None = None
    model: str | None = None
    temperature: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "beforeChars": self.before_chars,
            "afterChars": self.after_chars,
            "method": self.method,
            "timestamp": _iso(self.timestamp),
            "latencyMs": self.latency_ms,
            "tokensUsed": self.tokens_used,
            "model": self.model,
            "temperature": self.temperature,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SummarizationMetadata":
        return cls(
            before_chars=int(raw["beforeChars"]),
            after_chars=int(raw["afterChars"]),
            method=raw["method"],
            timestamp=_parse_dt(raw.get("timestamp")),
            latency_ms=raw.get("latencyMs"),
            tokens_used=raw.get("tokensUsed"),
            model=raw.get("model"),
            temperature=raw.get("temperature"),
        )


@dataclass
class DebateSummary:
    agent_id: str
    agent_role: str
    summary: str
    metadata: SummarizationMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "agentRole": self.agent_role,
            "summary": self.summary,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DebateSummary":
        return cls(
            agent_id=raw["agentId"],
            agent_role=raw["agentRole"],
            summary=raw["summary"],
            metadata=SummarizationMetadata.from_dict(raw["metadata"]),
        )


@dataclass(frozen=True)
class DebateRound:
    round_number: int       # 1-indexed
    contributions: tuple[Contribution, ...] = ()
    timestamp: datetime = field(default_factory=utcnow)
    summaries: dict[str, DebateSummary] = field(default_factory=dict)

    def of_type(self, contribution_type: str) -> list[Contribution]:
        return [c for c in self.contributions if c.type == contribution_type]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "roundNumber": self.round_number,
            "contributions": [c.to_dict() for c in self.contributions],
            "timestamp": _iso(self.timestamp),
        }
        if self.summaries:
            data["summaries"] = {k: s.to_dict() for k, s in self.summaries.items()}
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DebateRound":
        return cls(
            round_number=int(raw["roundNumber"]),
            contributions=tuple(Contribution.from_dict(c) for c in raw.get("contributions", [])),
            timestamp=_parse_dt(raw.get("timestamp")),
            summaries={k: DebateSummary.from_dict(s) for k, s in raw.get("summaries", {}).items()},
        )


@dataclass(frozen=True)
class Solution:
    description: str
    synthesized_by: str
    tradeoffs: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    confidence: int = 0     # 0-100

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "tradeoffs": list(self.tradeoffs),
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "synthesizedBy": self.synthesized_by,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Solution":
        return cls(
            description=raw["description"],
            synthesized_by=raw["synthesizedBy"],
            tradeoffs=list(raw.get("tradeoffs", [])),
            recommendations=list(raw.get("recommendations", [])),
            confidence=int(raw.get("confidence", 0)),
        )


@dataclass
class ClarificationItem:
    id: str
    question: str
    answer: str = ""


@dataclass
class AgentClarifications:
    agent_id: str
    agent_name: str
    role: str
    items: list[ClarificationItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "role": self.role,
            "items": [{"id": i.id, "question": i.question, "answer": i.answer} for i in self.items],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AgentClarifications":
        return cls(
            agent_id=raw["agentId"],
            agent_name=raw["agentName"],
            role=raw["role"],
            items=[ClarificationItem(i["id"], i["question"], i.get("answer", "")) for i in raw.get("items", [])],
        )


@dataclass
class PromptSource:
    source: str             # SOURCE_BUILT_IN or SOURCE_FILE
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "path": self.path}


@dataclass
class AgentPromptMetadata:
    agent_id: str
    role: str
    system_prompt: PromptSource
    summary_prompt: PromptSource | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"agentId": self.agent_id, "role": self.role, "systemPrompt": self.system_prompt.to_dict()}
        if self.summary_prompt is not None:
            data["summaryPrompt"] = self.summary_prompt.to_dict()
        return data


@dataclass
class PromptSources:
    agents: list[AgentPromptMetadata]
    judge: PromptSource

    def to_dict(self) -> dict[str, Any]:
        return {"agents": [a.to_dict() for a in self.agents], "judge": self.judge.to_dict()}


@dataclass
class DebateState:
    """The authoritative record of one debate run."""

    id: str
    problem: str
    context: str | None = None
    status: str = STATUS_PENDING
    current_round: int = 0  # 0 = not started
    rounds: list[DebateRound] = field(default_factory=list)
    final_solution: Solution | None = None
    clarifications: list[AgentClarifications] | None = None
    prompt_sources: dict[str, Any] | None = None
    judge_summary: DebateSummary | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def transition_to(self, status: str) -> None:
        """Move the status forward. Raises ValueError on a backward or unknown transition."""
        if status not in _ALLOWED_TRANSITIONS:
            raise ValueError(f"Unknown debate status: {status!r}")
        if status == self.status:
            return
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal status transition {self.status} -> {status} for debate {self.id}")
        self.status = status
        self.touch()

    def append_round(self, debate_round: DebateRound) -> None:
        expected = len(self.rounds) + 1
        if debate_round.round_number != expected:
            raise ValueError(
                f"Round {debate_round.round_number} appended to debate {self.id}, expected round {expected}"
            )
        self.rounds.append(debate_round)
        self.current_round = debate_round.round_number
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "problem": self.problem,
            "status": self.status,
            "currentRound": self.current_round,
            "rounds": [r.to_dict() for r in self.rounds],
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if self.context is not None:
            data["context"] = self.context
        if self.final_solution is not None:
            data["finalSolution"] = self.final_solution.to_dict()
        if self.clarifications is not None:
            data["clarifications"] = [c.to_dict() for c in self.clarifications]
        if self.prompt_sources is not None:
            data["promptSources"] = self.prompt_sources
        if self.judge_summary is not None:
            data["judgeSummary"] = self.judge_summary.to_dict()
        return data

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DebateState":
        solution = raw.get("finalSolution")
        clarifications = raw.get("clarifications")
        judge_summary = raw.get("judgeSummary")
        return cls(
            id=raw["id"],
            problem=raw["problem"],
            context=raw.get("context"),
            status=raw.get("status", STATUS_PENDING),
            current_round=int(raw.get("currentRound", 0)),
            rounds=[DebateRound.from_dict(r) for r in raw.get("rounds", [])],
            final_solution=Solution.from_dict(solution) if solution else None,
            clarifications=(
                [AgentClarifications.from_dict(c) for c in clarifications] if clarifications is not None else None
            ),
            prompt_sources=raw.get("promptSources"),
            judge_summary=DebateSummary.from_dict(judge_summary) if judge_summary else None,
            created_at=_parse_dt(raw.get("createdAt")),
            updated_at=_parse_dt(raw.get("updatedAt")),
        )


@dataclass(frozen=True)
class PhaseFailure:
    """An isolated agent failure: the agent contributed nothing for this phase."""

    round_number: int
    phase: str
    agent_id: str
    error: str
    target_agent_id: str | None = None


@dataclass
class DebateMetadata:
    total_rounds: int
    duration_ms: int
    total_tokens: int | None = None
    failures: list[PhaseFailure] = field(default_factory=list)
    empty_phases: list[tuple[int, str]] = field(default_factory=list)

    def failures_for(self, round_number: int, phase: str) -> list[PhaseFailure]:
        return [f for f in self.failures if f.round_number == round_number and f.phase == phase]


@dataclass
class DebateResult:
    debate_id: str
    solution: Solution
    rounds: list[DebateRound]
    metadata: DebateMetadata
