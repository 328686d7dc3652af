"""Debate context passed to agents, and its rendering into prompt text."""

from dataclasses import dataclass

from dialectic.models import AgentClarifications, DebateRound, DebateSummary

_EXTRA_CONTEXT_HEADING = "# Extra Context"
_PREVIEW_CHARS = 100
_SECTION_RULE = "==================================="


@dataclass(frozen=True)
class DebateContext:
    """Read-only view of the debate handed to agents for one phase call."""

    problem: str
    context: str | None = None
    history: tuple[DebateRound, ...] = ()
    include_full_history: bool = True
    clarifications: tuple[AgentClarifications, ...] = ()
    summary: str | None = None              # this agent's summary, when prepared
    summary_round: int | None = None


@dataclass
class ContextPreparationResult:
    context: DebateContext
    summary: DebateSummary | None = None


def enhance_problem_with_context(problem: str, context: str | None) -> str:
    """Append the optional extra context under its own heading."""
    if not context or not context.strip():
        return problem
    return f"{problem}\n\n{_EXTRA_CONTEXT_HEADING}\n\n{context.strip()}"


def format_history(history: tuple[DebateRound, ...] | list[DebateRound]) -> str:
    """One line per contribution, grouped by round, first line truncated."""
    blocks: list[str] = []
    for rnd in history:
        lines = []
        for c in rnd.contributions:
            first_line = c.content.split("\n", 1)[0]
            preview = first_line[:_PREVIEW_CHARS] + "..." if len(first_line) > _PREVIEW_CHARS else first_line
            lines.append(f"  [{c.agent_role}] {c.type}: {preview}")
        blocks.append(f"Round {rnd.round_number}:\n" + "\n".join(lines))
    return "\n\n".join(blocks)


def format_clarifications(groups: tuple[AgentClarifications, ...] | list[AgentClarifications]) -> str:
    """Render clarification Q&A grouped by agent. Empty groups still yield a valid section."""
    parts = ["## Clarifications", ""]
    for group in groups:
        parts.append(f"### {group.agent_name} ({group.role})")
        for item in group.items:
            parts.append(f"Question ({item.id}):\n\n```text\n{item.question}\n```\n")
            parts.append(f"Answer:\n\n```text\n{item.answer}\n```\n")
    return "\n".join(parts) + "\n"


def format_context_section(context: DebateContext) -> str:
    """The agent's summary when present, else the full history if enabled, else nothing."""
    if context.summary is not None:
        round_label = f" from Round {context.summary_round}" if context.summary_round else ""
        return (
            "=== Previous Debate Context ===\n\n"
            f"[SUMMARY{round_label}]\n{context.summary}\n\n"
            f"{_SECTION_RULE}\n\n"
        )
    if not context.history or not context.include_full_history:
        return ""
    return (
        "=== Previous Debate Rounds ===\n\n"
        f"{format_history(context.history)}\n\n"
        f"{_SECTION_RULE}\n\n"
    )


def prepend_context(prompt: str, context: DebateContext | None) -> str:
    """Prefix a phase prompt with clarifications and prior-round context, if any."""
    if context is None:
        return prompt
    clarifications = format_clarifications(context.clarifications) if context.clarifications else ""
    rest = format_context_section(context)
    full = f"{clarifications}{chr(10) if clarifications else ''}{rest}".strip()
    if not full:
        return prompt
    return f"{full}\n{prompt}"
