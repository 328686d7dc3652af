"""Rich console output for debate rounds and the final solution, plus markdown export."""

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from dialectic.models import CRITIQUE, Contribution, DebateMetadata, DebateResult, DebateRound

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _preview(content: str, words: int = 50) -> str:
    """Return first N words of a contribution."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _title(c: Contribution) -> str:
    if c.type == CRITIQUE and c.target_agent_id:
        return f"[bold]{escape(c.agent_id)}[/bold] critique of {escape(c.target_agent_id)}"
    return f"[bold]{escape(c.agent_id)}[/bold] {c.type}"


def print_round_summary(debate_round: DebateRound) -> None:
    """Print a brief preview of every contribution in a round."""
    console.print(Rule(f"[bold cyan]Round {debate_round.round_number} Summary[/bold cyan]"))
    for c in debate_round.contributions:
        latency = f"{c.metadata.latency_ms / 1000:.1f}s" if c.metadata.latency_ms is not None else ""
        console.print(Panel(Text(_preview(c.content)), title=_title(c), subtitle=latency, border_style="dim"))
    for agent_id, summary in debate_round.summaries.items():
        console.print(Text(
            f"{agent_id} summarized its history: {summary.metadata.before_chars} -> "
            f"{summary.metadata.after_chars} chars",
            style="dim",
        ))


def print_failures(metadata: DebateMetadata) -> None:
    if not metadata.failures and not metadata.empty_phases:
        return
    console.print(Rule("[bold yellow]Isolated Failures[/bold yellow]"))
    for f in metadata.failures:
        target = f" -> {f.target_agent_id}" if f.target_agent_id else ""
        console.print(f"[yellow]Round {f.round_number} {f.phase}[/yellow] {escape(f.agent_id + target)}: {escape(f.error)}")
    for round_number, phase in metadata.empty_phases:
        console.print(f"[yellow]Round {round_number} {phase}[/yellow] produced no contributions")


def print_solution(result: DebateResult) -> None:
    """Print the final solution using Rich markdown."""
    console.print(Rule("[bold green]Final Solution[/bold green]"))
    tokens = f" | Tokens: {result.metadata.total_tokens}" if result.metadata.total_tokens is not None else ""
    console.print(Text(
        f"Debate: {result.debate_id} | "
        f"Synthesized by: {result.solution.synthesized_by} | "
        f"Rounds: {result.metadata.total_rounds} | "
        f"Duration: {result.metadata.duration_ms / 1000:.1f}s | "
        f"Confidence: {result.solution.confidence}{tokens}",
        style="dim",
    ))
    console.print(Markdown(result.solution.description))


def render_solution_markdown(problem: str, result: DebateResult) -> str:
    solution = result.solution
    lines: list[str] = [
        f"# Debate Solution: {problem.splitlines()[0][:80] if problem else result.debate_id}",
        "",
        f"**Debate:** {result.debate_id}",
        f"**Synthesized by:** {solution.synthesized_by}",
        f"**Rounds:** {result.metadata.total_rounds}",
        f"**Duration:** {result.metadata.duration_ms / 1000:.1f}s",
        f"**Confidence:** {solution.confidence}",
        "",
        "---",
        "",
        solution.description,
        "",
    ]
    if solution.tradeoffs:
        lines += ["## Tradeoffs", "", *[f"- {t}" for t in solution.tradeoffs], ""]
    if solution.recommendations:
        lines += ["## Recommendations", "", *[f"- {r}" for r in solution.recommendations], ""]
    return "\n".join(lines)


def save_solution(result: DebateResult, problem: str, path: Path) -> Path:
    """Write the solution as markdown, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_solution_markdown(problem, result), encoding="utf-8")
    logger.info("Solution saved to: %s", path)
    return path
