"""CLI entry point: dialectic "problem" [options]."""

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, ConfigError, load_config
from dialectic.agent import Agent
from dialectic.clarifications import answer_clarifications, collect_clarifications
from dialectic.factory import build_agents, build_judge, build_providers, collect_prompt_sources
from dialectic.judge import Judge
from dialectic.models import AgentClarifications, ClarificationItem, DebateResult, PromptSource, utcnow
from dialectic.orchestrator import DebateError, DebateOrchestrator, OrchestratorHooks
from dialectic.output import print_failures, print_round_summary, print_solution, save_solution
from dialectic.problem_file import parse_problem_file
from dialectic.state import JsonFileStateSink, StateSinkError
from dialectic.tracing import Tracer, create_langfuse_exporter

logger = logging.getLogger(__name__)

TRACE_NAME_PREFIX = "debate-command"

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool, trace: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    if trace:
        logging.getLogger("dialectic.tracing").setLevel(logging.DEBUG)


def _ask_operator(group: AgentClarifications, item: ClarificationItem) -> str:
    """Prompt for one answer. Pressing enter leaves it blank (recorded as NA)."""
    console.print(f"\n[bold]{escape(group.agent_name)}[/bold] ({escape(group.role)}) [dim]{escape(item.id)}[/dim]")
    return click.prompt(item.question, default="", show_default=False)


def _filter_agents(config: AppConfig, agent_filter: str | None) -> AppConfig:
    """Keep only the agents whose id or role is listed. Returns config unchanged when no filter."""
    if not agent_filter:
        return config
    wanted = {s.strip() for s in agent_filter.split(",") if s.strip()}
    kept = [a for a in config.agents if a.id in wanted or a.role in wanted]
    if not kept:
        raise ConfigError(f"No configured agent matches --agents {agent_filter}")
    return replace(config, agents=[replace(a, enabled=True) for a in kept])


def _build_hooks(progress: Progress, task_id) -> OrchestratorHooks:
    def on_round_start(round_number: int, total: int) -> None:
        progress.update(task_id, description=f"Round {round_number}/{total}")

    def on_phase_start(round_number: int, phase: str, expected: int) -> None:
        progress.update(task_id, description=f"Round {round_number}: {phase} ({expected} calls)")

    def on_phase_complete(round_number: int, phase: str) -> None:
        progress.print(f"[green]OK[/green] Round {round_number} {phase} complete")

    def on_summarization_complete(agent_id: str, before: int, after: int) -> None:
        progress.print(f"[dim]{escape(agent_id)} summarized history: {before} -> {after} chars[/dim]")

    def on_synthesis_start() -> None:
        progress.update(task_id, description="Running synthesis...")

    return OrchestratorHooks(
        on_round_start=on_round_start,
        on_phase_start=on_phase_start,
        on_phase_complete=on_phase_complete,
        on_agent_start=lambda agent_id, activity: logger.debug("%s started %s", agent_id, activity),
        on_agent_complete=lambda agent_id, activity: logger.debug("%s finished %s", agent_id, activity),
        on_summarization_complete=on_summarization_complete,
        on_synthesis_start=on_synthesis_start,
    )


async def _run(
    problem: str,
    context: str | None,
    config: AppConfig,
    agents: list[Agent],
    judge: Judge,
    judge_source: PromptSource,
    clarify: bool,
    output_dir: Path,
) -> DebateResult:
    clarifications: list[AgentClarifications] | None = None
    if clarify:
        console.print("[bold cyan]Collecting clarifying questions...[/bold cyan]")
        groups = await collect_clarifications(problem, agents, config.debate.clarifications_max_per_agent)
        if any(g.items for g in groups):
            console.print("[dim]Press enter to skip a question.[/dim]")
        clarifications = answer_clarifications(groups, _ask_operator)

    sink = JsonFileStateSink(output_dir)
    console.print(
        f"\n[bold cyan]Dialectic[/bold cyan]: {len(agents)} agents, {config.debate.rounds} rounds, "
        f"judge {escape(judge.id)}"
    )
    console.print(f"Agents: {escape(', '.join(f'{a.id} ({a.role})' for a in agents))}")
    console.print(f"Problem: [italic]{escape(problem[:80])}{'...' if len(problem) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Starting debate...", total=None)
        orchestrator = DebateOrchestrator(agents, judge, sink, config.debate, _build_hooks(progress, task_id))
        result = await orchestrator.run_debate(
            problem,
            context=context,
            clarifications=clarifications,
            prompt_sources=collect_prompt_sources(agents, judge_source),
        )

    for rnd in result.rounds:
        print_round_summary(rnd)
    print_failures(result.metadata)
    print_solution(result)
    console.print(f"\n[dim]Saved to: {escape(str(sink.path_for(result.debate_id)))}[/dim]")
    return result


@click.command()
@click.argument("problem", required=False)
@click.option("--file", "problem_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the problem from a .md file (frontmatter: context, rounds)")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--context", "context_text", default=None, help="Extra context appended to the problem")
@click.option("--context-dir", type=click.Path(exists=True, file_okay=False), default=None,
              help="Base directory for the file_read and list_files tools (default: cwd)")
@click.option("--agents", "agent_filter", default=None, help="Comma-separated agent ids or roles to include")
@click.option("--clarify", is_flag=True, help="Ask agents for clarifying questions before the debate")
@click.option("--output-dir", "output_dir", default=None,
              help="Directory for debate state JSON (default: from config)")
@click.option("--solution-out", type=click.Path(dir_okay=False), default=None,
              help="Also write the final solution as markdown to this path")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--trace", is_flag=True,
              help="Record a span for every agent and tool call; exported to Langfuse when LANGFUSE_* keys are set")
def main(
    problem: str | None,
    problem_file: str | None,
    config_path: str | None,
    rounds: int | None,
    context_text: str | None,
    context_dir: str | None,
    agent_filter: str | None,
    clarify: bool,
    output_dir: str | None,
    solution_out: str | None,
    verbose: bool,
    trace: bool,
) -> None:
    """Dialectic -- multi-agent debate for software design problems.

    \b
    Examples:
      dialectic "Design a rate limiter for a public API" --rounds 2
      dialectic --file problem.md --clarify
      dialectic "Event sourcing for orders?" --agents architect,security --trace
    """
    load_dotenv()
    _setup_logging(verbose, trace)

    try:
        config = load_config(Path(config_path)) if config_path else load_config()
    except (FileNotFoundError, ConfigError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    context = context_text
    file_rounds = None
    if problem_file:
        try:
            parsed = parse_problem_file(Path(problem_file))
        except ValueError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            sys.exit(1)
        problem_text = parsed.problem
        context = context_text or parsed.context
        file_rounds = parsed.rounds
    elif problem and problem.strip():
        problem_text = problem.strip()
    else:
        console.print("[bold red]Error:[/bold red] Provide a PROBLEM argument or --file.")
        sys.exit(1)

    effective_rounds = rounds if rounds is not None else file_rounds
    try:
        config = _filter_agents(config, agent_filter)
        if effective_rounds is not None:
            config = replace(config, debate=replace(config.debate, rounds=effective_rounds))
            config.debate.validate()
        needed = {a.provider for a in config.enabled_agents} | {config.judge.provider}
        providers = build_providers(config, needed)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    tracer: Tracer | None = None
    if trace:
        tracer = Tracer(create_langfuse_exporter(
            f"{TRACE_NAME_PREFIX}-{utcnow():%Y%m%d-%H%M%S}",
            {"rounds": config.debate.rounds, "agents": [a.id for a in config.enabled_agents]},
        ))

    try:
        try:
            agents = build_agents(config, providers, tracer, Path(context_dir) if context_dir else None)
            judge, judge_source = build_judge(config, providers)
        except ConfigError as exc:
            console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
            sys.exit(1)

        effective_output = Path(output_dir) if output_dir else config.output_dir
        try:
            result = asyncio.run(_run(
                problem=problem_text,
                context=context,
                config=config,
                agents=agents,
                judge=judge,
                judge_source=judge_source,
                clarify=clarify or config.debate.interactive_clarifications,
                output_dir=effective_output,
            ))
        except (DebateError, StateSinkError) as exc:
            console.print(f"[bold red]Debate failed:[/bold red] {escape(str(exc))}")
            sys.exit(1)
    finally:
        if tracer is not None:
            tracer.close()

    if solution_out:
        saved = save_solution(result, problem_text, Path(solution_out))
        console.print(f"[dim]Solution written to: {escape(str(saved))}[/dim]")
    if tracer is not None:
        console.print(f"[dim]Trace: {len(tracer.spans)} spans recorded[/dim]")


if __name__ == "__main__":
    main()
