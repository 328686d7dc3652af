"""Debate orchestration: rounds of proposal, critique and refinement, then judge synthesis."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from config.config_loader import ConfigError, DebateConfig
from dialectic.agent import Agent
from dialectic.context import DebateContext, enhance_problem_with_context
from dialectic.judge import Judge
from dialectic.models import (
    CRITIQUE,
    PROPOSAL,
    REFINEMENT,
    STATUS_RUNNING,
    AgentClarifications,
    AgentResponse,
    Contribution,
    DebateMetadata,
    DebateResult,
    DebateRound,
    DebateSummary,
    PhaseFailure,
    PromptSources,
)
from dialectic.state import InMemoryStateSink, StateSink

logger = logging.getLogger(__name__)

NO_PROPOSAL_ERROR = "no proposal to refine"


class DebateError(Exception):
    """Raised when a debate cannot produce a final solution."""


@dataclass
class OrchestratorHooks:
    """Optional progress callbacks. A hook that raises is logged and ignored."""

    on_round_start: Callable[[int, int], None] | None = None          # (round, total_rounds)
    on_phase_start: Callable[[int, str, int], None] | None = None     # (round, phase, expected_calls)
    on_phase_complete: Callable[[int, str], None] | None = None       # (round, phase)
    on_agent_start: Callable[[str, str], None] | None = None          # (agent_id, activity)
    on_agent_complete: Callable[[str, str], None] | None = None       # (agent_id, activity)
    on_summarization_complete: Callable[[str, int, int], None] | None = None  # (agent_id, before, after)
    on_synthesis_start: Callable[[], None] | None = None
    on_synthesis_complete: Callable[[], None] | None = None


@dataclass
class _PhaseCall:
    agent: Agent
    run: Callable[[], Awaitable[AgentResponse]]
    target_agent_id: str | None = None


@dataclass
class _RunLog:
    failures: list[PhaseFailure] = field(default_factory=list)
    empty_phases: list[tuple[int, str]] = field(default_factory=list)


def _activity(phase: str, target_agent_id: str | None) -> str:
    return f"{phase} -> {target_agent_id}" if target_agent_id else phase


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class DebateOrchestrator:
    """Runs one debate across a fixed set of agents and a judge.

    Within a round the phases run strictly in order; inside a phase every
    call is issued concurrently and bounded by ``timeout_per_round_sec``.
    A failing call is recorded and the debate continues without it.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        judge: Judge,
        state_sink: StateSink,
        config: DebateConfig,
        hooks: OrchestratorHooks | None = None,
    ) -> None:
        config.validate()
        active = [a for a in agents if a.config.enabled]
        if not active:
            raise ConfigError("At least one enabled agent is required")
        ids = [a.id for a in active]
        if len(set(ids)) != len(ids):
            raise ConfigError(f"Agent ids must be unique, got {ids}")
        if judge is None:
            raise ConfigError("A judge is required")

        self._agents = active
        self._judge = judge
        self._sink = state_sink
        self._config = config
        self._hooks = hooks or OrchestratorHooks()

    @property
    def agents(self) -> list[Agent]:
        return list(self._agents)

    def _fire(self, hook_name: str, *args) -> None:
        hook = getattr(self._hooks, hook_name)
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.warning("Hook %s raised, ignoring", hook_name, exc_info=True)

    async def run_debate(
        self,
        problem: str,
        context: str | None = None,
        clarifications: list[AgentClarifications] | None = None,
        prompt_sources: PromptSources | None = None,
    ) -> DebateResult:
        """Run every round, synthesize, and return the solution with run metadata.

        Any failure after the debate is created marks it failed before propagating.

        Raises:
            StateSinkError: If the state sink fails at any point.
            DebateError: If the judge cannot synthesize a solution.
        """
        start = time.monotonic()
        debate_id = await self._sink.create_debate(problem, context)
        try:
            if prompt_sources is not None:
                await self._sink.set_prompt_sources(debate_id, prompt_sources)
            if clarifications is not None:
                await self._sink.set_clarifications(debate_id, clarifications)
            await self._sink.set_status(debate_id, STATUS_RUNNING)
            return await self._execute(debate_id, problem, context, clarifications, start)
        except DebateError:
            raise
        except Exception as exc:
            await self._abort(debate_id, exc)
            raise

    async def _abort(self, debate_id: str, exc: BaseException) -> None:
        """Mark the debate failed. A sink error here is logged so the original error surfaces."""
        try:
            await self._sink.fail_debate(debate_id, _describe(exc))
        except Exception:
            logger.warning("Could not mark debate %s as failed", debate_id, exc_info=True)

    async def _execute(
        self,
        debate_id: str,
        problem: str,
        context: str | None,
        clarifications: list[AgentClarifications] | None,
        start: float,
    ) -> DebateResult:
        enhanced_problem = enhance_problem_with_context(problem, context)
        total_rounds = self._config.rounds
        rounds: list[DebateRound] = []
        log = _RunLog()

        logger.info("Debate %s started: %d agents, %d rounds", debate_id, len(self._agents), total_rounds)

        for round_number in range(1, total_rounds + 1):
            self._fire("on_round_start", round_number, total_rounds)
            base_context = DebateContext(
                problem=enhanced_problem,
                context=context,
                history=tuple(rounds),
                include_full_history=self._config.include_full_history,
                clarifications=tuple(clarifications or ()),
            )
            debate_round = await self._run_round(round_number, enhanced_problem, base_context, log)
            await self._sink.append_round(debate_id, debate_round)
            rounds.append(debate_round)

        self._fire("on_synthesis_start")
        judge_summary = await self._judge.prepare_context(rounds)
        if judge_summary is not None:
            await self._sink.set_judge_summary(debate_id, judge_summary)
            self._fire(
                "on_summarization_complete",
                self._judge.id, judge_summary.metadata.before_chars, judge_summary.metadata.after_chars,
            )
        try:
            solution = await self._judge.synthesize(enhanced_problem, rounds)
        except Exception as exc:
            await self._abort(debate_id, exc)
            raise DebateError(f"Synthesis failed for debate {debate_id}: {_describe(exc)}") from exc
        await self._sink.set_final_solution(debate_id, solution)
        self._fire("on_synthesis_complete")

        known_tokens = [
            c.metadata.tokens_used for r in rounds for c in r.contributions if c.metadata.tokens_used is not None
        ]
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Debate %s completed in %.1fs with %d isolated failures",
            debate_id, duration_ms / 1000, len(log.failures),
        )
        return DebateResult(
            debate_id=debate_id,
            solution=solution,
            rounds=rounds,
            metadata=DebateMetadata(
                total_rounds=len(rounds),
                duration_ms=duration_ms,
                total_tokens=sum(known_tokens) if known_tokens else None,
                failures=log.failures,
                empty_phases=log.empty_phases,
            ),
        )

    async def _run_round(
        self, round_number: int, problem: str, base_context: DebateContext, log: _RunLog
    ) -> DebateRound:
        contexts, summaries, prep_errors = await self._prepare_contexts(base_context, round_number)
        ready = [a for a in self._agents if a.id not in prep_errors]

        # Proposal
        for agent in self._agents:
            if agent.id in prep_errors:
                self._record(log, round_number, PROPOSAL, agent.id, prep_errors[agent.id])
        proposals = await self._run_phase(round_number, PROPOSAL, [
            _PhaseCall(agent=a, run=lambda a=a: a.propose(problem, contexts[a.id]))
            for a in ready
        ], log)
        proposal_by_agent = {p.agent_id: p for p in proposals}

        # Critique: full mesh in declared order, never self
        critique_calls: list[_PhaseCall] = []
        for critic in self._agents:
            for target in self._agents:
                proposal = proposal_by_agent.get(target.id)
                if target.id == critic.id or proposal is None:
                    continue
                if critic.id in prep_errors:
                    self._record(log, round_number, CRITIQUE, critic.id, prep_errors[critic.id], target.id)
                    continue
                critique_calls.append(_PhaseCall(
                    agent=critic,
                    run=lambda c=critic, p=proposal: c.critique(p, contexts[c.id]),
                    target_agent_id=target.id,
                ))
        critiques = await self._run_phase(round_number, CRITIQUE, critique_calls, log)

        # Refinement
        refine_calls: list[_PhaseCall] = []
        for agent in self._agents:
            original = proposal_by_agent.get(agent.id)
            if original is None:
                self._record(log, round_number, REFINEMENT, agent.id, prep_errors.get(agent.id, NO_PROPOSAL_ERROR))
                continue
            received = [c for c in critiques if c.target_agent_id == agent.id]
            refine_calls.append(_PhaseCall(
                agent=agent,
                run=lambda a=agent, o=original, r=received: a.refine(o, r, contexts[a.id]),
            ))
        refinements = await self._run_phase(round_number, REFINEMENT, refine_calls, log)

        round_failures = [f for f in log.failures if f.round_number == round_number]
        logger.info(
            "Round %d complete: %d proposals, %d critiques, %d refinements, %d failures",
            round_number, len(proposals), len(critiques), len(refinements), len(round_failures),
        )
        return DebateRound(
            round_number=round_number,
            contributions=tuple(proposals + critiques + refinements),
            summaries=summaries,
        )

    async def _prepare_contexts(
        self, base_context: DebateContext, round_number: int
    ) -> tuple[dict[str, DebateContext], dict[str, DebateSummary], dict[str, str]]:
        """Let each agent summarize its history if it needs to.

        Returns (contexts, summaries, errors), each keyed by agent id.
        """
        timeout = self._config.timeout_per_round_sec
        results = await asyncio.gather(
            *(asyncio.wait_for(a.prepare_context(base_context, round_number), timeout) for a in self._agents),
            return_exceptions=True,
        )
        contexts: dict[str, DebateContext] = {}
        summaries: dict[str, DebateSummary] = {}
        errors: dict[str, str] = {}
        for agent, result in zip(self._agents, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.TimeoutError):
                    reason = f"timed out after {timeout}s"
                else:
                    reason = _describe(result)
                logger.warning("Agent %s context preparation failed in round %d: %s", agent.id, round_number, reason)
                errors[agent.id] = f"summarization failed: {reason}"
                continue
            contexts[agent.id] = result.context
            if result.summary is not None:
                summaries[agent.id] = result.summary
                self._fire(
                    "on_summarization_complete",
                    agent.id, result.summary.metadata.before_chars, result.summary.metadata.after_chars,
                )
        return contexts, summaries, errors

    async def _invoke(self, call: _PhaseCall, phase: str) -> AgentResponse:
        activity = _activity(phase, call.target_agent_id)
        timeout = self._config.timeout_per_round_sec
        self._fire("on_agent_start", call.agent.id, activity)
        try:
            return await asyncio.wait_for(call.run(), timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"timed out after {timeout}s") from None
        finally:
            self._fire("on_agent_complete", call.agent.id, activity)

    async def _run_phase(
        self, round_number: int, phase: str, calls: list[_PhaseCall], log: _RunLog
    ) -> list[Contribution]:
        """Dispatch all calls concurrently; keep successes in call order, record the rest."""
        self._fire("on_phase_start", round_number, phase, len(calls))
        results = await asyncio.gather(*(self._invoke(c, phase) for c in calls), return_exceptions=True)

        contributions: list[Contribution] = []
        for call, result in zip(calls, results):
            if isinstance(result, BaseException):
                self._record(log, round_number, phase, call.agent.id, _describe(result), call.target_agent_id)
                continue
            contributions.append(Contribution(
                agent_id=call.agent.id,
                agent_role=call.agent.role,
                type=phase,
                content=result.content,
                metadata=result.metadata,
                target_agent_id=call.target_agent_id,
            ))

        if not contributions:
            logger.warning("Round %d %s phase produced no contributions", round_number, phase)
            log.empty_phases.append((round_number, phase))
        self._fire("on_phase_complete", round_number, phase)
        return contributions

    def _record(
        self,
        log: _RunLog,
        round_number: int,
        phase: str,
        agent_id: str,
        error: str,
        target_agent_id: str | None = None,
    ) -> None:
        target = f" (target {target_agent_id})" if target_agent_id else ""
        logger.warning("Agent %s failed %s in round %d%s: %s", agent_id, phase, round_number, target, error)
        log.failures.append(PhaseFailure(
            round_number=round_number,
            phase=phase,
            agent_id=agent_id,
            error=error,
            target_agent_id=target_agent_id,
        ))


async def run_debate(
    problem: str,
    agents: Sequence[Agent],
    judge: Judge,
    debate_config: DebateConfig,
    hooks: OrchestratorHooks | None = None,
    context: str | None = None,
    clarifications: list[AgentClarifications] | None = None,
    state_sink: StateSink | None = None,
) -> DebateResult:
    """Convenience wrapper: build an orchestrator (in-memory state by default) and run it."""
    orchestrator = DebateOrchestrator(agents, judge, state_sink or InMemoryStateSink(), debate_config, hooks)
    return await orchestrator.run_debate(problem, context=context, clarifications=clarifications)
