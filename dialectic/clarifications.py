"""Pre-debate clarification phase: collect questions from every agent, then record answers."""

import asyncio
import logging
from collections.abc import Callable, Sequence

from config.config_loader import DEFAULT_CLARIFICATIONS_MAX_PER_AGENT
from dialectic.agent import Agent
from dialectic.context import format_clarifications
from dialectic.models import AgentClarifications, ClarificationItem

__all__ = ["answer_clarifications", "collect_clarifications", "format_clarifications"]

logger = logging.getLogger(__name__)

NO_ANSWER = "NA"


async def _ask_agent(agent: Agent, problem: str, max_per_agent: int) -> AgentClarifications:
    config = agent.config
    try:
        items = await agent.ask_clarifying_questions(problem)
    except Exception as exc:
        logger.warning("Agent %s failed to produce clarifying questions: %s", agent.id, exc)
        items = []

    if len(items) > max_per_agent:
        logger.warning(
            "Agent %s asked %d clarifying questions, keeping the first %d",
            agent.id, len(items), max_per_agent,
        )
        items = items[:max_per_agent]

    return AgentClarifications(agent_id=agent.id, agent_name=config.name, role=config.role, items=list(items))


async def collect_clarifications(
    problem: str,
    agents: Sequence[Agent],
    max_per_agent: int = DEFAULT_CLARIFICATIONS_MAX_PER_AGENT,
) -> list[AgentClarifications]:
    """Ask all agents concurrently. One group per agent, in agent order; failures give empty groups."""
    groups = await asyncio.gather(*(_ask_agent(a, problem, max_per_agent) for a in agents))
    total = sum(len(g.items) for g in groups)
    logger.info("Collected %d clarifying questions from %d agents", total, len(groups))
    return list(groups)


def answer_clarifications(
    groups: list[AgentClarifications],
    ask: Callable[[AgentClarifications, ClarificationItem], str],
) -> list[AgentClarifications]:
    """Fill in answers through ``ask``. Blank answers become ``"NA"``; others are trimmed.

    Returns new groups; the input is not modified.
    """
    answered: list[AgentClarifications] = []
    for group in groups:
        items = []
        for item in group.items:
            answer = (ask(group, item) or "").strip()
            items.append(ClarificationItem(id=item.id, question=item.question, answer=answer or NO_ANSWER))
        answered.append(AgentClarifications(
            agent_id=group.agent_id, agent_name=group.agent_name, role=group.role, items=items,
        ))
    return answered
