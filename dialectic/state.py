"""State sinks: where DebateState is persisted after every mutation."""

import asyncio
import copy
import json
import logging
import secrets
import string
from abc import ABC, abstractmethod
from pathlib import Path

from dialectic.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    AgentClarifications,
    DebateRound,
    DebateState,
    DebateSummary,
    PromptSources,
    Solution,
    utcnow,
)

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class StateSinkError(Exception):
    """Raised when a sink cannot load or persist a debate. Aborts the run."""


def generate_debate_id() -> str:
    """``deb-YYYYMMDD-hhmmss-xxxx`` in UTC, with four random base-36 characters."""
    stamp = utcnow().strftime("%Y%m%d-%H%M%S")
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(4))
    return f"deb-{stamp}-{suffix}"


class StateSink(ABC):
    """Persistence interface. Each mutation loads the debate, applies the change and saves it."""

    @abstractmethod
    async def _load(self, debate_id: str) -> DebateState | None:
        ...

    @abstractmethod
    async def _save(self, state: DebateState) -> None:
        ...

    @abstractmethod
    async def list_debates(self) -> list[DebateState]:
        """All stored debates, newest first."""
        ...

    async def _require(self, debate_id: str) -> DebateState:
        state = await self._load(debate_id)
        if state is None:
            raise StateSinkError(f"Debate {debate_id} not found")
        return state

    async def create_debate(self, problem: str, context: str | None = None, debate_id: str | None = None) -> str:
        state = DebateState(id=debate_id or generate_debate_id(), problem=problem, context=context)
        await self._save(state)
        logger.debug("Created debate %s", state.id)
        return state.id

    async def set_status(self, debate_id: str, status: str) -> None:
        state = await self._require(debate_id)
        state.transition_to(status)
        await self._save(state)

    async def append_round(self, debate_id: str, debate_round: DebateRound) -> None:
        state = await self._require(debate_id)
        state.append_round(debate_round)
        await self._save(state)

    async def set_clarifications(self, debate_id: str, clarifications: list[AgentClarifications]) -> None:
        state = await self._require(debate_id)
        state.clarifications = list(clarifications)
        state.touch()
        await self._save(state)

    async def set_prompt_sources(self, debate_id: str, sources: PromptSources) -> None:
        state = await self._require(debate_id)
        state.prompt_sources = sources.to_dict()
        state.touch()
        await self._save(state)

    async def set_judge_summary(self, debate_id: str, summary: DebateSummary) -> None:
        state = await self._require(debate_id)
        state.judge_summary = summary
        state.touch()
        await self._save(state)

    async def set_final_solution(self, debate_id: str, solution: Solution) -> None:
        """Record the solution and mark the debate completed."""
        state = await self._require(debate_id)
        state.final_solution = solution
        state.transition_to(STATUS_COMPLETED)
        await self._save(state)

    async def fail_debate(self, debate_id: str, error: str) -> None:
        state = await self._require(debate_id)
        state.transition_to(STATUS_FAILED)
        await self._save(state)
        logger.error("Debate %s failed: %s", debate_id, error)

    async def get_debate(self, debate_id: str) -> DebateState | None:
        return await self._load(debate_id)


class InMemoryStateSink(StateSink):
    """Keeps deep copies, so callers never share mutable state with the sink."""

    def __init__(self) -> None:
        self._debates: dict[str, DebateState] = {}

    async def _load(self, debate_id: str) -> DebateState | None:
        state = self._debates.get(debate_id)
        return copy.deepcopy(state) if state is not None else None

    async def _save(self, state: DebateState) -> None:
        self._debates[state.id] = copy.deepcopy(state)

    async def list_debates(self) -> list[DebateState]:
        states = [copy.deepcopy(s) for s in self._debates.values()]
        return sorted(states, key=lambda s: s.created_at, reverse=True)


class JsonFileStateSink(StateSink):
    """One ``<id>.json`` file per debate under ``base_dir``."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, debate_id: str) -> Path:
        return self.base_dir / f"{debate_id}.json"

    def _read(self, path: Path) -> DebateState:
        try:
            return DebateState.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise StateSinkError(f"Cannot read debate file {path}: {exc}") from exc

    def _write(self, state: DebateState) -> None:
        path = self.path_for(state.id)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(state.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise StateSinkError(f"Cannot write debate file {path}: {exc}") from exc

    async def _load(self, debate_id: str) -> DebateState | None:
        path = self.path_for(debate_id)
        if not path.exists():
            return None
        return await asyncio.to_thread(self._read, path)

    async def _save(self, state: DebateState) -> None:
        await asyncio.to_thread(self._write, state)

    async def list_debates(self) -> list[DebateState]:
        if not self.base_dir.is_dir():
            return []
        states = [await asyncio.to_thread(self._read, p) for p in sorted(self.base_dir.glob("*.json"))]
        return sorted(states, key=lambda s: s.created_at, reverse=True)
