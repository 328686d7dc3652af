"""Tests for dialectic/state.py."""

import asyncio
import json
import re
from pathlib import Path

import pytest

from dialectic.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_RUNNING,
    DebateRound,
    DebateSummary,
    Solution,
    SummarizationMetadata,
)
from dialectic.state import InMemoryStateSink, JsonFileStateSink, StateSinkError, generate_debate_id


@pytest.fixture(params=["memory", "json"])
def sink(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryStateSink()
    return JsonFileStateSink(tmp_path / "debates")


def test_generate_debate_id_format():
    assert re.fullmatch(r"deb-\d{8}-\d{6}-[a-z0-9]{4}", generate_debate_id())


async def test_lifecycle(sink, sample_round: DebateRound):
    debate_id = await sink.create_debate("Problem", "Context")
    state = await sink.get_debate(debate_id)
    assert state.status == STATUS_PENDING
    assert state.current_round == 0
    assert state.context == "Context"

    await sink.set_status(debate_id, STATUS_RUNNING)
    await sink.append_round(debate_id, sample_round)
    await sink.set_final_solution(debate_id, Solution("Do X", "judge-main", confidence=75))

    state = await sink.get_debate(debate_id)
    assert state.status == STATUS_COMPLETED
    assert state.current_round == 1
    assert state.rounds[0].contributions == sample_round.contributions
    assert state.final_solution.description == "Do X"


async def test_rounds_must_be_appended_in_order(sink):
    debate_id = await sink.create_debate("Problem")
    with pytest.raises(ValueError, match="expected round 1"):
        await sink.append_round(debate_id, DebateRound(round_number=2))


async def test_fail_debate(sink):
    debate_id = await sink.create_debate("Problem")
    await sink.set_status(debate_id, STATUS_RUNNING)
    await sink.fail_debate(debate_id, "judge down")
    assert (await sink.get_debate(debate_id)).status == STATUS_FAILED


async def test_completed_debate_cannot_fail(sink):
    debate_id = await sink.create_debate("Problem")
    await sink.set_status(debate_id, STATUS_RUNNING)
    await sink.set_final_solution(debate_id, Solution("Do X", "judge"))
    with pytest.raises(ValueError):
        await sink.fail_debate(debate_id, "late error")


async def test_unknown_debate_raises(sink):
    assert await sink.get_debate("deb-missing") is None
    with pytest.raises(StateSinkError, match="not found"):
        await sink.set_status("deb-missing", STATUS_RUNNING)


async def test_list_debates_newest_first(sink):
    first = await sink.create_debate("First")
    await asyncio.sleep(0.01)
    second = await sink.create_debate("Second", debate_id="deb-20990101-000000-zzzz")
    ids = [s.id for s in await sink.list_debates()]
    assert ids == [second, first]


async def test_in_memory_sink_returns_copies():
    sink = InMemoryStateSink()
    debate_id = await sink.create_debate("Problem")
    state = await sink.get_debate(debate_id)
    state.problem = "mutated"
    assert (await sink.get_debate(debate_id)).problem == "Problem"


async def test_json_file_uses_camel_case_keys(tmp_path: Path, sample_round: DebateRound):
    sink = JsonFileStateSink(tmp_path)
    debate_id = await sink.create_debate("Problem")
    await sink.set_status(debate_id, STATUS_RUNNING)
    await sink.append_round(debate_id, sample_round)

    raw = json.loads(sink.path_for(debate_id).read_text(encoding="utf-8"))

    assert {"id", "problem", "status", "currentRound", "rounds", "createdAt", "updatedAt"} <= set(raw)
    assert "context" not in raw
    assert raw["currentRound"] == 1
    critique = raw["rounds"][0]["contributions"][2]
    assert critique["targetAgentId"] == "agent-b"
    assert critique["metadata"]["tokensUsed"] == 10


async def test_json_file_corrupt_raises(tmp_path: Path):
    sink = JsonFileStateSink(tmp_path)
    sink.path_for("deb-bad").write_text("{not json", encoding="utf-8")
    with pytest.raises(StateSinkError, match="Cannot read"):
        await sink.get_debate("deb-bad")


async def test_json_file_unwritable_raises(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    sink = JsonFileStateSink(blocker / "debates")
    with pytest.raises(StateSinkError, match="Cannot write"):
        await sink.create_debate("Problem")


async def test_judge_summary_persisted(sink):
    summary = DebateSummary(
        agent_id="judge-main",
        agent_role="generalist",
        summary="Token bucket at the edge.",
        metadata=SummarizationMetadata(before_chars=900, after_chars=25, method="length-based"),
    )
    debate_id = await sink.create_debate("Problem")
    await sink.set_judge_summary(debate_id, summary)

    state = await sink.get_debate(debate_id)
    assert state.judge_summary.summary == "Token bucket at the edge."
    assert state.judge_summary.metadata.before_chars == 900
    assert state.to_dict()["judgeSummary"]["agentId"] == "judge-main"
