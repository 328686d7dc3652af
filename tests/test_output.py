"""Tests for dialectic/output.py."""

from pathlib import Path

import pytest

from dialectic.models import PROPOSAL, DebateMetadata, DebateResult, DebateRound, PhaseFailure, Solution
from dialectic.output import (
    _preview,
    print_failures,
    print_round_summary,
    print_solution,
    render_solution_markdown,
    save_solution,
)
from tests.conftest import make_contribution


@pytest.fixture
def sample_result(sample_round) -> DebateResult:
    return DebateResult(
        debate_id="deb-20260101-120000-abcd",
        solution=Solution("## Consensus\nUse a token bucket.", "judge-main", confidence=75),
        rounds=[sample_round],
        metadata=DebateMetadata(total_rounds=1, duration_ms=10500, total_tokens=60),
    )


def test_preview_truncates_words():
    assert _preview("one two three", words=2) == "one two..."
    assert _preview("one two", words=2) == "one two"


def test_render_solution_markdown(sample_result: DebateResult):
    text = render_solution_markdown("Design a rate limiter\nwith details", sample_result)
    assert text.startswith("# Debate Solution: Design a rate limiter\n")
    assert "**Debate:** deb-20260101-120000-abcd" in text
    assert "**Synthesized by:** judge-main" in text
    assert "**Duration:** 10.5s" in text
    assert "## Consensus\nUse a token bucket." in text
    assert "## Tradeoffs" not in text


def test_render_includes_tradeoffs_when_present(sample_result: DebateResult):
    sample_result.solution = Solution("text", "judge", tradeoffs=["Cost vs speed"], recommendations=["Ship it"])
    text = render_solution_markdown("Problem", sample_result)
    assert "## Tradeoffs\n\n- Cost vs speed" in text
    assert "## Recommendations\n\n- Ship it" in text


def test_save_solution_creates_parent_dirs(tmp_path: Path, sample_result: DebateResult):
    target = tmp_path / "nested" / "solution.md"
    saved = save_solution(sample_result, "Problem", target)
    assert saved == target
    assert "Use a token bucket." in target.read_text(encoding="utf-8")


def test_console_printers_render(capsys, sample_round, sample_result: DebateResult):
    sample_result.metadata.failures.append(PhaseFailure(1, "critique", "agent-b", "timed out", "agent-a"))
    sample_result.metadata.empty_phases.append((1, "refinement"))

    print_round_summary(sample_round)
    print_failures(sample_result.metadata)
    print_solution(sample_result)

    out = capsys.readouterr().out
    assert "Round 1 Summary" in out
    assert "agent-b -> agent-a: timed out" in out
    assert "produced no contributions" in out
    assert "deb-20260101-120000-abcd" in out


def test_markup_like_text_is_printed_literally(capsys):
    debate_round = DebateRound(round_number=1, contributions=(
        make_contribution("agent-a", PROPOSAL, "Route [/api/v1] through the [bold]gateway"),
    ))
    metadata = DebateMetadata(
        total_rounds=1,
        duration_ms=10,
        failures=[PhaseFailure(1, "proposal", "agent-b", "[/openai] API call failed: [openai] 503")],
    )

    print_round_summary(debate_round)
    print_failures(metadata)

    out = capsys.readouterr().out
    assert "Route [/api/v1] through the [bold]gateway" in out
    assert "agent-b: [/openai] API call failed: [openai] 503" in out
