"""Tests for dialectic/prompts.py and prompt-file resolution in dialectic/factory.py."""

import logging
from pathlib import Path

import pytest

from config.config_loader import AGENT_ROLES
from dialectic.context import DebateContext
from dialectic.factory import resolve_prompt
from dialectic.models import SOURCE_BUILT_IN, SOURCE_FILE
from dialectic.prompts import REQUIREMENTS_COVERAGE_SECTION_TITLE, ROLE_PROMPTS, get_prompts_for_role


@pytest.mark.parametrize("role", AGENT_ROLES)
def test_every_role_has_prompts(role):
    prompts = get_prompts_for_role(role)
    assert prompts.role == role
    assert "General Guidelines" in prompts.system_prompt
    assert REQUIREMENTS_COVERAGE_SECTION_TITLE in prompts.propose_prompt("Design X")


def test_unknown_role_falls_back_to_generalist(caplog):
    with caplog.at_level(logging.WARNING):
        prompts = get_prompts_for_role("wizard")
    assert prompts is ROLE_PROMPTS["generalist"]
    assert "wizard" in caplog.text


def test_critique_prompt_names_role_and_proposal():
    text = get_prompts_for_role("security").critique_prompt("Store tokens in cookies.")
    assert "security specialist" in text
    assert "Store tokens in cookies." in text


def test_refine_prompt_without_critiques():
    text = get_prompts_for_role("kiss").refine_prompt("Original plan", "")
    assert "(no critiques were received)" in text


def test_summarize_prompt_states_limit():
    text = get_prompts_for_role("performance").summarize_prompt("history", 2500)
    assert "must not exceed 2500 characters" in text
    assert text.endswith("history\n")


def test_context_is_prepended_to_phase_prompts():
    context = DebateContext(problem="P", summary="Earlier I chose Redis.", summary_round=2)
    text = get_prompts_for_role("architect").propose_prompt("Design X", context)
    assert text.index("Earlier I chose Redis.") < text.index("Problem to solve:")


# --- prompt files ---

def test_resolve_prompt_without_path_is_built_in():
    text, source = resolve_prompt("Agent a", Path("."), None, "default")
    assert text == "default"
    assert source.source == SOURCE_BUILT_IN
    assert source.path is None


def test_resolve_prompt_reads_relative_file(tmp_path: Path):
    (tmp_path / "prompts").mkdir()
    (tmp_path / "prompts" / "arch.md").write_text("  You are terse.  \n", encoding="utf-8")

    text, source = resolve_prompt("Agent a", tmp_path, "prompts/arch.md", "default")

    assert text == "You are terse."
    assert source.source == SOURCE_FILE
    assert source.path == str((tmp_path / "prompts" / "arch.md").resolve())


@pytest.mark.parametrize("content", [None, "   \n"])
def test_resolve_prompt_falls_back_on_missing_or_empty(tmp_path: Path, caplog, content):
    if content is not None:
        (tmp_path / "p.md").write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        text, source = resolve_prompt("Agent a", tmp_path, "p.md", "default")

    assert text == "default"
    assert source.source == SOURCE_BUILT_IN
    assert "using built-in prompt" in caplog.text
