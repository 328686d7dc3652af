"""Integration tests: real API calls, no mocks. Requires .env with OPENAI_API_KEY."""

import os
from dataclasses import replace
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("OPENAI_API_KEY", "").strip():
    pytestmark = pytest.mark.skip(reason="OPENAI_API_KEY not set")


async def test_full_debate_pipeline(tmp_path: Path):
    """Run a real 1-round debate with the bundled config, verify the state file and solution."""
    from config.config_loader import load_config
    from dialectic.factory import build_agents, build_judge, build_providers, collect_prompt_sources
    from dialectic.models import STATUS_COMPLETED
    from dialectic.orchestrator import DebateOrchestrator
    from dialectic.output import save_solution
    from dialectic.state import JsonFileStateSink

    config = load_config()
    config = replace(config, debate=replace(config.debate, rounds=1))
    needed = {a.provider for a in config.enabled_agents} | {config.judge.provider}
    providers = build_providers(config, needed & config.available_providers)

    agents = build_agents(config, providers)
    judge, judge_source = build_judge(config, providers)
    sink = JsonFileStateSink(tmp_path / "debates")

    result = await DebateOrchestrator(agents, judge, sink, config.debate).run_debate(
        "Should a small team use a monorepo or separate repos for a Python microservices project?",
        prompt_sources=collect_prompt_sources(agents, judge_source),
    )

    assert result.solution.description.strip()
    assert len(result.rounds) == 1
    state = await sink.get_debate(result.debate_id)
    assert state.status == STATUS_COMPLETED

    saved = save_solution(result, "monorepo vs separate repos", tmp_path / "solution.md")
    assert saved.exists()
