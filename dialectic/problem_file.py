"""Problem files: markdown body with optional YAML frontmatter (``context``, ``rounds``)."""

from dataclasses import dataclass
from pathlib import Path

import frontmatter


@dataclass
class ProblemFile:
    problem: str
    context: str | None = None
    rounds: int | None = None
    source: str = ""


def parse_problem_file(file_path: Path) -> ProblemFile:
    """Parse a markdown problem file.

    Returns:
        ProblemFile with the trimmed body as the problem. ``context`` and
        ``rounds`` come from frontmatter when present.

    Raises:
        ValueError: If the body is empty or ``rounds`` is not a positive integer.
    """
    post = frontmatter.load(str(file_path))
    problem = post.content.strip()
    if not problem:
        raise ValueError(f"Problem file {file_path} has no content")

    metadata = dict(post.metadata)
    context = metadata.get("context")
    rounds = metadata.get("rounds")
    if rounds is not None:
        if isinstance(rounds, bool) or not isinstance(rounds, int) or rounds < 1:
            raise ValueError(f"Problem file {file_path}: rounds must be a positive integer, got {rounds!r}")

    return ProblemFile(
        problem=problem,
        context=str(context).strip() if context else None,
        rounds=rounds,
        source=str(file_path),
    )
