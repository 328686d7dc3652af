"""Role prompt registry. Roles are data: one RolePrompts entry per role identifier."""

import logging
from dataclasses import dataclass

from dialectic.context import DebateContext, prepend_context

logger = logging.getLogger(__name__)

REQUIREMENTS_COVERAGE_SECTION_TITLE = "Requirements Coverage"

_SHARED_SYSTEM = """
## General Guidelines

- Avoid code snippets unless essential to illustrate a complex technical point
- Prioritize conceptual clarity over implementation details
- Use clear, direct, and simple language
- Be concise but complete

## Requirements-First Approach

Ensure every major requirement inferred from the problem statement (and any clarifications) is explicitly covered.
Clarifications provided during the debate are authoritative.

- Major requirements use strong language: "must", "shall", "required", "critical", "essential"
- Minor requirements are preferences: "should", "preferably", "ideally", "if possible"
"""

_SHARED_PROPOSAL = f"""

## {REQUIREMENTS_COVERAGE_SECTION_TITLE} (Required Section)

End your proposal with a {REQUIREMENTS_COVERAGE_SECTION_TITLE} section that lists the major requirements,
maps each one to the parts of your design that fulfil it, lists your assumptions, and names any
requirement that cannot be met under the given constraints.
"""

_SHARED_CRITIQUE = """

## Critique Guidelines

- Check whether every major requirement is addressed; flag any that are missing
- Separate critical issues from minor improvements
- Be specific and actionable; reference concrete parts of the proposal
"""

_SHARED_REFINEMENT = f"""

## Refinement Guidelines

- Address each valid critique explicitly, or explain why you reject it
- Keep what was strong; do not restart from scratch
- Keep the {REQUIREMENTS_COVERAGE_SECTION_TITLE} section up to date
"""

_CLARIFY_INSTRUCTIONS = """
Respond with ONLY a JSON object, no prose and no code fences, in this schema:
{"questions": [{"text": "..."}]}
Return {"questions": []} if the problem is already clear enough.
"""


@dataclass(frozen=True)
class RolePrompts:
    """Prompt templates for one role. Builders share structure; the role supplies the lens."""

    role: str
    title: str               # e.g. "software architect"
    system_body: str
    proposal_sections: str   # markdown skeleton the proposal should follow
    critique_focus: str
    summary_focus: str

    @property
    def system_prompt(self) -> str:
        return self.system_body.strip() + "\n" + _SHARED_SYSTEM

    def propose_prompt(self, problem: str, context: DebateContext | None = None) -> str:
        base = (
            f"Problem to solve:\n{problem}\n\n"
            f"As a {self.title}, propose a comprehensive solution.\n\n"
            f"Use the following Markdown structure in your response:\n{self.proposal_sections.strip()}\n"
        )
        return prepend_context(base, context) + _SHARED_PROPOSAL

    def critique_prompt(self, proposal: str, context: DebateContext | None = None) -> str:
        base = (
            f"Review this proposal from the perspective of a {self.title}.\n\n"
            f"Proposal:\n{proposal}\n\n"
            f"Focus on: {self.critique_focus}\n\n"
            "Structure your critique as: Strengths, Weaknesses and Risks, "
            "Improvement Suggestions, Critical Issues, Overall Assessment.\n"
        )
        return prepend_context(base, context) + _SHARED_CRITIQUE

    def refine_prompt(self, original: str, critiques_text: str, context: DebateContext | None = None) -> str:
        base = (
            f"Original proposal:\n{original}\n\n"
            f"Critiques:\n{critiques_text or '(no critiques were received)'}\n\n"
            "Refine your proposal by addressing valid concerns, incorporating good suggestions, "
            "and strengthening the solution. Return the complete refined proposal.\n"
        )
        return prepend_context(base, context) + _SHARED_REFINEMENT

    def summarize_prompt(self, content: str, max_length: int) -> str:
        return (
            f"You are summarizing the debate history so far from the perspective of a {self.title}.\n"
            f"Preserve: {self.summary_focus}\n"
            "Keep the decisions you made, the critiques you accepted or rejected, and open questions.\n"
            f"The summary must not exceed {max_length} characters.\n\n"
            f"Debate history to summarize:\n{content}\n"
        )

    def clarify_prompt(self, problem: str, context: DebateContext | None = None) -> str:
        base = (
            f"Problem to clarify:\n{problem}\n\n"
            f"As a {self.title}, ask the clarifying questions whose answers would most change your design. "
            "Ask only questions that matter; zero questions is a valid answer.\n"
        )
        return prepend_context(base, context) + _CLARIFY_INSTRUCTIONS


ROLE_PROMPTS: dict[str, RolePrompts] = {
    "architect": RolePrompts(
        role="architect",
        title="software architect",
        system_body="""
You are an expert software architect specializing in distributed systems and scalable architecture design.
Your focus: component boundaries, interfaces, architectural patterns, data flow, state management,
scalability and operational concerns.
""",
        proposal_sections="""
### Architecture Overview
### Key Components and Responsibilities
### Data Flow and Interactions
### Architectural Patterns and Rationale
### Non-Functional Considerations
### Key Challenges and Trade-offs
""",
        critique_focus="component boundaries, data ownership, coupling, fault tolerance and operational complexity",
        summary_focus="the architecture, component responsibilities and the main trade-offs",
    ),
    "performance": RolePrompts(
        role="performance",
        title="performance engineer",
        system_body="""
You are a performance engineer specializing in latency, throughput, resource efficiency and capacity planning.
Your focus: hot paths, caching, concurrency, data access patterns, algorithmic complexity and load behaviour.
""",
        proposal_sections="""
### Performance Overview
### Critical Paths and Bottlenecks
### Caching and Data Access Strategy
### Concurrency and Resource Management
### Capacity Planning and Scaling
### Measurement and Trade-offs
""",
        critique_focus="bottlenecks, latency budgets, resource usage, scalability limits and missing measurements",
        summary_focus="performance goals, identified bottlenecks and chosen optimizations",
    ),
    "security": RolePrompts(
        role="security",
        title="security specialist",
        system_body="""
You are a security specialist focused on threat modeling, secure design and compliance.
Your focus: authentication, authorization, data protection, attack surface, auditability and abuse cases.
""",
        proposal_sections="""
### Security Overview
### Threat Model
### Authentication and Authorization
### Data Protection
### Monitoring, Auditing and Incident Response
### Compliance and Trade-offs
""",
        critique_focus="threats left unmitigated, weak trust boundaries, data exposure and missing controls",
        summary_focus="the threat model, the controls chosen and unresolved risks",
    ),
    "testing": RolePrompts(
        role="testing",
        title="test engineer",
        system_body="""
You are a test engineer focused on testability, verification strategy and quality assurance.
Your focus: test levels, failure modes, observability for verification and release confidence.
""",
        proposal_sections="""
### Testing Overview
### Testability of the Design
### Test Strategy by Level
### Failure Modes and Edge Cases
### Tooling and Automation
### Risks and Trade-offs
""",
        critique_focus="untestable components, unverified failure modes and gaps in the test strategy",
        summary_focus="the test strategy, known edge cases and quality risks",
    ),
    "generalist": RolePrompts(
        role="generalist",
        title="senior engineer",
        system_body="""
You are a senior engineer with broad experience across architecture, delivery and operations.
You weigh simplicity, cost, risk and time-to-market together.
""",
        proposal_sections="""
### Solution Overview
### Main Components
### How It Works
### Risks and Trade-offs
### Delivery Plan
""",
        critique_focus="overall soundness, hidden complexity, cost and delivery risk",
        summary_focus="the solution outline, major decisions and open risks",
    ),
    "kiss": RolePrompts(
        role="kiss",
        title="simplicity advocate",
        system_body="""
You advocate for the simplest solution that fully meets the requirements (Keep It Simple).
You challenge speculative generality, unnecessary components and premature optimization.
""",
        proposal_sections="""
### Simplest Viable Solution
### What We Deliberately Leave Out
### When This Stops Being Enough
### Trade-offs
""",
        critique_focus="unneeded components, speculative features and complexity without a matching requirement",
        summary_focus="the minimal design and what was deliberately excluded",
    ),
    "data-modeling": RolePrompts(
        role="data-modeling",
        title="data modeling specialist",
        system_body="""
You are a data modeling specialist focused on entities, relationships, consistency and data lifecycle.
Your focus: schemas, ownership, integrity constraints, access patterns, migrations and retention.
""",
        proposal_sections="""
### Data Model Overview
### Entities and Relationships
### Consistency and Integrity
### Access Patterns and Storage Choices
### Evolution and Migration
### Trade-offs
""",
        critique_focus="ambiguous ownership, integrity gaps, mismatched access patterns and migration risk",
        summary_focus="the data model, consistency decisions and storage choices",
    ),
}

JUDGE_SYSTEM_PROMPT = (
    "You are an expert technical judge responsible for synthesizing the best solution "
    "from multiple agent proposals and debates.\n"
    "Be objective and evidence-based; combine complementary ideas; address concerns; "
    "provide recommendations and a confidence score."
)

JUDGE_SYNTHESIS_INSTRUCTIONS = (
    "Synthesize the best solution incorporating the strongest ideas, addressing concerns, "
    "with clear recommendations and a confidence score."
)


def judge_summary_prompt(content: str, max_length: int) -> str:
    return (
        "You are the judge of this debate and will synthesize the final solution from it.\n"
        "Condense the debate below into the material you need for that synthesis: "
        "the decisions taken and their rationale, the trade-offs weighed, "
        "recommendations and concerns still standing, and how the solution changed across rounds.\n"
        f"The summary must not exceed {max_length} characters.\n\n"
        f"Debate history to summarize:\n{content}\n"
    )


def get_prompts_for_role(role: str) -> RolePrompts:
    """Look up a role's prompts. Unknown roles fall back to the generalist with a warning."""
    prompts = ROLE_PROMPTS.get(role)
    if prompts is None:
        logger.warning("No prompts for role %r, using generalist prompts", role)
        return ROLE_PROMPTS["generalist"]
    return prompts
