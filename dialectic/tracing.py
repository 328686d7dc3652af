"""Optional tracing: a decorator over Agent that records a span per agent call and per tool call.

Spans are always kept in memory and logged at DEBUG. With a LangfuseExporter
they are also sent to Langfuse, nested under one root span per debate run.
Export problems are logged as warnings and never interrupt the traced call.
"""

import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from langfuse import Langfuse

from config.config_loader import AgentConfig
from dialectic.agent import Agent
from dialectic.context import ContextPreparationResult, DebateContext
from dialectic.models import AgentResponse, ClarificationItem, Contribution, utcnow
from dialectic.tools.base import ToolImplementation, ToolRegistry

logger = logging.getLogger(__name__)

SPAN_OK = "ok"
SPAN_ERROR = "error"

LANGFUSE_PUBLIC_KEY_ENV = "LANGFUSE_PUBLIC_KEY"
LANGFUSE_SECRET_KEY_ENV = "LANGFUSE_SECRET_KEY"
LANGFUSE_BASE_URL_ENV = "LANGFUSE_BASE_URL"
DEFAULT_LANGFUSE_BASE_URL = "https://cloud.langfuse.com"


@dataclass
class SpanRecord:
    name: str
    agent_id: str
    started_at: str
    duration_ms: int = 0
    status: str = SPAN_OK
    error: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)


# --- Langfuse export ---

class LangfuseExporter:
    """Mirrors finished spans to Langfuse under a single root span."""

    def __init__(self, client: Langfuse, trace_name: str, metadata: dict[str, Any] | None = None) -> None:
        self._client = client
        self._root = client.start_span(name=trace_name, metadata=metadata or {})

    def start(self, name: str, attributes: dict[str, Any], parent: Any = None) -> Any:
        owner = parent if parent is not None else self._root
        return owner.start_span(name=name, metadata=dict(attributes))

    def finish(self, handle: Any, record: SpanRecord) -> None:
        metadata = {**record.attributes, "agent_id": record.agent_id, "duration_ms": record.duration_ms}
        if record.status == SPAN_ERROR:
            handle.update(metadata=metadata, level="ERROR", status_message=record.error)
        else:
            handle.update(metadata=metadata)
        handle.end()

    def close(self) -> None:
        self._root.end()
        self._client.flush()


def create_langfuse_exporter(trace_name: str, metadata: dict[str, Any] | None = None) -> LangfuseExporter | None:
    """Build an exporter from the LANGFUSE_* environment variables.

    Returns None, after a warning, when a key is missing or the client
    cannot be created; spans are then only kept locally.
    """
    public_key = os.environ.get(LANGFUSE_PUBLIC_KEY_ENV, "").strip()
    secret_key = os.environ.get(LANGFUSE_SECRET_KEY_ENV, "").strip()
    for env_name, value in ((LANGFUSE_PUBLIC_KEY_ENV, public_key), (LANGFUSE_SECRET_KEY_ENV, secret_key)):
        if not value:
            logger.warning("%s is not set, Langfuse export disabled", env_name)
            return None
    host = os.environ.get(LANGFUSE_BASE_URL_ENV, "").strip() or DEFAULT_LANGFUSE_BASE_URL

    try:
        client = Langfuse(public_key=public_key, secret_key=secret_key, host=host)
        exporter = LangfuseExporter(client, trace_name, metadata)
    except Exception as exc:
        logger.warning("Failed to create Langfuse trace %s: %s", trace_name, exc)
        return None
    logger.info("Exporting trace %s to %s", trace_name, host)
    return exporter


# --- Tracer ---

@dataclass
class _ActiveSpan:
    tracer: "Tracer"
    record: SpanRecord
    handle: Any = None


# Innermost open span of the running task; nests exported spans and routes tool spans.
_active_span: ContextVar[_ActiveSpan | None] = ContextVar("dialectic_active_span", default=None)


class Tracer:
    """Collects spans in memory and logs each one at DEBUG when it ends."""

    def __init__(self, exporter: LangfuseExporter | None = None) -> None:
        self.spans: list[SpanRecord] = []
        self._exporter = exporter

    def _export_start(self, name: str, attributes: dict[str, Any]) -> Any:
        if self._exporter is None:
            return None
        parent = _active_span.get()
        parent_handle = parent.handle if parent is not None and parent.tracer is self else None
        try:
            return self._exporter.start(name, attributes, parent_handle)
        except Exception as exc:
            logger.warning("Langfuse tracing failed for %s: %s", name, exc)
            return None

    def _export_finish(self, handle: Any, record: SpanRecord) -> None:
        if handle is None:
            return
        try:
            self._exporter.finish(handle, record)
        except Exception as exc:
            logger.warning("Langfuse tracing failed for %s: %s", record.name, exc)

    @contextmanager
    def span(self, name: str, agent_id: str, **attributes: Any) -> Iterator[SpanRecord]:
        record = SpanRecord(name=name, agent_id=agent_id, started_at=utcnow().isoformat(), attributes=attributes)
        handle = self._export_start(name, attributes)
        token = _active_span.set(_ActiveSpan(self, record, handle))
        start = time.monotonic()
        try:
            yield record
        except Exception as exc:
            record.status = SPAN_ERROR
            record.error = str(exc)
            raise
        finally:
            _active_span.reset(token)
            record.duration_ms = int((time.monotonic() - start) * 1000)
            self.spans.append(record)
            self._export_finish(handle, record)
            logger.debug(
                "span %s agent=%s status=%s duration=%dms%s",
                name, agent_id, record.status, record.duration_ms,
                f" error={record.error}" if record.error else "",
            )

    def close(self) -> None:
        """End the root span and flush pending exports."""
        if self._exporter is None:
            return
        try:
            self._exporter.close()
        except Exception as exc:
            logger.warning("Failed to flush Langfuse traces: %s", exc)


# --- Agent and tool decorators ---

class _TracedTool(ToolImplementation):
    """Records a span in whichever tracer owns the enclosing agent span."""

    def __init__(self, inner: ToolImplementation) -> None:
        self._inner = inner
        self.name = inner.name
        self.schema = inner.schema

    def invoke(self, arguments: str, context: DebateContext | None = None) -> str:
        active = _active_span.get()
        if active is None:
            return self._inner.invoke(arguments, context)
        with active.tracer.span(f"tool-{self.name}", active.record.agent_id, arguments=arguments) as span:
            result = self._inner.invoke(arguments, context)
            span.attributes["result_chars"] = len(result)
            return result

    def execute(self, args: dict[str, Any], context: DebateContext | None = None) -> str:
        return self._inner.execute(args, context)


class TracingToolRegistry(ToolRegistry):
    """Registry whose lookups return span-recording wrappers around the original tools."""

    def __init__(self, inner: ToolRegistry) -> None:
        super().__init__()
        for tool_name in inner.names():
            tool = inner.get(tool_name)
            if tool is not None:
                self.register(_TracedTool(tool))


class TracingAgent:
    """Wraps an Agent; same interface, every call recorded as a span.

    The agent's tool registry is wrapped once, however many decorators are stacked.
    """

    def __init__(self, agent: Agent, tracer: Tracer) -> None:
        self._agent = agent
        self._tracer = tracer
        if not isinstance(agent.tool_registry, TracingToolRegistry):
            agent.tool_registry = TracingToolRegistry(agent.tool_registry)

    @property
    def wrapped(self) -> Agent:
        return self._agent

    @property
    def config(self) -> AgentConfig:
        return self._agent.config

    @property
    def id(self) -> str:
        return self._agent.id

    @property
    def role(self) -> str:
        return self._agent.role

    def __getattr__(self, name: str) -> Any:
        # prompt sources, summary config and the like pass straight through
        return getattr(self._agent, name)

    def _attach(self, span: SpanRecord, response: AgentResponse) -> AgentResponse:
        meta = response.metadata
        span.attributes.update(
            model=meta.model,
            tokens_used=meta.tokens_used,
            tool_call_iterations=meta.tool_call_iterations,
        )
        return response

    async def propose(self, problem: str, context: DebateContext | None = None) -> AgentResponse:
        with self._tracer.span(f"agent-propose-{self.id}", self.id) as span:
            return self._attach(span, await self._agent.propose(problem, context))

    async def critique(self, proposal: Contribution, context: DebateContext | None = None) -> AgentResponse:
        with self._tracer.span(f"agent-critique-{self.id}", self.id, target=proposal.agent_id) as span:
            return self._attach(span, await self._agent.critique(proposal, context))

    async def refine(
        self,
        original: Contribution,
        critiques: list[Contribution],
        context: DebateContext | None = None,
    ) -> AgentResponse:
        with self._tracer.span(f"agent-refine-{self.id}", self.id, critiques=len(critiques)) as span:
            return self._attach(span, await self._agent.refine(original, critiques, context))

    async def ask_clarifying_questions(
        self, problem: str, context: DebateContext | None = None
    ) -> list[ClarificationItem]:
        with self._tracer.span(f"agent-askClarifyingQuestions-{self.id}", self.id) as span:
            items = await self._agent.ask_clarifying_questions(problem, context)
            span.attributes["questions"] = len(items)
            return items

    def should_summarize(self, context: DebateContext) -> bool:
        return self._agent.should_summarize(context)

    async def prepare_context(self, context: DebateContext, round_number: int) -> ContextPreparationResult:
        with self._tracer.span(f"agent-prepareContext-{self.id}", self.id, round=round_number) as span:
            result = await self._agent.prepare_context(context, round_number)
            span.attributes["summarized"] = result.summary is not None
            return result
