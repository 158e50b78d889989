"""Trace correlation for structured log records.

Records carry the ids of the innermost span opened through ``create_span``.
Outside any span a random trace id is generated once per context, so records
from the same call chain still group together.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import TYPE_CHECKING
from uuid import uuid4


if TYPE_CHECKING:
    from opentelemetry.trace import Span

trace_context: ContextVar[dict[str, str] | None] = ContextVar("trace_context", default=None)


def get_trace_context() -> dict[str, str]:
    """Ids to stamp on the next log record."""
    ctx = trace_context.get()
    if not ctx:
        ctx = {"trace_id": uuid4().hex, "span_id": uuid4().hex[:16]}
        trace_context.set(ctx)
    return ctx


def span_ids(span: Span) -> dict[str, str]:
    ctx = span.get_span_context()
    return {
        "trace_id": format(ctx.trace_id, "032x"),
        "span_id": format(ctx.span_id, "016x"),
    }


def bind_span(span: Span) -> Token:
    """Correlate log records with ``span`` until the returned token is reset."""
    return trace_context.set(span_ids(span))
