"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from content_search.observability.context import bind_span, get_trace_context, trace_context
from content_search.observability.logging import JsonFormatter, configure_logging
from content_search.observability.metrics import (
    CACHE_LOOKUPS,
    INDEX_DOC_COUNT,
    INDEX_REBUILD_COUNT,
    INVALIDATION_COUNT,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from content_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "CACHE_LOOKUPS",
    "INDEX_DOC_COUNT",
    "INDEX_REBUILD_COUNT",
    "INVALIDATION_COUNT",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "bind_span",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "trace_context",
    "track_latency",
]
