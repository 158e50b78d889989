"""Unit tests for observability module."""

import json
import logging

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY, Counter
import pytest

from content_search.domain.model import DocumentType
from content_search.observability import (
    INDEX_DOC_COUNT,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    JsonFormatter,
    bind_span,
    configure_logging,
    create_span,
    get_metrics,
    get_metrics_content_type,
    get_trace_context,
    init_tracing,
    trace_context,
    track_latency,
    tracing as tracing_module,
)
from content_search.observability.metrics import MetricBridge


def _record(msg="test message", name="content_search.search_service", **extra):
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def span_exporter(monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setitem(tracing_module._tracer_holder, "tracer", provider.get_tracer("test"))
    return exporter


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("content_search.services").setLevel(logging.NOTSET)


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        token = trace_context.set({"trace_id": "a" * 32, "span_id": "b" * 16})
        try:
            output = json.loads(JsonFormatter().format(_record()))
        finally:
            trace_context.reset(token)

        assert output["message"] == "test message"
        assert output["level"] == "INFO"
        assert output["trace_id"] == "a" * 32
        assert output["span_id"] == "b" * 16
        assert output["component"] == "search_service"

    def test_format_includes_extra_fields(self):
        output = json.loads(JsonFormatter().format(_record(document_type="post", documents=5)))

        assert output["document_type"] == "post"
        assert output["documents"] == 5

    def test_format_truncates_and_redacts(self):
        output = json.loads(
            JsonFormatter().format(_record(msg="x" * 3000, redis_url="redis://:secret@cache:6379/0", note="y" * 600))
        )

        assert len(output["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3
        assert output["redis_url"] == "[REDACTED]"
        assert output["note"].endswith("...")

    def test_json_default_handles_sets_and_bytes(self):
        output = json.loads(JsonFormatter().format(_record(ids={3, 1, 2}, raw=b"abc")))

        assert output["ids"] == [1, 2, 3]
        assert output["raw"] == "abc"


@pytest.mark.unit
class TestTraceContext:
    def test_get_trace_context_generates_ids_outside_spans(self):
        token = trace_context.set(None)
        try:
            ctx = get_trace_context()
            assert get_trace_context() is ctx
        finally:
            trace_context.reset(token)

        assert len(ctx["trace_id"]) == 32
        assert len(ctx["span_id"]) == 16

    def test_bind_span_uses_span_ids(self, span_exporter):
        span = tracing_module.get_tracer().start_span("unit")
        token = bind_span(span)
        try:
            expected = span.get_span_context()
            assert get_trace_context() == {
                "trace_id": format(expected.trace_id, "032x"),
                "span_id": format(expected.span_id, "016x"),
            }
        finally:
            trace_context.reset(token)
            span.end()


@pytest.mark.unit
class TestTracing:
    """Tests for OpenTelemetry tracing."""

    def test_init_tracing_applies_resource_attributes(self):
        provider = init_tracing("test-service", resource_attributes={"service.version": "2.0.0"})
        assert provider.resource.attributes["service.version"] == "2.0.0"

    def test_create_span_sets_attributes_and_span_id(self, span_exporter):
        with create_span("search.posts", attributes={"search.query": "python", "search.page": 1, "skip": None}) as span:
            span_id = format(span.get_span_context().span_id, "016x")
            assert get_trace_context()["span_id"] == span_id

        finished = span_exporter.get_finished_spans()
        assert [s.name for s in finished] == ["search.posts"]
        assert finished[0].attributes["search.query"] == "python"
        assert "skip" not in finished[0].attributes

    def test_create_span_restores_outer_context(self, span_exporter):
        outer = {"trace_id": "c" * 32, "span_id": "d" * 16}
        token = trace_context.set(outer)
        try:
            with create_span("search.outer") as parent:
                with create_span("search.inner"):
                    assert get_trace_context()["trace_id"] == format(parent.get_span_context().trace_id, "032x")
                assert get_trace_context()["span_id"] == format(parent.get_span_context().span_id, "016x")
            assert get_trace_context() == outer
        finally:
            trace_context.reset(token)

    def test_create_span_records_exception(self, span_exporter):
        with pytest.raises(RuntimeError), create_span("index.rebuild"):
            raise RuntimeError("boom")

        finished = span_exporter.get_finished_spans()[0]
        assert finished.status.status_code == StatusCode.ERROR
        assert any(event.name == "exception" for event in finished.events)

    def test_services_emit_spans(self, span_exporter, engine):
        engine.suggestions.suggest("python")

        names = [span.name for span in span_exporter.get_finished_spans()]
        assert "index.rebuild" in names
        assert "search.suggest" in names


@pytest.mark.unit
class TestMetrics:
    def test_counter_is_exported(self):
        SEARCH_COUNT.labels(search_type="unit", outcome="hit").inc()

        assert b"content_search_queries_total" in get_metrics()
        assert REGISTRY.get_sample_value(
            "content_search_queries_total",
            {"search_type": "unit", "outcome": "hit"},
        ) >= 1

    def test_gauge_tracks_latest_value(self):
        INDEX_DOC_COUNT.labels(document_type="unit").set(10)
        INDEX_DOC_COUNT.labels(document_type="unit").set(4)

        assert REGISTRY.get_sample_value("content_search_index_documents", {"document_type": "unit"}) == 4

    def test_track_latency_records_histogram(self):
        labels = {"search_type": "latency-unit"}
        before = REGISTRY.get_sample_value("content_search_latency_seconds_count", labels) or 0

        with track_latency(SEARCH_LATENCY, **labels):
            pass

        assert REGISTRY.get_sample_value("content_search_latency_seconds_count", labels) == before + 1

    def test_rebuilds_are_counted(self, engine):
        labels = {"document_type": "category"}
        before = REGISTRY.get_sample_value("content_search_index_rebuilds_total", labels) or 0

        engine.index_store.get_index(DocumentType.CATEGORY)

        assert REGISTRY.get_sample_value("content_search_index_rebuilds_total", labels) == before + 1

    def test_metric_bridge_unknown_kind_raises(self):
        bridge = MetricBridge(
            Counter("unit_bridge_total", "Bridge test", ["kind"], registry=None),
            otel_name="unit_bridge_total",
            otel_description="Bridge test",
            otel_kind="summary",
        )
        with pytest.raises(ValueError):
            bridge.labels(kind="x").inc()

    def test_get_metrics_content_type(self):
        assert "text/plain" in get_metrics_content_type()


@pytest.mark.unit
class TestConfigureLogging:
    def test_sets_level_and_json_handler(self, restore_root_logger):
        configure_logging("debug", json_output=True)

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("redis").level == logging.WARNING

    def test_plain_formatter_and_overrides(self, restore_root_logger):
        configure_logging("warning", json_output=False, logger_levels={"content_search.services": "debug"})

        assert restore_root_logger.level == logging.WARNING
        assert not isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("content_search.services").level == logging.DEBUG
