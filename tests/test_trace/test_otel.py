"""Tests for vrest.otel -- OpenTelemetry spans and context propagation."""

from __future__ import annotations

import httpx
import pytest

pytest.importorskip("opentelemetry.sdk")

from opentelemetry.sdk.trace import TracerProvider  # noqa: E402
from opentelemetry.sdk.trace.export import SimpleSpanProcessor  # noqa: E402
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter  # noqa: E402
from opentelemetry.trace import StatusCode  # noqa: E402

from vrest.exceptions import StatusError  # noqa: E402
from vrest.otel import OTelTraceMaker  # noqa: E402


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def trace_maker(exporter) -> OTelTraceMaker:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return OTelTraceMaker(provider.get_tracer("vrest-tests"))


def test_span_attributes_and_propagation(make_client, exporter, trace_maker) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="pong", headers={"Content-Type": "text/plain"})

    client = make_client(handler).set_trace_maker(trace_maker).set_bearer_auth("hidden")
    client.new_request().set_content_type("text/plain").set_body("ping").do_post("/x")

    (span,) = exporter.get_finished_spans()
    assert span.name == "http.request POST https://api.example.com/x"
    assert span.attributes["http.method"] == "POST"
    assert span.attributes["http.url"] == "https://api.example.com/x"
    assert span.attributes["http.body"] == "ping"
    assert span.attributes["http.status_code"] == 200
    assert span.attributes["http.response_body"] == "pong"
    assert "hidden" not in span.attributes["http.header"]

    traceparent = seen[0].headers["traceparent"]
    assert format(span.context.trace_id, "032x") in traceparent


def test_failed_call_marks_span_error(make_client, exporter, trace_maker) -> None:
    client = make_client(lambda request: httpx.Response(503)).set_trace_maker(trace_maker)
    with pytest.raises(StatusError):
        client.new_request().do_get("/x")

    (span,) = exporter.get_finished_spans()
    assert span.status.status_code == StatusCode.ERROR
    assert span.attributes["http.status_code"] == 503
