"""OpenTelemetry trace maker.

Install the ``otel`` extra (``pip install vrest[otel]``) to use it::

    from opentelemetry import trace
    from vrest.otel import OTelTraceMaker

    client.set_trace_maker(OTelTraceMaker(trace.get_tracer("orders-client")))

Each request becomes a span named ``http.request <METHOD> <URL>`` carrying
the method, URL, headers without ``Authorization`` and, when body tracing
is on, the request body. After the call the status code, response headers
and (optionally) the response body are added. The span context is
propagated into the outgoing request headers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry import propagate, trace
from opentelemetry.trace import Status, StatusCode

from vrest.trace import Trace, TraceMaker, header_without_auth

if TYPE_CHECKING:
    from vrest.request import Request


class OTelTrace(Trace):
    def __init__(self, span: trace.Span) -> None:
        self.span = span

    def on_after_request(self, req: Request) -> None:
        resp = req.response
        self.span.set_attribute("http.status_code", resp.status_code)
        self.span.set_attribute(
            "http.response_header", str(dict(header_without_auth(resp.headers)))
        )
        if resp.trace_body:
            self.span.set_attribute("http.response_body", resp.text)
        if resp.error is not None:
            self.span.set_status(Status(StatusCode.ERROR, str(resp.error)))

    def end(self) -> None:
        self.span.end()


class OTelTraceMaker(TraceMaker):
    """Creates one OpenTelemetry span per request.

    Args:
        tracer: The tracer spans are started on.
    """

    def __init__(self, tracer: trace.Tracer) -> None:
        self.tracer = tracer

    def new_trace(self, req: Request) -> Trace:
        raw = req.raw
        attributes = {
            "http.method": req.method,
            "http.url": req.url,
            "http.header": str(dict(header_without_auth(raw.headers))),
        }
        if req.trace_body and req.body_bytes:
            attributes["http.body"] = req.body_bytes.decode("utf-8", errors="replace")

        span = self.tracer.start_span(f"http.request {req.method} {req.url}", attributes=attributes)
        carrier: dict[str, str] = {}
        propagate.inject(carrier, context=trace.set_span_in_context(span))
        for key, value in carrier.items():
            raw.headers[key] = value
        return OTelTrace(span)
