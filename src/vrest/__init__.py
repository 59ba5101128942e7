"""vrest -- a configurable REST client on top of httpx.

vrest builds requests, executes them through a pluggable transport and
decodes responses into typed values, with hooks for authentication,
tracing and content negotiation. Every step of the pipeline can be
overridden per client or per request.

Typical use::

    from vrest import Client, StructuredTarget

    client = Client.with_timeout(10).set_base_url("https://api.example.com")
    order = StructuredTarget(Order)
    client.new_request().set_response_body(order).do_get("/orders/{id}", "id", "7")

Modules:
    client: The client, its extension points and the default pipeline.
    request: Per-call request state and the request builder.
    response: Response state and response processing.
    body: Request body and response destination unions.
    codecs: Default JSON/XML codecs.
    token: Bearer tokens and the single-flight token cache.
    oauth: OAuth client-credentials token getter.
    trace: Tracing hooks; ``otel`` adds OpenTelemetry spans.
    path: Path templating and URL resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    config: Client configuration loading.
    output: stdout/stderr output and the default logger sink.
    testing: Mock transports for tests.
"""

__version__ = "0.1.0"

from vrest.body import (  # noqa: E402
    ContentLength,
    RawBytes,
    RawBytesTarget,
    Stream,
    StreamTarget,
    Structured,
    StructuredTarget,
    Text,
)
from vrest.client import Client, Overridables  # noqa: E402
from vrest.context import Context  # noqa: E402
from vrest.exceptions import (  # noqa: E402
    InvalidRequestError,
    StatusError,
    TokenError,
    TransportError,
    UnmarshalError,
    VrestError,
    find_error,
)
from vrest.models import ClientConfig, OAuthConfig, OAuthToken  # noqa: E402
from vrest.request import Request  # noqa: E402
from vrest.token import Token, TokenGetter  # noqa: E402

__all__ = [
    "Client",
    "ClientConfig",
    "ContentLength",
    "Context",
    "InvalidRequestError",
    "OAuthConfig",
    "OAuthToken",
    "Overridables",
    "RawBytes",
    "RawBytesTarget",
    "Request",
    "StatusError",
    "Stream",
    "StreamTarget",
    "Structured",
    "StructuredTarget",
    "Text",
    "Token",
    "TokenError",
    "TokenGetter",
    "TransportError",
    "UnmarshalError",
    "VrestError",
    "find_error",
]
