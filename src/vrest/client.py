"""The REST client: shared configuration, extension points and the default pipeline.

:class:`Client` is long-lived and safe to share between threads once
configured. Each call gets its own :class:`~vrest.request.Request` from
:meth:`Client.new_request`; the only state the calls share is the token
cache, which synchronizes itself.

Every step of the pipeline is an entry of :class:`Overridables`, so a
caller can replace exactly one piece (the transport, the success predicate,
a codec, or the whole ``do``) and keep the defaults for the rest::

    client = Client().set_base_url("https://api.example.com").set_content_type_json()
    client.overridables.is_success = lambda req: req.response.status_code < 400

The module-level functions :func:`do`, :func:`do_http_request` and
:func:`is_success` are the defaults; they can be called from overrides.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, Optional

import httpx

from vrest import codecs
from vrest.body import StructuredTarget
from vrest.context import Context
from vrest.exceptions import TransportError, VrestError
from vrest.models import ClientConfig, OAuthConfig
from vrest.output import OutputManager, get_output
from vrest.request import Request, encode_basic_auth
from vrest.response import close_raw_response, process_http_response
from vrest.token import TokenCache, TokenGetter
from vrest.trace import LoggingTraceMaker, TraceMaker

Doer = Callable[[Request], None]
HTTPDoer = Callable[[Request], httpx.Response]


def do(req: Request) -> None:
    """Default end-to-end execution of *req*.

    Builds the envelope, opens a trace, calls the transport, processes the
    response and closes the response body on every exit path, except when
    a stream destination took ownership of it.

    Raises:
        VrestError: Any failure; also stored on ``req.response.error``.
    """
    try:
        req.build()
    except VrestError as exc:
        req.response.error = exc
        raise

    trace = req.client.trace_maker.new_trace(req)
    try:
        raw: Optional[httpx.Response] = None
        transport_error: Optional[BaseException] = None
        try:
            raw = req.overridables.do_http_request(req)
        except (httpx.HTTPError, OSError, TransportError) as exc:
            transport_error = exc

        try:
            process_http_response(req, raw, transport_error)
        except VrestError as exc:
            req.response.error = exc
        finally:
            close_raw_response(req)

        trace.on_after_request(req)
    finally:
        trace.end()

    if req.response.error is not None:
        raise req.response.error


def do_http_request(req: Request) -> httpx.Response:
    """Default transport: send the envelope through the client's :class:`httpx.Client`.

    The response is opened in streaming mode; the body is read (or handed
    to the caller) by the response processor. A cancelled or expired
    context aborts before sending, and the remaining time of a deadline
    caps the transport timeout.

    Raises:
        TransportError: The context is already done.
        httpx.HTTPError: Any transport failure.
    """
    ctx_error = req.context.error()
    if ctx_error is not None:
        raise TransportError(ctx_error)

    remaining = req.context.remaining()
    if remaining is not None:
        req.raw.extensions["timeout"] = httpx.Timeout(remaining).as_dict()

    return req.client.http_client.send(req.raw, stream=True)


def is_success(req: Request) -> bool:
    """Default success predicate.

    The explicit success status codes of the response win over the
    ``200 <= status < 300`` range check.
    """
    resp = req.response
    if resp.raw is None:
        return False
    if resp.success_status_codes:
        return resp.status_code in resp.success_status_codes
    return 200 <= resp.status_code < 300


@dataclasses.dataclass
class Overridables:
    """The replaceable steps of the request pipeline.

    Each request copies the client's instance when it is created, so
    assigning a field on ``request.overridables`` affects that request only.
    """

    do: Doer = do
    do_http_request: HTTPDoer = do_http_request
    is_success: Callable[[Request], bool] = is_success
    json_marshal: Callable[[Request, Any], bytes] = codecs.json_marshal
    json_unmarshal: Callable[..., None] = codecs.json_unmarshal
    xml_marshal: Callable[[Request, Any], bytes] = codecs.xml_marshal
    xml_unmarshal: Callable[..., None] = codecs.xml_unmarshal


class Client:
    """Configurable REST client.

    Setters return the client for chaining. They mutate shared state and
    are meant for setup, not for use while requests are in flight.

    Args:
        http_client: The :class:`httpx.Client` used by the default
            transport. A client without timeout is created when omitted.

    Example::

        client = (
            Client.with_timeout(10)
            .set_base_url("https://api.example.com")
            .set_content_type_json()
            .set_error_body_type(ApiError)
        )
        order = StructuredTarget(Order)
        client.new_request().set_response_body(order).do_get("/orders/{id}", "id", "7")
    """

    def __init__(self, http_client: Optional[httpx.Client] = None) -> None:
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=None)
        self.base_url = ""
        self.content_type = ""
        self.authorization = ""
        self.response_body_limit = 0
        self.trace_bodies = True
        self.error_body_type: Optional[type] = None
        self.token_cache: Optional[TokenCache] = None
        self.overridables = Overridables()
        self.trace_maker: TraceMaker = LoggingTraceMaker()
        self._logger: Optional[OutputManager] = None

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def with_timeout(cls, timeout: float) -> Client:
        """Create a client whose transport times out after *timeout* seconds (0 = never)."""
        client = cls(httpx.Client(timeout=timeout or None))
        client._owns_http_client = True
        return client

    @classmethod
    def with_http_client(cls, http_client: httpx.Client) -> Client:
        """Create a client on top of a caller-owned :class:`httpx.Client`."""
        return cls(http_client)

    @classmethod
    def from_config(cls, config: ClientConfig) -> Client:
        """Create a client from a :class:`~vrest.models.ClientConfig`."""
        client = cls(httpx.Client(timeout=config.timeout or None, verify=config.verify_ssl))
        client._owns_http_client = True
        client.set_base_url(config.base_url)
        client.set_content_type(config.content_type)
        client.set_authorization(config.authorization)
        client.set_response_body_limit(config.response_body_limit)
        client.set_trace_bodies(config.trace_bodies)
        if config.oauth is not None:
            client.set_oauth(config.oauth)
        return client

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client` if this client created it."""
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def new_request(self) -> Request:
        return self.new_request_with_context(Context.background())

    def new_request_with_context(self, ctx: Context) -> Request:
        """Create a request carrying the client defaults and *ctx*."""
        req = Request(self, ctx)
        if self.content_type:
            req.set_content_type(self.content_type)
        if self.authorization:
            req.set_authorization(self.authorization)
        return req

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def logger(self) -> OutputManager:
        return self._logger or get_output()

    def set_logger(self, logger: OutputManager) -> Client:
        self._logger = logger
        return self

    def set_trace_maker(self, trace_maker: TraceMaker) -> Client:
        self.trace_maker = trace_maker
        return self

    def set_trace_bodies(self, value: bool) -> Client:
        """Set whether requests created from now on let tracers record bodies."""
        self.trace_bodies = value
        return self

    def set_error_body_type(self, value: Any) -> Client:
        """Decode non-success bodies into *value*'s type when no per-request error body is set.

        *value* may be a type or an instance of it. If the decoded value is
        an exception, or has an ``error()`` method, its message becomes part
        of the raised :class:`~vrest.exceptions.StatusError`.

        Raises:
            InvalidRequestError: If pydantic cannot decode into the type.
        """
        error_body_type = value if isinstance(value, type) else type(value)
        StructuredTarget(error_body_type)
        self.error_body_type = error_body_type
        return self

    def set_base_url(self, base_url: str) -> Client:
        self.base_url = base_url
        return self

    def set_content_type(self, content_type: str) -> Client:
        """Set the default ``Content-Type`` of request bodies."""
        self.content_type = content_type
        return self

    def set_content_type_json(self) -> Client:
        return self.set_content_type(codecs.CONTENT_TYPE_JSON)

    def set_content_type_xml(self) -> Client:
        return self.set_content_type(codecs.CONTENT_TYPE_XML)

    def set_authorization(self, value: str) -> Client:
        """Set the default ``Authorization`` header value."""
        self.authorization = value
        return self

    def set_basic_auth(self, username: str, password: str) -> Client:
        return self.set_authorization("Basic " + encode_basic_auth(username, password))

    def set_bearer_auth(self, token: str) -> Client:
        return self.set_authorization("Bearer " + token)

    def set_token_getter(self, getter: TokenGetter) -> Client:
        """Inject bearer tokens from *getter* into every non-token request."""
        self.token_cache = TokenCache(getter)
        return self

    def set_oauth(self, config: OAuthConfig) -> Client:
        """Acquire bearer tokens with the OAuth client-credentials flow."""
        from vrest.oauth import OAuthTokenGetter

        return self.set_token_getter(OAuthTokenGetter(config, self))

    def set_response_body_limit(self, limit: int) -> Client:
        """Limit buffered response bodies to *limit* bytes; longer bodies are truncated.

        0 disables the limit, which lets a server make the client buffer
        arbitrarily large bodies.
        """
        self.response_body_limit = limit
        return self
