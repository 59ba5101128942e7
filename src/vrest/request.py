"""Per-call request state, fluent setters and the request builder.

A :class:`Request` is created by :meth:`vrest.client.Client.new_request`
with the client's defaults already applied, configured through chained
setters, and executed with one of the ``do_*`` verbs::

    user = StructuredTarget(User)
    client.new_request().set_response_body(user).do_get("/users/{id}", "id", "7")

Requests are cheap and must not be shared between concurrent calls; the
client they come from can be.
"""

from __future__ import annotations

import base64
import dataclasses
from typing import TYPE_CHECKING, Any, Optional

import httpx

from vrest.body import (
    ContentLength,
    RawBytes,
    RequestBody,
    Stream,
    StreamTarget,
    Structured,
    Text,
    as_body,
    as_target,
)
from vrest.codecs import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_XML,
    is_json_content_type,
    is_xml_content_type,
)
from vrest.context import Context
from vrest.exceptions import (
    InvalidRequestError,
    MarshalError,
    TokenError,
    UnsupportedContentTypeError,
)
from vrest.path import make_path, make_request_url
from vrest.response import CODEC_ERRORS, Response

if TYPE_CHECKING:
    from vrest.client import Client, Overridables


class Request:
    """A single HTTP call and its response.

    Attributes:
        client: The owning client.
        context: Cancellation/deadline carrier forwarded to the transport
            and to token getters.
        method: HTTP method, set by the ``do_*`` verbs.
        path: Resolved (templated) path, set by the ``do_*`` verbs.
        base_url: Per-request override of the client base URL.
        header: Request headers.
        query: Query parameters, one list of values per key.
        body: The request body, or ``None``.
        body_bytes: Outgoing body bytes captured for tracing (``None`` for
            streamed bodies).
        content_length: Explicit ``Content-Length``; applied when positive.
        token_request: Marks a token acquisition request, which never gets
            a bearer token injected.
        trace_body: Whether tracers may record the request body.
        overridables: This request's copy of the client's extension points.
        raw: The built :class:`httpx.Request`, ``None`` until built.
        response: Response state of this call.
    """

    def __init__(self, client: Client, context: Optional[Context] = None) -> None:
        self.client = client
        self.context = context or Context.background()
        self.method = ""
        self.path = ""
        self.base_url = ""
        self.url = ""
        self.header = httpx.Headers()
        self.query: dict[str, list[str]] = {}
        self.body: Optional[RequestBody] = None
        self.body_bytes: Optional[bytes] = None
        self.content_length = 0
        self.token_request = False
        self.trace_body = client.trace_bodies
        self.overridables: Overridables = dataclasses.replace(client.overridables)
        self.raw: Optional[httpx.Request] = None
        self.response = Response(
            body_limit=client.response_body_limit,
            trace_body=client.trace_bodies,
        )
        self._config_error: Optional[InvalidRequestError] = None

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def do(self, method: str, path: str, *path_params: str) -> None:
        """Execute the request.

        Args:
            method: HTTP method.
            path: Path relative to the base URL, or a fully qualified URL.
                May contain ``{name}`` placeholders.
            *path_params: Alternating placeholder names and values.

        Raises:
            VrestError: Any failure; the exception is also stored on
                ``response.error``.
        """
        self.method = method
        self.path = make_path(path, *path_params)
        self.overridables.do(self)

    def do_get(self, path: str, *path_params: str) -> None:
        self.do("GET", path, *path_params)

    def do_head(self, path: str, *path_params: str) -> None:
        self.do("HEAD", path, *path_params)

    def do_post(self, path: str, *path_params: str) -> None:
        self.do("POST", path, *path_params)

    def do_put(self, path: str, *path_params: str) -> None:
        self.do("PUT", path, *path_params)

    def do_patch(self, path: str, *path_params: str) -> None:
        self.do("PATCH", path, *path_params)

    def do_delete(self, path: str, *path_params: str) -> None:
        self.do("DELETE", path, *path_params)

    def do_connect(self, path: str, *path_params: str) -> None:
        self.do("CONNECT", path, *path_params)

    def do_options(self, path: str, *path_params: str) -> None:
        self.do("OPTIONS", path, *path_params)

    def do_trace(self, path: str, *path_params: str) -> None:
        self.do("TRACE", path, *path_params)

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def build(self) -> httpx.Request:
        """Build the transport envelope for this request.

        Idempotent: once built, the existing envelope is returned. Only
        the token getter may perform I/O.

        Raises:
            InvalidRequestError: Misconfiguration, such as a response
                destination that cannot receive data or an empty content
                type for a structured body.
            UnsupportedContentTypeError: No codec for the content type.
            MarshalError: The codec could not encode the body.
            TokenError: No bearer token could be acquired.
        """
        if self.raw is not None:
            return self.raw
        if self._config_error is not None:
            raise self._config_error

        self.url = make_request_url(self.client.base_url, self.base_url, self.path)

        content = self._make_body()
        is_stream = isinstance(self.body, Stream)

        try:
            raw = httpx.Request(self.method, self.url, content=content, headers=self.header)
        except httpx.InvalidURL as exc:
            raise InvalidRequestError(f"invalid request URL {self.url!r}: {exc}") from exc

        if self.content_length > 0:
            raw.headers["Content-Length"] = str(self.content_length)

        if not self.body_bytes and not is_stream:
            self.header.pop("Content-Type", None)
            raw.headers.pop("Content-Type", None)

        if self.client.token_cache is not None and not self.token_request:
            try:
                token = self.client.token_cache.get_valid_token(self.context)
            except Exception as exc:
                raise TokenError(
                    f"failed to get token for {self.method} {self.url}: {exc}"
                ) from exc
            self.set_bearer_auth(token.token())
            raw.headers["Authorization"] = self.header["Authorization"]

        if self.query:
            raw.url = raw.url.copy_with(params=self.query)

        self.raw = raw
        return raw

    def _make_body(self) -> Any:
        body = self.body
        if body is None:
            self.body_bytes = None
            return None
        if isinstance(body, Stream):
            self.body_bytes = None
            return body.chunks()
        if isinstance(body, RawBytes):
            self.body_bytes = body.data
        elif isinstance(body, Text):
            self.body_bytes = body.encode()
        elif isinstance(body, Structured):
            self.body_bytes = self._marshal(body.value, self.content_type)
        return self.body_bytes

    def _marshal(self, value: Any, content_type: str) -> bytes:
        if not content_type:
            raise InvalidRequestError("content type must not be empty")
        if is_json_content_type(content_type):
            marshal = self.overridables.json_marshal
        elif is_xml_content_type(content_type):
            marshal = self.overridables.xml_marshal
        else:
            raise UnsupportedContentTypeError(
                f'don\'t know how to marshal request body with Content-Type "{content_type}"'
            )
        try:
            return marshal(self, value)
        except CODEC_ERRORS as exc:
            raise MarshalError(
                f"failed to marshal request body as {content_type}: {exc}"
            ) from exc

    # ------------------------------------------------------------------ #
    # Fluent setters
    # ------------------------------------------------------------------ #

    @property
    def content_type(self) -> str:
        return self.header.get("Content-Type", "")

    def set_context(self, ctx: Context) -> Request:
        self.context = ctx
        return self

    def set_base_url(self, base_url: str) -> Request:
        """Override the client base URL for this request (e.g. token endpoints)."""
        self.base_url = base_url
        return self

    def set_body(self, body: Any) -> Request:
        """Set the request body.

        ``bytes`` and ``str`` are sent as-is, file-like objects and
        iterators are streamed, ``None`` removes the body, and anything else
        is marshaled according to the ``Content-Type`` header.
        """
        self.body = as_body(body)
        return self

    def set_header(self, key: str, value: str) -> Request:
        self.header[key] = value
        return self

    def set_header_if(self, condition: bool, key: str, value: str) -> Request:
        if condition:
            return self.set_header(key, value)
        return self

    def set_query_param(self, key: str, *values: str) -> Request:
        self.query[key] = list(values)
        return self

    def set_query_param_if(self, condition: bool, key: str, *values: str) -> Request:
        if condition:
            return self.set_query_param(key, *values)
        return self

    def set_content_type(self, content_type: str) -> Request:
        return self.set_header("Content-Type", content_type)

    def set_content_type_json(self) -> Request:
        return self.set_content_type(CONTENT_TYPE_JSON)

    def set_content_type_xml(self) -> Request:
        return self.set_content_type(CONTENT_TYPE_XML)

    def set_authorization(self, value: str) -> Request:
        return self.set_header("Authorization", value)

    def set_basic_auth(self, username: str, password: str) -> Request:
        return self.set_authorization("Basic " + encode_basic_auth(username, password))

    def set_bearer_auth(self, token: str) -> Request:
        """Set ``Authorization: Bearer <token>``; *token* has no prefix."""
        return self.set_authorization("Bearer " + token)

    def set_token_request(self) -> Request:
        """Mark this request as a token request so no token is injected."""
        self.token_request = True
        return self

    def set_content_length(self, content_length: int) -> Request:
        self.content_length = content_length
        return self

    def set_trace_request_body(self, value: bool) -> Request:
        self.trace_body = value
        return self

    def set_trace_response_body(self, value: bool) -> Request:
        self.response.trace_body = value
        return self

    def set_response_body(self, destination: Any) -> Request:
        """Set the destination of a successful response body.

        Pass a :class:`~vrest.body.StructuredTarget`, a
        :class:`~vrest.body.RawBytesTarget`, a
        :class:`~vrest.body.StreamTarget`, a type, or a mutable instance to
        update in place. An immutable value is a configuration error raised
        when the request is executed, before any network activity.
        """
        self.response.body = self._target(destination)
        return self

    def set_response_error_body(self, destination: Any) -> Request:
        """Set the destination of an error response body (non-success status).

        Takes the same destinations as :meth:`set_response_body` except
        :class:`~vrest.body.StreamTarget`: failed bodies are always buffered,
        so a stream destination is a configuration error.
        """
        if isinstance(destination, StreamTarget):
            self._record_config_error(
                InvalidRequestError("error response destination cannot be a stream target")
            )
            return self
        self.response.error_body = self._target(destination)
        return self

    def set_response_body_limit(self, limit: int) -> Request:
        self.response.body_limit = limit
        return self

    def set_response_content_length(self, destination: ContentLength) -> Request:
        """Capture the declared ``Content-Length`` (-1 when absent) into *destination*."""
        self.response.content_length = destination
        return self

    def set_success_status_code(self, *status_codes: int) -> Request:
        """Treat exactly *status_codes* as success instead of the 2xx range."""
        self.response.success_status_codes = tuple(status_codes)
        return self

    def force_response_json(self) -> Request:
        """Decode the response as JSON whatever its ``Content-Type``."""
        self.response.force_json = True
        return self

    def force_response_xml(self) -> Request:
        """Decode the response as XML whatever its ``Content-Type``."""
        self.response.force_xml = True
        return self

    def _target(self, destination: Any) -> Any:
        try:
            return as_target(destination)
        except InvalidRequestError as exc:
            self._record_config_error(exc)
            return None

    def _record_config_error(self, exc: InvalidRequestError) -> None:
        if self._config_error is None:
            self._config_error = exc


def encode_basic_auth(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
