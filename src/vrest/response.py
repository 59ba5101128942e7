"""Response state and the response processing pipeline.

:func:`process_http_response` turns the transport outcome of a request into
either a return (success) or a raised :class:`~vrest.exceptions.VrestError`,
filling the response destinations on the way:

1. transport failure -> :class:`~vrest.exceptions.TransportError`;
2. no response at all -> :class:`~vrest.exceptions.TransportError`;
3. populate the ``Content-Length`` capture destination;
4. read the body, unless a stream destination takes the live response;
5. classify success;
6. empty body -> done on success, :class:`~vrest.exceptions.StatusError`
   otherwise;
7. pick the destination (success body, error body, or a fresh instance of
   the client's error body type);
8. unmarshal; decoding errors are fatal on success only;
9. on failure raise a :class:`~vrest.exceptions.StatusError` embedding the
   decoded error body or the raw body text.

A :class:`~vrest.body.RawBytesTarget` error destination receives the
buffered bytes of a failed call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import httpx
from pydantic import PydanticUserError

from vrest.body import (
    ContentLength,
    RawBytesTarget,
    StreamTarget,
    StructuredTarget,
    Target,
)
from vrest.codecs import is_json_content_type, is_xml_content_type
from vrest.exceptions import (
    ResponseNotUnmarshaledError,
    ResponseReadError,
    StatusError,
    TransportError,
    UnmarshalError,
)

if TYPE_CHECKING:
    from vrest.request import Request

# Exceptions the codecs raise on undecodable or ill-fitting data.
CODEC_ERRORS = (ValueError, TypeError, SyntaxError, PydanticUserError)


class Response:
    """Per-call response state, owned by a :class:`~vrest.request.Request`.

    Attributes:
        raw: The transport response, ``None`` until the request ran.
        error: The exception the call raised, ``None`` on success.
        body: Destination for a successful response body.
        error_body: Destination for an error response body.
        force_json: Decode with the JSON codec regardless of ``Content-Type``.
        force_xml: Decode with the XML codec regardless of ``Content-Type``.
        body_bytes: The bytes read from the body (``None`` when streamed
            to the caller or not read yet).
        body_limit: Maximum number of body bytes to read; 0 means no limit.
            Longer bodies are truncated.
        trace_body: Whether tracers may record the response body.
        do_unmarshal: Cleared when the body went to a raw-bytes or stream
            destination.
        content_length: Capture destination for ``Content-Length``.
        success_status_codes: When non-empty, exactly these status codes
            count as success.
    """

    def __init__(self, body_limit: int = 0, trace_body: bool = True) -> None:
        self.raw: Optional[httpx.Response] = None
        self.error: Optional[Exception] = None
        self.body: Optional[Target] = None
        self.error_body: Optional[Target] = None
        self.force_json = False
        self.force_xml = False
        self.body_bytes: Optional[bytes] = None
        self.body_limit = body_limit
        self.trace_body = trace_body
        self.do_unmarshal = True
        self.content_length: Optional[ContentLength] = None
        self.success_status_codes: tuple[int, ...] = ()
        self.streamed = False

    @property
    def status_code(self) -> int:
        if self.raw is None:
            return 0
        return self.raw.status_code

    @property
    def headers(self) -> httpx.Headers:
        if self.raw is None:
            return httpx.Headers()
        return self.raw.headers

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def text(self) -> str:
        """The buffered body decoded as UTF-8, or ``""``."""
        if not self.body_bytes:
            return ""
        return self.body_bytes.decode("utf-8", errors="replace")

    @property
    def has_empty_body(self) -> bool:
        return self.raw is not None and not self.streamed and not self.body_bytes

    def wants_raw_bytes(self) -> bool:
        return isinstance(self.body, RawBytesTarget)

    def wants_stream(self) -> bool:
        return isinstance(self.body, StreamTarget)

    def unmarshal(self, req: Request, target: Optional[Target]) -> bool:
        """Decode the buffered body into *target*.

        Returns:
            ``True`` if a codec decoded the body, ``False`` if unmarshaling
            was disabled, *target* is ``None`` or the body is empty with no
            matching codec.

        Raises:
            UnmarshalError: If the codec failed.
            ResponseNotUnmarshaledError: If there is a body but no codec
                matched the content type.
        """
        if not self.do_unmarshal or target is None:
            return False
        if not isinstance(target, StructuredTarget):
            # raw-bytes and stream destinations never go through a codec
            return False

        data = self.body_bytes or b""
        content_type = self.content_type
        if self.force_json or is_json_content_type(content_type):
            codec = req.overridables.json_unmarshal
        elif self.force_xml or is_xml_content_type(content_type):
            codec = req.overridables.xml_unmarshal
        elif data:
            raise ResponseNotUnmarshaledError()
        else:
            return False

        try:
            codec(req, data, target)
        except CODEC_ERRORS as exc:
            raise UnmarshalError(str(exc)) from exc
        return True


def process_http_response(
    req: Request,
    raw: Optional[httpx.Response],
    transport_error: Optional[BaseException],
) -> None:
    """Process the outcome of the transport call for *req*.

    Mutates ``req.response`` and raises on failure.

    Raises:
        TransportError: The transport failed or returned nothing.
        ResponseReadError: The body could not be read.
        UnmarshalError: A successful body could not be decoded.
        StatusError: The status code is not a success.
    """
    resp = req.response
    resp.raw = raw
    method, url = req.method, req.url

    if transport_error is not None:
        raise TransportError(
            f"http request {method} {url} failed: {transport_error}"
        ) from transport_error
    if raw is None:
        raise TransportError(f"http request {method} {url} returned no response and no error")

    if resp.content_length is not None:
        resp.content_length.value = _declared_length(raw)

    success = req.overridables.is_success(req)
    try:
        _read_body(resp, raw, success)
    except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
        raise ResponseReadError(
            f"http request {method} {url} failed to read response body: {exc}"
        ) from exc

    if resp.has_empty_body:
        if not success:
            raise StatusError(
                f"http request {method} {url} failed with status code {resp.status_code}",
                method=method,
                url=url,
                status_code=resp.status_code,
            )
        return

    if not success and isinstance(resp.error_body, RawBytesTarget):
        resp.error_body.data = resp.body_bytes

    target = resp.body
    if not success and resp.do_unmarshal:
        if resp.error_body is None and req.client.error_body_type is not None:
            resp.error_body = StructuredTarget(req.client.error_body_type)
        target = resp.error_body

    try:
        did_unmarshal = resp.unmarshal(req, target)
    except UnmarshalError as exc:
        if success:
            raise UnmarshalError(
                f"http request {method} {url} failed to unmarshal response body: {exc}"
            ) from exc
        # best effort: the status failure below wins
        did_unmarshal = False

    if success:
        return

    prefix = f"http request {method} {url} failed: status {resp.status_code}"
    if did_unmarshal and isinstance(target, StructuredTarget):
        error_body = target.value
        if isinstance(error_body, BaseException):
            raise StatusError(
                f"{prefix}: {_describe(error_body)}",
                method=method,
                url=url,
                status_code=resp.status_code,
                body_text=resp.text,
                error_body=error_body,
            ) from error_body
        raise StatusError(
            f"{prefix}: {_describe(error_body)}",
            method=method,
            url=url,
            status_code=resp.status_code,
            body_text=resp.text,
            error_body=error_body,
        )

    raise StatusError(
        f"{prefix}: {resp.text}",
        method=method,
        url=url,
        status_code=resp.status_code,
        body_text=resp.text,
    )


def _describe(error_body: object) -> str:
    describe = getattr(error_body, "error", None)
    if callable(describe):
        return str(describe())
    return str(error_body) or repr(error_body)


def _read_body(resp: Response, raw: httpx.Response, success: bool) -> None:
    """Buffer the body of *raw*, or hand the live response to a stream destination.

    The stream hand-off only happens on success; failed calls are always
    buffered so the error can be reported.
    """
    if success and isinstance(resp.body, StreamTarget):
        resp.body.response = raw
        resp.streamed = True
        resp.do_unmarshal = False
        return

    limit = resp.body_limit
    if limit > 0:
        buffer = bytearray()
        for chunk in raw.iter_bytes():
            buffer.extend(chunk[: limit - len(buffer)])
            if len(buffer) >= limit:
                break
        resp.body_bytes = bytes(buffer)
    else:
        resp.body_bytes = raw.read()

    if resp.body_bytes and isinstance(resp.body, RawBytesTarget):
        resp.body.data = resp.body_bytes
        resp.do_unmarshal = False


def _declared_length(raw: httpx.Response) -> int:
    value = raw.headers.get("Content-Length")
    if value is None:
        return -1
    try:
        return int(value)
    except ValueError:
        return -1


def close_raw_response(req: Request) -> None:
    """Close the response body of *req* unless it was handed to the caller.

    Close failures are logged, never raised.
    """
    resp = req.response
    if resp.raw is None or resp.streamed:
        return
    try:
        resp.raw.close()
    except (httpx.HTTPError, OSError) as exc:
        req.client.logger.error(f"error when closing response body: {exc}")
