"""Helpers for testing code that uses vrest.

Replace the transport of a client to exercise the full pipeline (building,
processing, unmarshaling) without a server::

    mock = mock_json_response(200, '{"id": 7}')
    client.overridables.do_http_request = mock_http_doer(mock)
    ...
    assert mock.captured_request.method == "GET"

or replace the whole ``do`` step to short-circuit a call entirely with
:func:`mock_doer`.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Optional

import httpx

from vrest.body import RawBytesTarget, StructuredTarget
from vrest.exceptions import InvalidRequestError

if TYPE_CHECKING:
    from vrest.client import Doer, HTTPDoer
    from vrest.request import Request


@dataclasses.dataclass
class MockHTTPResponse:
    """The canned response of :func:`mock_http_doer`.

    Exactly one of ``body_stream``, ``body_string`` or ``body`` is used, in
    that order. ``error`` makes the transport fail instead.
    ``captured_request`` holds the last request the doer received.
    """

    status_code: int = 200
    body: bytes = b""
    body_string: str = ""
    body_stream: Optional[BinaryIO] = None
    content_type: str = ""
    error: Optional[Exception] = None
    captured_request: Optional[Request] = None


class _MockStream(httpx.SyncByteStream):
    def __init__(self, source: BinaryIO) -> None:
        self._source = source
        self.closed = False

    def __iter__(self):
        yield self._source.read()

    def close(self) -> None:
        self.closed = True


def mock_http_doer(mock: MockHTTPResponse, *additional_headers: str) -> HTTPDoer:
    """Return a transport that answers every request with *mock*.

    Args:
        mock: The canned response; its ``captured_request`` is updated.
        *additional_headers: Alternating response header names and values.

    Raises:
        ValueError: If *additional_headers* has an odd length.
    """
    if len(additional_headers) % 2 != 0:
        raise ValueError("additional_headers must alternate names and values")

    headers = httpx.Headers()
    if mock.content_type:
        headers["Content-Type"] = mock.content_type
    for i in range(0, len(additional_headers), 2):
        headers[additional_headers[i]] = additional_headers[i + 1]

    def _doer(req: Request) -> httpx.Response:
        mock.captured_request = req
        if mock.error is not None:
            raise mock.error

        if mock.body_stream is not None:
            return httpx.Response(
                mock.status_code or 200,
                headers=headers,
                stream=_MockStream(mock.body_stream),
                request=req.raw,
            )
        content = mock.body_string.encode("utf-8") if mock.body_string else mock.body
        return httpx.Response(
            mock.status_code or 200,
            headers=headers,
            content=content,
            request=req.raw,
        )

    return _doer


def mock_doer(response_value: Any, error: Optional[Exception] = None) -> Doer:
    """Return a ``do`` replacement that stores *response_value* in the response destination.

    Nothing is built or sent. If *error* is given it is raised instead.

    Raises:
        InvalidRequestError: If the request has no response destination.
    """

    def _do(req: Request) -> None:
        if error is not None:
            req.response.error = error
            raise error
        target = req.response.body
        if target is None:
            raise InvalidRequestError("request has no response destination")
        if response_value is None:
            return
        if isinstance(target, StructuredTarget):
            target.value = response_value
        elif isinstance(target, RawBytesTarget):
            target.data = response_value
        else:
            raise InvalidRequestError(f"mock_doer cannot fill {type(target).__name__}")

    return _do


def mock_json_response(status_code: int, body: str) -> MockHTTPResponse:
    return MockHTTPResponse(status_code=status_code, body_string=body, content_type="application/json")


def mock_xml_response(status_code: int, body: str) -> MockHTTPResponse:
    return MockHTTPResponse(status_code=status_code, body_string=body, content_type="text/xml")


def mock_json_response_from_file(status_code: int, path: str | Path) -> MockHTTPResponse:
    return MockHTTPResponse(
        status_code=status_code,
        body=Path(path).read_bytes(),
        content_type="application/json",
    )


def mock_xml_response_from_file(status_code: int, path: str | Path) -> MockHTTPResponse:
    return MockHTTPResponse(
        status_code=status_code,
        body=Path(path).read_bytes(),
        content_type="text/xml",
    )
