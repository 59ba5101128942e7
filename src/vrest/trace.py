"""Request tracing hooks.

A :class:`TraceMaker` creates one :class:`Trace` per executed request. The
trace is created only after the request was built successfully, just
before the transport is invoked; :meth:`Trace.on_after_request` runs after
the response was processed (whether or not the call succeeded) and
:meth:`Trace.end` runs last on every exit path.

Traces get full read access to the request and response, including the
captured ``body_bytes`` of both when available. They must not modify the
request, with one exception: a tracer may add propagation headers to the
built envelope (``req.raw.headers``) in :meth:`TraceMaker.new_trace`.

Credential redaction is the observer's job; use :func:`header_without_auth`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import httpx

if TYPE_CHECKING:
    from vrest.output import OutputManager
    from vrest.request import Request


class Trace(ABC):
    """The trace of a single request."""

    @abstractmethod
    def on_after_request(self, req: Request) -> None:
        """Called once after the response was processed, successful or not."""
        ...

    @abstractmethod
    def end(self) -> None:
        """Called last, on every exit path after the trace was created."""
        ...


class TraceMaker(ABC):
    """Creates a :class:`Trace` for every request a client executes."""

    @abstractmethod
    def new_trace(self, req: Request) -> Trace:
        ...


class NopTrace(Trace):
    def on_after_request(self, req: Request) -> None:
        pass

    def end(self) -> None:
        pass


class NopTraceMaker(TraceMaker):
    """Disables tracing."""

    def new_trace(self, req: Request) -> Trace:
        return NopTrace()


class LoggingTrace(Trace):
    def __init__(self, logger: OutputManager) -> None:
        self._logger = logger

    def on_after_request(self, req: Request) -> None:
        resp = req.response
        parts = [
            f"executed http request {req.method} {req.url}",
            f"status={resp.status_code}",
            f"headers={dict(header_without_auth(resp.headers))}",
        ]
        if resp.trace_body:
            parts.append(f"body={_text(resp.body_bytes)}")
        if resp.error is not None:
            parts.append(f"error={resp.error}")
        self._logger.debug(" ".join(parts))

    def end(self) -> None:
        pass


class LoggingTraceMaker(TraceMaker):
    """Writes request and response summaries as debug diagnostics.

    Args:
        logger: Sink for the trace lines. When ``None`` the client's logger
            is used at trace time.
    """

    def __init__(self, logger: Optional[OutputManager] = None) -> None:
        self._logger = logger

    def new_trace(self, req: Request) -> Trace:
        logger = self._logger or req.client.logger
        parts = [
            f"executing http request {req.method} {req.url}",
            f"headers={dict(header_without_auth(req.raw.headers if req.raw else req.header))}",
        ]
        if req.trace_body:
            parts.append(f"body={_text(req.body_bytes)}")
        logger.debug(" ".join(parts))
        return LoggingTrace(logger)


def header_without_auth(headers: httpx.Headers) -> httpx.Headers:
    """Return a copy of *headers* without the ``Authorization`` header."""
    copy = httpx.Headers(headers)
    copy.pop("Authorization", None)
    return copy


def _text(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
