"""Exception hierarchy for vrest.

All exceptions inherit from :class:`VrestError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`vrest.exit_codes`.
Errors raised while executing a request are also stored on
``request.response.error`` so they can be inspected after the call.

Wrapped failures keep their origin in ``__cause__``; use :func:`find_error`
to ask "is this (possibly wrapped) error of kind X".

Subclass hierarchy::

    VrestError                       (exit 1)
    +-- InvalidRequestError          (exit 2)
    |   +-- UnsupportedContentTypeError
    +-- MarshalError                 (exit 4)
    +-- TransportError               (exit 6)
    +-- ResponseReadError            (exit 6)
    +-- UnmarshalError               (exit 4)
    |   +-- ResponseNotUnmarshaledError
    +-- StatusError                  (exit 5)
    +-- TokenError                   (exit 3)
    |   +-- OAuthTokenRequestError
    +-- ConfigError                  (exit 1)
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from vrest.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CODEC_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_REQUEST,
    EXIT_STATUS_ERROR,
)

E = TypeVar("E", bound=BaseException)


class VrestError(Exception):
    """Base exception for all vrest errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidRequestError(VrestError):
    """Raised when a request is misconfigured, before any network activity."""

    exit_code = EXIT_INVALID_REQUEST


class UnsupportedContentTypeError(InvalidRequestError):
    """Raised when a structured body has to be marshaled for an unknown content type."""


class MarshalError(VrestError):
    """Raised when the request body codec fails."""

    exit_code = EXIT_CODEC_ERROR


class TransportError(VrestError):
    """Raised on transport failures (timeout, DNS, refused connection, cancellation)."""

    exit_code = EXIT_CONNECTION_ERROR


class ResponseReadError(VrestError):
    """Raised when the response body could not be read."""

    exit_code = EXIT_CONNECTION_ERROR


class UnmarshalError(VrestError):
    """Raised when a successful response body could not be decoded."""

    exit_code = EXIT_CODEC_ERROR


class ResponseNotUnmarshaledError(UnmarshalError):
    """Raised when a response has a body but no codec matched its content type."""

    def __init__(self, message: str = "response was not unmarshaled", exit_code: int | None = None):
        super().__init__(message, exit_code)


class StatusError(VrestError):
    """Raised when the server answers with a non-success status code.

    Attributes:
        method: HTTP method of the failed request.
        url: Final request URL.
        status_code: The response status code.
        body_text: Raw response body text (may be empty).
        error_body: The decoded error body, when one was unmarshaled.
    """

    exit_code = EXIT_STATUS_ERROR

    def __init__(
        self,
        message: str,
        *,
        method: str = "",
        url: str = "",
        status_code: int = 0,
        body_text: str = "",
        error_body: Any = None,
    ):
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body_text = body_text
        self.error_body = error_body


class TokenError(VrestError):
    """Raised when a bearer token could not be acquired for a request."""

    exit_code = EXIT_AUTH_FAILURE


class OAuthTokenRequestError(TokenError):
    """Raised when the OAuth token endpoint request fails."""

    def __init__(self, message: str = "failed to get new oauth token", exit_code: int | None = None):
        super().__init__(message, exit_code)


class ConfigError(VrestError):
    """Raised for configuration problems (invalid config file, unresolvable credential)."""

    exit_code = EXIT_GENERIC_FAILURE


def find_error(exc: Optional[BaseException], kind: type[E]) -> Optional[E]:
    """Return the first exception of type *kind* in the cause chain of *exc*.

    Follows ``__cause__`` first and falls back to ``__context__``, stopping
    on cycles.

    Example::

        try:
            req.do_get("/orders")
        except VrestError as exc:
            if find_error(exc, TokenError):
                ...
    """
    seen: set[int] = set()
    current = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, kind):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None
