"""Request bodies and response destinations.

Request bodies are a closed union of four kinds, each with an explicit
constructor:

* :class:`RawBytes` -- sent as-is and captured for tracing.
* :class:`Text` -- UTF-8 encoded, sent as-is and captured for tracing.
* :class:`Stream` -- a binary file-like object or an iterable of ``bytes``,
  streamed to the transport and never captured.
* :class:`Structured` -- any value to be marshaled by the codec selected
  from the request's ``Content-Type``.

Response destinations are a closed union of three kinds:

* :class:`StructuredTarget` -- decode into a type, or update a mutable
  instance in place.
* :class:`RawBytesTarget` -- receive the raw body bytes.
* :class:`StreamTarget` -- receive the live, unread response on success.

:func:`as_body` and :func:`as_target` map plain Python values onto these
unions at the setter boundary.
"""

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Optional, Union, get_origin

from pydantic import BaseModel, PydanticUserError, TypeAdapter

from vrest.exceptions import InvalidRequestError

if TYPE_CHECKING:
    import httpx

_STREAM_CHUNK_SIZE = 64 * 1024


# --- Request bodies ---


@dataclasses.dataclass(frozen=True)
class RawBytes:
    """A request body sent verbatim."""

    data: bytes


@dataclasses.dataclass(frozen=True)
class Text:
    """A text request body, sent UTF-8 encoded."""

    text: str

    def encode(self) -> bytes:
        return self.text.encode("utf-8")


@dataclasses.dataclass(frozen=True)
class Stream:
    """A streamed request body.

    *source* is either a binary file-like object (anything with ``read``) or
    an iterable of ``bytes`` chunks.
    """

    source: Any

    def chunks(self) -> Iterator[bytes]:
        """Iterate over the body in chunks suitable for the transport."""
        read = getattr(self.source, "read", None)
        if callable(read):
            return iter(lambda: read(_STREAM_CHUNK_SIZE), b"")
        return iter(self.source)


@dataclasses.dataclass(frozen=True)
class Structured:
    """A value marshaled through the JSON or XML codec."""

    value: Any


RequestBody = Union[RawBytes, Text, Stream, Structured]


def as_body(value: Any) -> Optional[RequestBody]:
    """Map a plain Python value onto the request body union.

    ``None`` means "no body". Values that already are one of the union
    kinds are returned unchanged.
    """
    if value is None:
        return None
    if isinstance(value, (RawBytes, Text, Stream, Structured)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return RawBytes(bytes(value))
    if isinstance(value, str):
        return Text(value)
    if callable(getattr(value, "read", None)) or isinstance(value, Iterator):
        return Stream(value)
    return Structured(value)


# --- Response destinations ---


class Target:
    """Base class of every response destination."""


class StructuredTarget(Target):
    """Decode a response body into a typed value.

    Pass a type to get a fresh instance in :attr:`value` after the call, or
    pass a mutable instance (pydantic model, dataclass instance, ``dict``,
    ``list`` or any object with a ``__dict__``) to have it updated in place.

    Types pydantic cannot validate (a plain class with its own ``__init__``,
    for instance) are rejected here with
    :class:`~vrest.exceptions.InvalidRequestError`.

    Example::

        target = StructuredTarget(User)
        client.new_request().set_response_body(target).do_get("/users/1")
        user = target.value
    """

    def __init__(self, type_or_instance: Any) -> None:
        if isinstance(type_or_instance, type) or get_origin(type_or_instance) is not None:
            _check_decodable(type_or_instance)
            self.type: Any = type_or_instance
            self.value: Any = None
            self._in_place = False
        else:
            _require_mutable(type_or_instance)
            if isinstance(type_or_instance, (dict, list)) or dataclasses.is_dataclass(type_or_instance):
                _check_decodable(type(type_or_instance))
            self.type = type(type_or_instance)
            self.value = type_or_instance
            self._in_place = True

    def load(self, data: Any) -> Any:
        """Validate decoded *data* against the target type and store it.

        Raises:
            pydantic.ValidationError: If *data* does not fit the type.
            TypeError: If an in-place target cannot take *data*.
        """
        if not self._in_place:
            self.value = _validate(self.type, data)
            return self.value

        target = self.value
        if isinstance(target, BaseModel):
            validated = type(target).model_validate(data)
            for name in type(target).model_fields:
                setattr(target, name, getattr(validated, name))
        elif isinstance(target, dict):
            validated = _validate(type(target), data)
            target.clear()
            target.update(validated)
        elif isinstance(target, list):
            target[:] = _validate(type(target), data)
        elif dataclasses.is_dataclass(target):
            validated = _validate(type(target), data)
            for field in dataclasses.fields(target):
                setattr(target, field.name, getattr(validated, field.name))
        elif isinstance(data, dict):
            vars(target).update(data)
        else:
            raise TypeError(
                f"cannot load {type(data).__name__} into {type(target).__name__}"
            )
        return target

    def __repr__(self) -> str:
        return f"StructuredTarget({getattr(self.type, '__name__', self.type)})"


class RawBytesTarget(Target):
    """Receive the response body as raw bytes in :attr:`data`."""

    def __init__(self) -> None:
        self.data: Optional[bytes] = None


class StreamTarget(Target):
    """Receive the live response of a successful call for streaming.

    On success the response body is not read and not closed by vrest; the
    caller owns it from then on and must call :meth:`close` (or use the
    target as a context manager). On failure the body is read and closed
    as usual and :attr:`response` stays ``None``.
    """

    def __init__(self) -> None:
        self.response: Optional[httpx.Response] = None

    def iter_bytes(self, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        if self.response is None:
            return iter(())
        return self.response.iter_bytes(chunk_size)

    def read(self) -> bytes:
        if self.response is None:
            return b""
        return self.response.read()

    def close(self) -> None:
        if self.response is not None:
            self.response.close()

    def __enter__(self) -> StreamTarget:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


@dataclasses.dataclass
class ContentLength:
    """Capture destination for the response ``Content-Length``.

    ``value`` is -1 when the server declares no length.
    """

    value: int = -1


_IMMUTABLE_TYPES = (str, bytes, bytearray, int, float, complex, bool, tuple, frozenset, range)


def as_target(value: Any) -> Optional[Target]:
    """Map a plain Python value onto the response destination union.

    ``None`` means "not interested in the body". Classes become a
    :class:`StructuredTarget` producing a fresh instance; mutable instances
    become a :class:`StructuredTarget` updated in place.

    Raises:
        InvalidRequestError: If *value* is a plain immutable value, which
            cannot receive decoded data.
            Also raised for a type pydantic cannot build a validator for.
    """
    if value is None or isinstance(value, Target):
        return value
    return StructuredTarget(value)


def _require_mutable(value: Any) -> None:
    if isinstance(value, _IMMUTABLE_TYPES) or value is None:
        raise InvalidRequestError(
            f"response destination must be a mutable reference or a type, "
            f"got {type(value).__name__} value {value!r}"
        )
    if isinstance(value, (BaseModel, dict, list)) or dataclasses.is_dataclass(value):
        return
    if not hasattr(value, "__dict__"):
        raise InvalidRequestError(
            f"response destination of type {type(value).__name__} cannot be updated in place"
        )


def _validate(type_: Any, data: Any) -> Any:
    if get_origin(type_) is None and isinstance(type_, type) and issubclass(type_, BaseModel):
        return type_.model_validate(data)
    return _adapter(type_).validate_python(data)


@functools.lru_cache(maxsize=None)
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


def _check_decodable(type_: Any) -> None:
    """Fail early when pydantic cannot build a validator for *type_*."""
    if get_origin(type_) is None and isinstance(type_, type) and issubclass(type_, BaseModel):
        return
    try:
        _adapter(type_)
    except PydanticUserError as exc:
        name = getattr(type_, "__name__", repr(type_))
        raise InvalidRequestError(
            f"response destination type {name} cannot be decoded: {exc}"
        ) from exc
