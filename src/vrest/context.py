"""Execution context carried by a request.

A :class:`Context` bundles an optional deadline, a cancellation flag and a
bag of caller-defined values. It is attached to every
:class:`~vrest.request.Request`, forwarded to token getters, and consulted by
the default transport, which refuses to send on a cancelled context and maps
the remaining time onto the HTTP timeout. vrest itself implements no timeout
logic beyond that.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Optional


class Context:
    """Cancellation and deadline carrier for one or more requests.

    Contexts derived with :meth:`with_timeout`, :meth:`with_cancel` or
    :meth:`with_value` observe their parent's cancellation, so cancelling a
    parent cancels every derived context but not the other way round.

    Args:
        deadline: Absolute :func:`time.monotonic` deadline, or ``None``.
        values: Initial caller-defined values.
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        values: Optional[dict[str, Any]] = None,
        _cancelled: Optional[threading.Event] = None,
        _parent: Optional[Context] = None,
    ) -> None:
        self._deadline = deadline
        self._values: dict[str, Any] = dict(values or {})
        self._cancelled = _cancelled or threading.Event()
        self._parent = _parent

    @classmethod
    def background(cls) -> Context:
        """Return a fresh context with no deadline that is never cancelled by itself."""
        return cls()

    def with_timeout(self, seconds: float) -> Context:
        """Derive a context whose deadline is at most *seconds* from now."""
        deadline = time.monotonic() + seconds
        if self._deadline is not None:
            deadline = min(deadline, self._deadline)
        return Context(deadline, self._values, _cancelled=threading.Event(), _parent=self)

    def with_cancel(self) -> Context:
        """Derive a context that can be cancelled independently of this one."""
        return Context(self._deadline, self._values, _cancelled=threading.Event(), _parent=self)

    def with_value(self, key: str, value: Any) -> Context:
        """Derive a context carrying an additional value."""
        values = dict(self._values)
        values[key] = value
        return Context(self._deadline, values, _cancelled=threading.Event(), _parent=self)

    def value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline (never negative), or ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def error(self) -> Optional[str]:
        """Describe why the context is done, or ``None`` while it is still live."""
        if self.cancelled:
            return "context canceled"
        if self.expired:
            return "context deadline exceeded"
        return None
