"""Bearer tokens and the single-flight token cache.

A :class:`TokenGetter` acquires tokens; a :class:`TokenCache` owned by the
client decides *when* to call it. Readers take a lock-free fast path while
the cached token is still valid. When it is stale, exactly one caller
refreshes it under a lock while every other concurrent caller waits and
then reuses the refreshed token.

Example::

    class StaticGetter(TokenGetter):
        def get_token(self, ctx, old_token):
            return MyToken(fetch_from_vault())

    client.set_token_getter(StaticGetter())
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from vrest.context import Context


class Token(ABC):
    """Any kind of bearer token."""

    @abstractmethod
    def token(self) -> str:
        """Return the raw token value (without the ``Bearer`` prefix)."""
        ...

    @abstractmethod
    def needs_refresh(self) -> bool:
        """Return ``True`` once the token should be replaced.

        Implementations should include a safety margin before the actual
        expiry.
        """
        ...


class TokenGetter(ABC):
    """Acquires new tokens.

    Implementations need no locking of their own; :class:`TokenCache`
    guarantees at most one concurrent call per client.
    """

    @abstractmethod
    def get_token(self, ctx: Context, old_token: Optional[Token]) -> Token:
        """Return a new or refreshed token.

        Args:
            ctx: Execution context of the request that triggered the refresh.
            old_token: The previously cached token, or ``None`` on first use.
        """
        ...


class TokenCache:
    """Thread-safe holder of the current token of one client.

    The cached token is replaced by a single reference assignment and never
    mutated, so a reader sees either the old or the new token.

    Args:
        getter: The token getter invoked on refresh.
    """

    def __init__(self, getter: TokenGetter) -> None:
        self._getter = getter
        self._token: Optional[Token] = None
        self._lock = threading.Lock()

    @property
    def getter(self) -> TokenGetter:
        return self._getter

    @property
    def current(self) -> Optional[Token]:
        """The cached token, valid or not, without triggering a refresh."""
        return self._token

    def get_valid_token(self, ctx: Context) -> Token:
        """Return a valid token, refreshing it if needed.

        Exceptions raised by the getter propagate unchanged and leave the
        previously cached token in place.
        """
        token = self._token
        if token is not None and not token.needs_refresh():
            return token

        with self._lock:
            # another caller may have refreshed while we waited
            token = self._token
            if token is not None and not token.needs_refresh():
                return token

            new_token = self._getter.get_token(ctx, token)
            self._token = new_token
            return new_token

    def invalidate(self) -> None:
        """Drop the cached token so the next request refreshes it."""
        with self._lock:
            self._token = None
