"""Pydantic models for client configuration and OAuth tokens.

**Configuration models** -- loaded from a JSON config file or the
environment by :mod:`vrest.config`:
    :class:`OAuthConfig` and :class:`ClientConfig`.

**Wire models** -- decoded from token endpoint responses:
    :class:`OAuthToken`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from vrest.token import Token


# --- OAuth ---


class OAuthConfig(BaseModel):
    """Client-credentials OAuth configuration.

    The ``client_secret`` may be given literally or as a credential source
    (``env:VAR``, ``file:/path``) resolved by
    :func:`~vrest.config.resolve_credential` when loading a config file.

    Example::

        OAuthConfig(
            url="https://login.example.com/oauth2/token",
            grant_type="client_credentials",
            scope="api://orders/.default",
            client_id="my-app",
            client_secret="env:ORDERS_CLIENT_SECRET",
        )
    """

    url: str = Field(description="Token endpoint URL")
    grant_type: str = "client_credentials"
    scope: str = ""
    client_id: str = ""
    client_secret: str = ""


class OAuthToken(BaseModel, Token):
    """An OAuth access token as returned by the token endpoint.

    ``valid_until`` is computed when the token is received and is not part
    of the wire format.
    """

    access_token: str = ""
    token_type: str = ""
    expires_in: int = 0
    ext_expires_in: int = 0
    valid_until: Optional[datetime] = Field(default=None, exclude=True)

    def token(self) -> str:
        return self.access_token

    def needs_refresh(self) -> bool:
        if not self.access_token or self.valid_until is None:
            return True
        return datetime.now(timezone.utc) >= self.valid_until


# --- Client ---


class ClientConfig(BaseModel):
    """Settings used by :meth:`vrest.client.Client.from_config`.

    ``response_body_limit`` of 0 disables the limit, which lets a server
    make the client buffer arbitrarily large bodies. ``timeout`` of 0
    disables the transport timeout.
    """

    base_url: str = ""
    content_type: str = ""
    authorization: str = ""
    response_body_limit: int = Field(default=0, ge=0)
    trace_bodies: bool = True
    timeout: float = Field(default=0, ge=0, description="Transport timeout in seconds")
    verify_ssl: bool = True
    oauth: Optional[OAuthConfig] = None
