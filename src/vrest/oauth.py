"""OAuth client-credentials token getter.

The token request goes through the same :class:`~vrest.client.Client` it
authenticates, as a form-encoded ``POST`` to the token endpoint marked with
:meth:`~vrest.request.Request.set_token_request` so it is never itself
given a bearer token. Tokens are treated as stale five minutes before
``expires_in`` runs out.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlencode

from vrest.body import StructuredTarget
from vrest.codecs import CONTENT_TYPE_FORM
from vrest.exceptions import OAuthTokenRequestError, VrestError
from vrest.models import OAuthConfig, OAuthToken
from vrest.token import Token, TokenGetter

if TYPE_CHECKING:
    from vrest.client import Client
    from vrest.context import Context

SAFETY_MARGIN = timedelta(minutes=5)


class OAuthTokenGetter(TokenGetter):
    """Requests a new token from ``config.url`` on every refresh.

    Args:
        config: Token endpoint and client credentials.
        client: The client used to send the token request.
    """

    def __init__(self, config: OAuthConfig, client: Client) -> None:
        self.config = config
        self.client = client

    def get_token(self, ctx: Context, old_token: Optional[Token]) -> Token:
        """Request a new token.

        Raises:
            OAuthTokenRequestError: The token request failed; the cause
                carries the underlying error.
        """
        form = urlencode(
            [
                ("grant_type", self.config.grant_type),
                ("scope", self.config.scope),
                ("client_id", self.config.client_id),
                ("client_secret", self.config.client_secret),
            ]
        )
        target = StructuredTarget(OAuthToken)
        try:
            (
                self.client.new_request_with_context(ctx)
                .set_base_url(self.config.url)
                .set_content_type(CONTENT_TYPE_FORM)
                .set_body(form)
                .set_token_request()
                .set_response_body(target)
                .do_post("")
            )
        except VrestError as exc:
            raise OAuthTokenRequestError(f"failed to get new oauth token: {exc}") from exc

        token: Optional[OAuthToken] = target.value
        if token is None:
            raise OAuthTokenRequestError("failed to get new oauth token: empty token response")
        token.valid_until = (
            datetime.now(timezone.utc) + timedelta(seconds=token.expires_in) - SAFETY_MARGIN
        )
        return token
