"""Authorization-endpoint URL construction.

The challenge URL sends the browser to Google with the client id, the
callback URI, the OpenID scopes and the session's anti-forgery token.  The
token is minted on the first challenge and reused for every later challenge
of the same pending login, otherwise an outstanding round trip would come
back with a ``state`` that no longer matches.
"""

from __future__ import annotations

import logging
from typing import Final
from urllib.parse import quote, urlencode

from oidc_gate.core.session import CSRF_TOKEN_KEY, Session
from oidc_gate.core.state import mint_anti_forgery_token

_LOG = logging.getLogger("oidc-gate.core.challenge")

AUTH_ENDPOINT: Final[str] = "https://accounts.google.com/o/oauth2/v2/auth"
SCOPES: Final[tuple[str, ...]] = ("openid", "email", "profile")


def anti_forgery_token(session: Session) -> str:
    """Return the session's pending token, minting one if there is none."""
    with session.exclusive():
        token = session.get(CSRF_TOKEN_KEY)
        if not token:
            token = mint_anti_forgery_token()
            session.set(CSRF_TOKEN_KEY, token)
            _LOG.debug("Minted anti-forgery token for session=%s****", session.id[:6])
    return token


def challenge_uri(client_id: str, redirect_uri: str, state: str) -> str:
    """Assemble the authorization URL for an explicit *state*."""
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(SCOPES),
            "state": state,
            "response_type": "code",
        },
        quote_via=quote,
    )
    return f"{AUTH_ENDPOINT}?{query}"


def build_challenge_uri(session: Session, client_id: str, redirect_uri: str) -> str:
    """Return the provider URL for *session*, creating its token if needed."""
    return challenge_uri(client_id, redirect_uri, anti_forgery_token(session))
