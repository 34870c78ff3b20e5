"""Authorization-code redemption and the login service built on it.

:class:`GoogleCredentialExchange` performs the back-channel call to Google's
token endpoint.  The authenticator does not depend on it directly; it talks
to a :class:`LoginService`, which turns credentials into a
:class:`~oidc_gate.core.models.UserIdentity` and answers revocation checks.

The id token arrives straight from the provider over TLS on the back
channel, so its signature is not re-verified; the ``iss``, ``aud`` and
``exp`` claims are.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Final, Protocol, runtime_checkable

import jwt
import requests

from oidc_gate.core.clock import Clock, default_clock
from oidc_gate.core.errors import CredentialExchangeError
from oidc_gate.core.models import GoogleCredentials, Principal, UserIdentity
from oidc_gate.utils.logging import mask_sensitive

_LOG = logging.getLogger("oidc-gate.core.exchange")

TOKEN_ENDPOINT: Final[str] = "https://www.googleapis.com/oauth2/v4/token"
ISSUERS: Final[frozenset[str]] = frozenset(
    {"accounts.google.com", "https://accounts.google.com"}
)


# --------------------------------------------------------------------------- #
# Contracts                                                                   #
# --------------------------------------------------------------------------- #
@runtime_checkable
class CredentialExchange(Protocol):
    """Turn an authorization code into a verified principal."""

    def redeem(self, credentials: GoogleCredentials) -> Principal: ...


@runtime_checkable
class LoginService(Protocol):
    """Identity source consulted by the authenticator."""

    def login(self, username: str | None, credentials: Any) -> UserIdentity | None: ...
    def validate(self, identity: UserIdentity) -> bool: ...
    def logout(self, identity: UserIdentity) -> None: ...


# --------------------------------------------------------------------------- #
# Google                                                                      #
# --------------------------------------------------------------------------- #
class GoogleCredentialExchange(CredentialExchange):
    """Redeem codes against Google's OAuth 2.0 token endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        token_endpoint: str = TOKEN_ENDPOINT,
        clock: Clock = default_clock,
        timeout: tuple[int, int] = (5, 20),
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.token_endpoint = token_endpoint
        self._clock = clock
        self._timeout = timeout

    def redeem(self, credentials: GoogleCredentials) -> Principal:
        """Exchange ``credentials.auth_code`` and fill ``credentials.user_info``.

        Raises
        ------
        CredentialExchangeError
            If the request fails, the endpoint rejects the code or the id
            token is missing or invalid.
        """
        payload = {
            "code": credentials.auth_code,
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        _LOG.debug(
            "Redeeming code=%s at %s", mask_sensitive(credentials.auth_code, 4), self.token_endpoint
        )
        try:
            resp = requests.post(self.token_endpoint, data=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise CredentialExchangeError(f"Token request failed: {exc}") from exc

        if not resp.ok:
            raise CredentialExchangeError(
                f"Token endpoint returned {resp.status_code}", status_code=resp.status_code
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise CredentialExchangeError("Token response is not JSON") from exc

        id_token = data.get("id_token") if isinstance(data, dict) else None
        if not id_token:
            raise CredentialExchangeError("Token response missing id_token")

        claims = self.decode_id_token(id_token)
        credentials.user_info = claims
        return Principal(subject=str(claims["sub"]), user_info=claims)

    def decode_id_token(self, id_token: str) -> dict[str, Any]:
        """Decode *id_token* and validate its issuer, audience and expiry."""
        try:
            claims = jwt.decode(id_token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            raise CredentialExchangeError(f"Malformed id_token: {exc}") from None

        if claims.get("iss") not in ISSUERS:
            raise CredentialExchangeError("id_token has an unexpected issuer")

        audience = claims.get("aud")
        audiences = audience if isinstance(audience, list) else [audience]
        if self.client_id not in audiences:
            raise CredentialExchangeError("id_token audience does not match client_id")

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self._clock():
            raise CredentialExchangeError("id_token is expired")

        if not claims.get("sub"):
            raise CredentialExchangeError("id_token missing sub claim")
        return claims


# --------------------------------------------------------------------------- #
# Login service                                                               #
# --------------------------------------------------------------------------- #
class OpenIdLoginService(LoginService):
    """:class:`LoginService` backed by a :class:`CredentialExchange`.

    ``revocation_check`` decides whether a cached identity is still valid;
    without one every identity stays valid until logout.
    """

    def __init__(
        self,
        exchange: CredentialExchange,
        *,
        revocation_check: Callable[[UserIdentity], bool] | None = None,
    ) -> None:
        self.exchange = exchange
        self._revocation_check = revocation_check

    def login(self, username: str | None, credentials: Any) -> UserIdentity | None:  # noqa: ARG002
        if not isinstance(credentials, GoogleCredentials):
            return None
        try:
            principal = self.exchange.redeem(credentials)
        except CredentialExchangeError as exc:
            _LOG.warning("Credential exchange failed: %s", exc.to_payload())
            return None
        return UserIdentity(principal=principal)

    def validate(self, identity: UserIdentity) -> bool:
        if self._revocation_check is None:
            return True
        return bool(self._revocation_check(identity))

    def logout(self, identity: UserIdentity) -> None:
        _LOG.debug("Logged out subject=%s", mask_sensitive(identity.name, 4))
