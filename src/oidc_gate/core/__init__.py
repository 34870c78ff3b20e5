"""OpenID authentication core package.

This namespace hosts the **HTTP-agnostic** parts of the Authorization Code
handshake.  Web bindings adapt their request/response objects to the
protocols in :mod:`~oidc_gate.core.transport` and call
:class:`OpenIdAuthenticator`.

Sub-modules
-----------
authenticator
    The per-request state machine.
challenge
    Authorization-endpoint URL construction.
clock
    Test-friendly time abstraction.
config
    Authenticator settings.
errors
    Exception types used by the core.
exchange
    Code redemption and the login service.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).
models
    Identity, replay and result records.
session
    Session contract and in-memory store.
state
    Anti-forgery token minting and comparison.
transport
    Request/response protocols and redirect-status selection.

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .authenticator import OpenIdAuthenticator  # noqa: F401
from .challenge import AUTH_ENDPOINT, build_challenge_uri  # noqa: F401
from .clock import Clock, default_clock  # noqa: F401
from .config import AuthenticatorConfig  # noqa: F401
from .errors import ConfigurationError, CredentialExchangeError, ServerAuthError  # noqa: F401
from .exchange import (  # noqa: F401
    CredentialExchange,
    GoogleCredentialExchange,
    LoginService,
    OpenIdLoginService,
)
from .log_utils import get_auth_logger  # noqa: F401
from .models import (  # noqa: F401
    AuthOutcome,
    AuthResult,
    AuthState,
    CachedAuthentication,
    GoogleCredentials,
    Principal,
    ReplayRecord,
    UserIdentity,
)
from .session import InMemorySessionStore, Session, SessionStore, default_store  # noqa: F401
from .state import mint_anti_forgery_token, state_matches  # noqa: F401
from .transport import AuthRequest, AuthResponse, redirect_status  # noqa: F401

__all__ = [
    # authenticator
    "OpenIdAuthenticator",
    # challenge
    "AUTH_ENDPOINT",
    "build_challenge_uri",
    # clock
    "Clock",
    "default_clock",
    # config
    "AuthenticatorConfig",
    # errors
    "ConfigurationError",
    "CredentialExchangeError",
    "ServerAuthError",
    # exchange
    "CredentialExchange",
    "GoogleCredentialExchange",
    "LoginService",
    "OpenIdLoginService",
    # logging helpers
    "get_auth_logger",
    # models
    "AuthOutcome",
    "AuthResult",
    "AuthState",
    "CachedAuthentication",
    "GoogleCredentials",
    "Principal",
    "ReplayRecord",
    "UserIdentity",
    # session
    "InMemorySessionStore",
    "Session",
    "SessionStore",
    "default_store",
    # state
    "mint_anti_forgery_token",
    "state_matches",
    # transport
    "AuthRequest",
    "AuthResponse",
    "redirect_status",
]
