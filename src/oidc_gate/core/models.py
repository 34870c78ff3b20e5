"""Typed records used by the OpenID authenticator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Mapping

AUTH_METHOD_GOOGLE: Final[str] = "GOOGLE"

FormParameters = dict[str, list[str]]


@dataclass(frozen=True, slots=True)
class Principal:
    """Verified identity produced by a credential exchange."""

    subject: str
    user_info: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.subject


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """Principal plus the role names a login service granted it."""

    principal: Principal
    roles: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.principal.name

    def is_user_in_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(slots=True)
class GoogleCredentials:
    """Authorization code received on the callback.

    ``user_info`` is filled with the id-token claims once the code has been
    redeemed.
    """

    auth_code: str = field(repr=False)
    user_info: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class CachedAuthentication:
    """Result of a successful login, kept in the session."""

    auth_method: str
    user_identity: UserIdentity
    credentials: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class ReplayRecord:
    """The request that triggered a challenge, replayed after the round trip."""

    url: str
    method: str | None = None
    form: FormParameters | None = None


class AuthOutcome(str, Enum):
    """Tag of an :class:`AuthResult`."""

    DEFERRED = "deferred"
    CHALLENGE_SENT = "challenge_sent"
    SUCCESS = "success"
    FAILURE = "failure"
    UNAUTHENTICATED = "unauthenticated"


class AuthState(str, Enum):
    """Where a session or request stands in the login handshake."""

    UNCHALLENGED = "unchallenged"
    CHALLENGE_SENT = "challenge_sent"
    CALLBACK_RECEIVED = "callback_received"
    AUTHENTICATED = "authenticated"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Outcome of one ``validate_request`` evaluation.

    ``response_sent`` is true when the authenticator already committed the
    response (redirect or error) and the caller must not write another one.
    """

    outcome: AuthOutcome
    user: CachedAuthentication | None = None
    response_sent: bool = False

    @classmethod
    def deferred(cls) -> "AuthResult":
        return cls(AuthOutcome.DEFERRED)

    @classmethod
    def challenge_sent(cls) -> "AuthResult":
        return cls(AuthOutcome.CHALLENGE_SENT, response_sent=True)

    @classmethod
    def failure(cls) -> "AuthResult":
        return cls(AuthOutcome.FAILURE, response_sent=True)

    @classmethod
    def unauthenticated(cls) -> "AuthResult":
        return cls(AuthOutcome.UNAUTHENTICATED)

    @classmethod
    def success(
        cls, user: CachedAuthentication, *, response_sent: bool = False
    ) -> "AuthResult":
        return cls(AuthOutcome.SUCCESS, user=user, response_sent=response_sent)

    @property
    def is_authenticated(self) -> bool:
        return self.outcome is AuthOutcome.SUCCESS
