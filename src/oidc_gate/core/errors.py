"""Exception types raised by the OpenID core.

Denials (bad ``state``, rejected code) are not exceptions: they are written to
the response and reported as an :class:`~oidc_gate.core.models.AuthResult`.
Only conditions the caller cannot answer with a response live here.
"""

from __future__ import annotations


class ServerAuthError(RuntimeError):
    """Fatal, request-level failure while writing an auth response."""


class CredentialExchangeError(RuntimeError):
    """Raised when an authorization code cannot be turned into a principal."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        payload = {"error": "credential_exchange_failed", "message": str(self)}
        if self.status_code is not None:
            payload["status_code"] = str(self.status_code)
        return payload


class ConfigurationError(ValueError):
    """Raised when the authenticator is missing mandatory settings."""


class SessionLimitError(RuntimeError):
    """Raised when a session store refuses to create another session."""
