"""Authenticator settings.

Settings can be built directly, read from ``OIDC_GATE_*`` environment
variables with :meth:`AuthenticatorConfig.from_env`, or overlaid with
container-style init parameters via
:meth:`AuthenticatorConfig.with_init_parameters`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Final, Mapping

from oidc_gate.core.errors import ConfigurationError
from oidc_gate.utils.environment import env_flag, env_get

_LOG = logging.getLogger("oidc-gate.core.config")

INIT_CLIENT_ID: Final[str] = "oidc_gate.client_id"
INIT_REDIRECT_URI: Final[str] = "oidc_gate.redirect_uri"
INIT_ERROR_PAGE: Final[str] = "oidc_gate.error_page"


def normalize_error_page(page: str | None) -> str | None:
    """Return *page* with a leading ``/``, or ``None`` for a blank value."""
    if page is None or not page.strip():
        return None
    if not page.startswith("/"):
        _LOG.warning("error-page must start with /")
        page = "/" + page
    return page


@dataclass(frozen=True)
class AuthenticatorConfig:
    """Options recognised by :class:`~oidc_gate.core.authenticator.OpenIdAuthenticator`."""

    client_id: str = ""
    redirect_uri: str = ""
    client_secret: str = field(default="", repr=False)
    error_page: str | None = None
    always_save_uri: bool = False
    renew_session_on_login: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "error_page", normalize_error_page(self.error_page))

    @property
    def error_path(self) -> str | None:
        """Path component of the error page, used to recognise error-page requests."""
        if self.error_page is None:
            return None
        idx = self.error_page.find("?")
        return self.error_page[:idx] if idx > 0 else self.error_page

    def validate(self) -> None:
        missing = [name for name in ("client_id", "redirect_uri") if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"missing authenticator settings: {', '.join(missing)}")

    def with_init_parameters(self, params: Mapping[str, str | None]) -> "AuthenticatorConfig":
        """Return a copy overlaid with the init parameters present in *params*."""
        changes: dict[str, str | None] = {}
        if params.get(INIT_REDIRECT_URI) is not None:
            changes["redirect_uri"] = params[INIT_REDIRECT_URI]
        if params.get(INIT_ERROR_PAGE) is not None:
            changes["error_page"] = params[INIT_ERROR_PAGE]
        if params.get(INIT_CLIENT_ID) is not None:
            changes["client_id"] = params[INIT_CLIENT_ID]
        return replace(self, **changes) if changes else self

    @classmethod
    def from_env(cls) -> "AuthenticatorConfig":
        """Build settings from ``OIDC_GATE_*`` environment variables."""
        return cls(
            client_id=env_get("CLIENT_ID", "") or "",
            client_secret=env_get("CLIENT_SECRET", "") or "",
            redirect_uri=env_get("REDIRECT_URI", "") or "",
            error_page=env_get("ERROR_PAGE"),
            always_save_uri=env_flag("ALWAYS_SAVE_URI"),
            renew_session_on_login=env_flag("RENEW_SESSION", default=True),
        )
