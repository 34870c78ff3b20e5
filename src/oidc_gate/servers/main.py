"""Starlette application factory for the OpenID login gate."""

from __future__ import annotations

import logging
from typing import Sequence

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import BaseRoute, Route

from oidc_gate.core.authenticator import OpenIdAuthenticator
from oidc_gate.core.config import AuthenticatorConfig
from oidc_gate.core.exchange import GoogleCredentialExchange, LoginService, OpenIdLoginService
from oidc_gate.core.session import SessionStore
from oidc_gate.servers.adapters import SESSION_COOKIE
from oidc_gate.servers.auth import build_auth_routes
from oidc_gate.servers.correlation import CorrelationIdMiddleware
from oidc_gate.servers.middleware import DEFAULT_MAX_FORM_SIZE, OpenIdAuthMiddleware
from oidc_gate.utils.environment import env_flag, env_get
from oidc_gate.utils.logging import setup_logging

logger = logging.getLogger("oidc-gate.servers.main")


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def build_authenticator(
    config: AuthenticatorConfig,
    *,
    login_service: LoginService | None = None,
    store: SessionStore | None = None,
) -> OpenIdAuthenticator:
    """Wire an authenticator, defaulting to Google's token endpoint."""
    if login_service is None:
        exchange = GoogleCredentialExchange(
            config.client_id, config.client_secret, config.redirect_uri
        )
        login_service = OpenIdLoginService(exchange)
    return OpenIdAuthenticator(config, login_service, store)


def create_app(
    config: AuthenticatorConfig | None = None,
    *,
    login_service: LoginService | None = None,
    store: SessionStore | None = None,
    routes: Sequence[BaseRoute] = (),
    protected_paths: Sequence[str] = ("/",),
    public_paths: Sequence[str] = ("/healthz",),
    auth_base_path: str = "/auth",
    cookie_name: str = SESSION_COOKIE,
    cookie_secure: bool | None = None,
    max_form_size: int | None = None,
) -> Starlette:
    """Return a Starlette app whose *protected_paths* require a Google login.

    The ``/auth/*`` endpoints are always public so that logout and status
    never trigger a challenge.
    """
    setup_logging()
    config = config or AuthenticatorConfig.from_env()
    authenticator = build_authenticator(config, login_service=login_service, store=store)
    if cookie_secure is None:
        cookie_secure = env_flag("COOKIE_SECURE")
    if not cookie_secure:
        logger.warning("Session cookie is not marked Secure; use only for local development.")
    if max_form_size is None:
        max_form_size = int(env_get("MAX_FORM_SIZE") or DEFAULT_MAX_FORM_SIZE)

    all_routes: list[BaseRoute] = [Route("/healthz", health_check, methods=["GET"])]
    all_routes.extend(build_auth_routes(authenticator, base_path=auth_base_path, cookie_name=cookie_name))
    all_routes.extend(routes)

    middleware = [
        Middleware(CorrelationIdMiddleware),
        Middleware(
            OpenIdAuthMiddleware,
            authenticator=authenticator,
            protected_paths=protected_paths,
            public_paths=(*public_paths, auth_base_path),
            cookie_name=cookie_name,
            cookie_secure=cookie_secure,
            max_form_size=max_form_size,
        ),
    ]
    app = Starlette(routes=all_routes, middleware=middleware)
    app.state.authenticator = authenticator
    logger.info(
        "OpenID gate ready: protected=%s error_page=%s always_save_uri=%s",
        list(protected_paths),
        config.error_page,
        config.always_save_uri,
    )
    return app
