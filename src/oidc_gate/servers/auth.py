"""Browser-facing auth endpoints.

Handlers are intentionally thin:

1. Adapt the Starlette request for the core.
2. Delegate to :class:`~oidc_gate.core.authenticator.OpenIdAuthenticator`.
3. Return an appropriate Starlette ``Response`` type.

The provider callback needs no route of its own: any request carrying a
``code`` parameter is completed by the middleware before routing.

SECURITY NOTE
-------------
No anti-forgery tokens, authorization codes or session identifiers are ever
written to responses or logs by these handlers.
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from oidc_gate.core.authenticator import OpenIdAuthenticator
from oidc_gate.core.session import USER_INFO_KEY
from oidc_gate.servers.adapters import SESSION_COOKIE, StarletteAuthRequest

_LOG = logging.getLogger("oidc-gate.servers.auth")


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{title}</title></head><body><h1>{title}</h1><p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _safe_next(target: str | None) -> str:
    """Only same-site relative paths are allowed as logout targets."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


def build_auth_routes(
    authenticator: OpenIdAuthenticator,
    *,
    base_path: str = "/auth",
    cookie_name: str = SESSION_COOKIE,
) -> list[Route]:
    """Return the auth endpoints mounted under *base_path*."""

    def _auth_request(request: Request) -> StarletteAuthRequest:
        return StarletteAuthRequest(request, session_id=request.cookies.get(cookie_name))

    # ----- GET|POST /auth/logout ------------------------------------------ #
    async def _logout(request: Request) -> Response:
        authenticator.logout(_auth_request(request))
        target = _safe_next(request.query_params.get("next"))
        _LOG.info("Logged out, redirecting to %s", target)
        return RedirectResponse(target, status_code=303)

    # ----- GET /auth/status ----------------------------------------------- #
    async def _status(request: Request) -> Response:
        session = authenticator.store.get(request.cookies.get(cookie_name))
        state = authenticator.state_of(session)
        return JSONResponse({"state": state.value, "auth_method": authenticator.auth_method})

    # ----- GET /auth/userinfo --------------------------------------------- #
    async def _userinfo(request: Request) -> Response:
        session = authenticator.store.get(request.cookies.get(cookie_name))
        user_info = session.get(USER_INFO_KEY) if session is not None else None
        if user_info is None:
            return JSONResponse({"error": "not_authenticated"}, status_code=401)
        return JSONResponse(dict(user_info))

    routes = [
        Route(f"{base_path}/logout", _logout, methods=["GET", "POST"]),
        Route(f"{base_path}/status", _status, methods=["GET"]),
        Route(f"{base_path}/userinfo", _userinfo, methods=["GET"]),
    ]

    # ----- GET <error page> ----------------------------------------------- #
    error_path = authenticator.config.error_path
    if error_path is not None:

        async def _error_page(request: Request) -> Response:  # noqa: ARG001
            return _html_page(
                "Sign-in failed",
                "Your Google sign-in could not be verified. Please try again.",
                403,
            )

        routes.append(Route(error_path, _error_page, methods=["GET"]))

    return routes
