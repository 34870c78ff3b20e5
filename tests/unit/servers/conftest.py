"""Fixtures for driving the Starlette app over httpx's ASGI transport."""

from __future__ import annotations

from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any

import httpx
import pytest
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from oidc_gate.core.config import AuthenticatorConfig
from oidc_gate.core.models import GoogleCredentials, Principal, UserIdentity
from oidc_gate.core.session import InMemorySessionStore
from oidc_gate.servers.main import create_app

BASE_URL = "http://test"
CLIENT_ID = "client-123.apps.googleusercontent.com"
REDIRECT_URI = f"{BASE_URL}/auth/callback"
VALID_CODE = "good-code"


class StubLoginService:
    """Accepts :data:`VALID_CODE` only; never touches the network."""

    def __init__(self) -> None:
        self.valid = True
        self.logouts = 0

    def login(self, username: str | None, credentials: Any) -> UserIdentity | None:
        if not isinstance(credentials, GoogleCredentials) or credentials.auth_code != VALID_CODE:
            return None
        credentials.user_info = {"sub": "1234567890", "email": "ada@example.com"}
        return UserIdentity(principal=Principal("1234567890", credentials.user_info))

    def validate(self, identity: UserIdentity) -> bool:
        return self.valid

    def logout(self, identity: UserIdentity) -> None:
        self.logouts += 1


async def _echo(request: Request) -> JSONResponse:
    """Report what the downstream app saw."""
    result = request.state.auth_result
    user = result.user.user_identity.name if result.user is not None else None
    form: dict[str, list[str]] = {}
    if request.method == "POST":
        data = await request.form()
        for key, value in data.multi_items():
            form.setdefault(key, []).append(str(value))
    return JSONResponse(
        {"method": request.method, "outcome": result.outcome.value, "user": user, "form": form}
    )


async def _upload(request: Request) -> JSONResponse:
    """Report the body chunks as the downstream app received them."""
    chunks = [len(chunk) async for chunk in request.stream() if chunk]
    return JSONResponse({"chunks": chunks})


@pytest.fixture()
def login_service() -> StubLoginService:
    return StubLoginService()


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def config() -> AuthenticatorConfig:
    return AuthenticatorConfig(
        client_id=CLIENT_ID,
        client_secret="secret",
        redirect_uri=REDIRECT_URI,
        error_page="/auth/error",
    )


@pytest.fixture()
def make_app(config, login_service, store):
    """Return a factory building the test app; keyword arguments go to create_app."""

    def _factory(**overrides: Any):
        return create_app(
            config,
            login_service=login_service,
            store=store,
            routes=[
                Route("/protected", _echo, methods=["GET", "POST"]),
                Route("/protected/submit", _echo, methods=["GET", "POST"]),
                Route("/public", _echo, methods=["GET"]),
                Route("/public/upload", _upload, methods=["PUT"]),
            ],
            protected_paths=("/protected",),
            cookie_secure=False,
            **overrides,
        )

    return _factory


@pytest.fixture()
def asgi_app(make_app):
    return make_app()


def _open_client(app) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    jar = CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
    return httpx.AsyncClient(transport=transport, base_url=BASE_URL, cookies=jar)


@pytest.fixture()
def open_client():
    """Return a factory for async HTTP clients bound to an app; cookies are sent explicitly."""
    return _open_client


@pytest.fixture()
async def client(asgi_app):
    """Async HTTP client bound to the Starlette app; cookies are sent explicitly."""
    async with _open_client(asgi_app) as ac:
        yield ac
