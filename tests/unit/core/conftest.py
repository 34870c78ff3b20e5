"""Fakes for driving the authenticator without a web framework."""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import pytest

from oidc_gate.core.authenticator import OpenIdAuthenticator
from oidc_gate.core.config import AuthenticatorConfig
from oidc_gate.core.models import FormParameters, GoogleCredentials, Principal, UserIdentity
from oidc_gate.core.session import InMemorySessionStore

CLIENT_ID = "client-123.apps.googleusercontent.com"
REDIRECT_URI = "http://app.test/auth/callback"
VALID_CODE = "good-code"


class FakeRequest:
    """In-memory :class:`~oidc_gate.core.transport.AuthRequest`."""

    def __init__(
        self,
        url: str = "http://app.test/protected?x=1",
        method: str = "GET",
        *,
        session_id: str | None = None,
        http_version: str = "1.1",
        content_type: str | None = None,
        form: FormParameters | None = None,
        form_captured: bool = True,
        context_path: str = "",
    ) -> None:
        self.full_url = url
        self.method = method
        self.session_id = session_id
        self.http_version = http_version
        self.content_type = content_type
        self.context_path = context_path
        self._form = form or {}
        self._form_captured = form_captured
        self._query = parse_qs(urlsplit(url).query, keep_blank_values=True)
        self.content_parameters: FormParameters | None = None
        self.attached: list[str] = []

    @property
    def path_in_context(self) -> str:
        path = urlsplit(self.full_url).path
        if self.context_path and path.startswith(self.context_path):
            return path[len(self.context_path):] or "/"
        return path

    def get_parameter(self, name: str) -> str | None:
        values = self._query.get(name)
        return values[0] if values else None

    def form_parameters(self) -> FormParameters | None:
        if not self._form_captured:
            return None
        return {k: list(v) for k, v in self._form.items()}

    def set_method(self, method: str) -> None:
        self.method = method

    def set_content_parameters(self, form: FormParameters) -> None:
        self.content_parameters = form

    def attach_session(self, session_id: str) -> None:
        self.session_id = session_id
        self.attached.append(session_id)


class FakeResponse:
    """In-memory :class:`~oidc_gate.core.transport.AuthResponse`."""

    def __init__(self, *, deferred: bool = False, fail_with: Exception | None = None) -> None:
        self.deferred = deferred
        self.status: int | None = None
        self.location: str | None = None
        self.content_length: int | None = None
        self._fail_with = fail_with

    @property
    def committed(self) -> bool:
        return self.status is not None

    def send_error(self, status: int) -> None:
        if self._fail_with is not None:
            raise self._fail_with
        self.status = status

    def send_redirect(self, status: int, location: str) -> None:
        if self._fail_with is not None:
            raise self._fail_with
        self.status = status
        self.location = location

    def set_content_length(self, length: int) -> None:
        self.content_length = length


class StubLoginService:
    """Login service accepting only :data:`VALID_CODE`."""

    def __init__(self) -> None:
        self.login_calls: list[Any] = []
        self.logout_calls: list[UserIdentity] = []
        self.valid = True

    def login(self, username: str | None, credentials: Any) -> UserIdentity | None:
        self.login_calls.append(credentials)
        if not isinstance(credentials, GoogleCredentials) or credentials.auth_code != VALID_CODE:
            return None
        claims = {"sub": "1234567890", "email": "ada@example.com"}
        credentials.user_info = claims
        return UserIdentity(principal=Principal(subject="1234567890", user_info=claims))

    def validate(self, identity: UserIdentity) -> bool:
        return self.valid

    def logout(self, identity: UserIdentity) -> None:
        self.logout_calls.append(identity)


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def login_service() -> StubLoginService:
    return StubLoginService()


@pytest.fixture()
def make_authenticator(
    store: InMemorySessionStore, login_service: StubLoginService
) -> Callable[..., OpenIdAuthenticator]:
    """Return a factory building authenticators over the shared store."""

    def _factory(**overrides: Any) -> OpenIdAuthenticator:
        settings: dict[str, Any] = {"client_id": CLIENT_ID, "redirect_uri": REDIRECT_URI}
        settings.update(overrides)
        return OpenIdAuthenticator(AuthenticatorConfig(**settings), login_service, store)

    return _factory


@pytest.fixture()
def fake_request() -> type[FakeRequest]:
    return FakeRequest


@pytest.fixture()
def fake_response() -> type[FakeResponse]:
    return FakeResponse
