"""ASGI middleware that puts protected paths behind the OpenID login.

For every HTTP request the middleware:

1. Runs :meth:`OpenIdAuthenticator.prepare_request` and
   :meth:`OpenIdAuthenticator.validate_request` in the thread pool.
2. Either sends the redirect/denial the authenticator recorded, or calls the
   wrapped app with the restored method and the result stored in
   ``request.state.auth_result``.

The body is left untouched unless a challenge has to save a form-encoded
``POST`` for replay; such forms are read only up to ``max_form_size`` bytes.
The wrapped app receives the original ``receive`` channel except on the one
request that replays a saved form.

The session identifier travels in the ``oidc_gate_session`` cookie, which is
(re)issued whenever the authenticator creates or renews a session.
"""

from __future__ import annotations

import logging
from typing import Final, Sequence
from urllib.parse import urlencode

import anyio.from_thread
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from oidc_gate.core.authenticator import OpenIdAuthenticator
from oidc_gate.core.errors import ServerAuthError
from oidc_gate.core.models import AuthResult, FormParameters
from oidc_gate.core.transport import FORM_ENCODED
from oidc_gate.servers.adapters import (
    SESSION_COOKIE,
    BufferedAuthResponse,
    StarletteAuthRequest,
    form_to_parameters,
)

logger = logging.getLogger("oidc-gate.servers.middleware")

DEFAULT_MAX_FORM_SIZE: Final[int] = 200_000


def _path_matches(path: str, prefixes: Sequence[str]) -> bool:
    for prefix in prefixes:
        if prefix == "/" or path == prefix.rstrip("/") or path.startswith(prefix.rstrip("/") + "/"):
            return True
    return False


class OpenIdAuthMiddleware:
    """ASGI middleware driving :class:`OpenIdAuthenticator` per request."""

    def __init__(
        self,
        app: ASGIApp,
        authenticator: OpenIdAuthenticator,
        *,
        protected_paths: Sequence[str] = ("/",),
        public_paths: Sequence[str] = (),
        cookie_name: str = SESSION_COOKIE,
        cookie_secure: bool = False,
        cookie_max_age: int | None = None,
        max_form_size: int = DEFAULT_MAX_FORM_SIZE,
    ) -> None:
        self.app = app
        self.authenticator = authenticator
        self.protected_paths = tuple(protected_paths)
        self.public_paths = tuple(public_paths)
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self.cookie_max_age = cookie_max_age
        self.max_form_size = max_form_size

    def is_mandatory(self, path: str) -> bool:
        """Return True when *path* requires an authenticated caller."""
        if _path_matches(path, self.public_paths):
            return False
        return _path_matches(path, self.protected_paths)

    def session_cookie(self, session_id: str) -> bytes:
        """Render the ``Set-Cookie`` value for *session_id*."""
        carrier = Response()
        carrier.set_cookie(
            self.cookie_name,
            session_id,
            max_age=self.cookie_max_age,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
        )
        for name, value in carrier.raw_headers:
            if name == b"set-cookie":
                return value
        raise RuntimeError("cookie header not rendered")  # pragma: no cover

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # Pass through non-HTTP requests directly per ASGI spec
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # According to ASGI spec, middleware should copy scope when modifying it
        scope_copy: Scope = dict(scope)
        scope_copy["state"] = dict(scope.get("state") or {})

        request = Request(scope_copy, receive)
        auth_request = StarletteAuthRequest(
            request,
            session_id=request.cookies.get(self.cookie_name),
            # called from the worker thread, only by a challenge saving a form
            form_loader=lambda: anyio.from_thread.run(self._read_form, request),
        )
        auth_response = BufferedAuthResponse()
        mandatory = self.is_mandatory(request.url.path)

        try:
            result = await run_in_threadpool(
                self._authenticate, auth_request, auth_response, mandatory
            )
        except ServerAuthError:
            logger.error("Fatal error while authenticating %s", request.url.path, exc_info=True)
            raise

        cookie = (
            self.session_cookie(auth_request.session_id)
            if auth_request.session_changed and auth_request.session_id
            else None
        )

        if result.response_sent:
            response = auth_response.to_response()
            if cookie is not None:
                response.raw_headers.append((b"set-cookie", cookie))
            logger.debug(
                "Auth response %s for %s %s (%s)",
                auth_response.status,
                request.method,
                request.url.path,
                result.outcome.value,
            )
            await response(scope_copy, receive, send)
            return

        await self._call_downstream(scope_copy, receive, send, auth_request, result, cookie)

    def _authenticate(
        self, auth_request: StarletteAuthRequest, auth_response: BufferedAuthResponse, mandatory: bool
    ) -> AuthResult:
        self.authenticator.prepare_request(auth_request)
        return self.authenticator.validate_request(auth_request, auth_response, mandatory)

    async def _read_form(self, request: Request) -> FormParameters | None:
        """Decode the form body; ``None`` when its length is unknown or over ``max_form_size``."""
        length = request.headers.get("content-length", "")
        if not length.isdigit() or int(length) > self.max_form_size:
            logger.warning(
                "Form body of %s %s not captured (content-length %r, limit %d)",
                request.method,
                request.url.path,
                length or None,
                self.max_form_size,
            )
            return None
        return form_to_parameters(await request.form())

    async def _call_downstream(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
        auth_request: StarletteAuthRequest,
        result: AuthResult,
        cookie: bytes | None,
    ) -> None:
        scope["state"]["auth_result"] = result
        scope["method"] = auth_request.method

        downstream_receive = receive
        if auth_request.replayed_form is not None:
            body = urlencode(auth_request.replayed_form, doseq=True).encode("ascii")
            headers = MutableHeaders(scope=scope)
            headers["content-type"] = FORM_ENCODED
            headers["content-length"] = str(len(body))
            body_sent = False

            async def replay_receive() -> Message:
                nonlocal body_sent
                if not body_sent:
                    body_sent = True
                    return {"type": "http.request", "body": body, "more_body": False}
                return await receive()

            downstream_receive = replay_receive

        async def send_with_cookie(message: Message) -> None:
            if cookie is not None and message["type"] == "http.response.start":
                MutableHeaders(scope=message).append("set-cookie", cookie.decode("latin-1"))
            await send(message)

        await self.app(scope, downstream_receive, send_with_cookie)
