"""Adapters between Starlette objects and the core transport protocols.

The core runs synchronously in a worker thread.  Headers and query come from
the Starlette request directly; the body is only read when the core asks for
the form of a request it is about to challenge, through the loader the
middleware hands to :class:`StarletteAuthRequest`.  Responses are buffered in
:class:`BufferedAuthResponse` and converted once the core has decided.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Callable, Final

from starlette.datastructures import FormData
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from oidc_gate.core.models import FormParameters

SESSION_COOKIE: Final[str] = "oidc_gate_session"


def form_to_parameters(form: FormData) -> FormParameters:
    """Flatten Starlette form data into ``name -> [values]`` (text fields only)."""
    params: FormParameters = {}
    for name, value in form.multi_items():
        if isinstance(value, str):
            params.setdefault(name, []).append(value)
    return params


class StarletteAuthRequest:
    """:class:`~oidc_gate.core.transport.AuthRequest` over a Starlette request."""

    def __init__(
        self,
        request: Request,
        *,
        session_id: str | None = None,
        form_loader: Callable[[], FormParameters | None] | None = None,
    ) -> None:
        self._request = request
        self._method = request.method
        self._form_loader = form_loader
        self.session_id = session_id
        self.session_changed = False
        self.replayed_form: FormParameters | None = None
        self.correlation_id: str | None = (request.scope.get("state") or {}).get("correlation_id")

    @property
    def method(self) -> str:
        return self._method

    @property
    def full_url(self) -> str:
        return str(self._request.url)

    @property
    def context_path(self) -> str:
        return self._request.scope.get("root_path", "") or ""

    @property
    def path_in_context(self) -> str:
        path = self._request.url.path
        root = self.context_path
        if root and path.startswith(root):
            return path[len(root):] or "/"
        return path

    @property
    def http_version(self) -> str:
        return self._request.scope.get("http_version", "1.1")

    @property
    def content_type(self) -> str | None:
        return self._request.headers.get("content-type")

    def get_parameter(self, name: str) -> str | None:
        return self._request.query_params.get(name)

    def form_parameters(self) -> FormParameters | None:
        if self._form_loader is None:
            return None
        form = self._form_loader()
        if form is None:
            return None
        return {k: list(v) for k, v in form.items()}

    def set_method(self, method: str) -> None:
        self._method = method

    def set_content_parameters(self, form: FormParameters) -> None:
        self.replayed_form = {k: list(v) for k, v in form.items()}

    def attach_session(self, session_id: str) -> None:
        self.session_id = session_id
        self.session_changed = True


class BufferedAuthResponse:
    """:class:`~oidc_gate.core.transport.AuthResponse` recorded for later replay."""

    deferred = False

    def __init__(self) -> None:
        self.status: int | None = None
        self.location: str | None = None
        self.content_length: int | None = None

    @property
    def committed(self) -> bool:
        return self.status is not None

    def send_error(self, status: int) -> None:
        self.status = status
        self.location = None

    def send_redirect(self, status: int, location: str) -> None:
        self.status = status
        self.location = location

    def set_content_length(self, length: int) -> None:
        self.content_length = length

    def to_response(self) -> Response:
        """Build the Starlette response the core asked for.

        Error bodies carry only the status phrase; nothing from the session
        leaks into them.
        """
        if self.status is None:
            raise RuntimeError("no auth response was recorded")
        if self.location is not None:
            return Response(status_code=self.status, headers={"location": self.location})
        return PlainTextResponse(HTTPStatus(self.status).phrase, status_code=self.status)
