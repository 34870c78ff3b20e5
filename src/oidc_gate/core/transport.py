"""Transport contracts consumed by the authenticator.

The core never touches a web framework directly.  A binding (see
:mod:`oidc_gate.servers.adapters`) wraps the framework's request and response
objects in these two protocols.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from oidc_gate.core.models import FormParameters

FORM_ENCODED = "application/x-www-form-urlencoded"

SC_FOUND = 302
SC_SEE_OTHER = 303
SC_FORBIDDEN = 403
SC_SERVICE_UNAVAILABLE = 503

_VERSION_RE = re.compile(r"^(?:HTTP/)?(\d+)(?:\.(\d+))?$", re.IGNORECASE)


@runtime_checkable
class AuthRequest(Protocol):
    """Inbound request as seen by the authenticator."""

    session_id: str | None

    @property
    def method(self) -> str: ...

    @property
    def full_url(self) -> str:
        """Absolute request URL including the query string."""
        ...

    @property
    def path_in_context(self) -> str: ...

    @property
    def context_path(self) -> str: ...

    @property
    def http_version(self) -> str: ...

    @property
    def content_type(self) -> str | None: ...

    def get_parameter(self, name: str) -> str | None: ...
    def form_parameters(self) -> FormParameters | None:
        """Decoded form body, or ``None`` when the body cannot be captured."""
        ...

    def set_method(self, method: str) -> None: ...
    def set_content_parameters(self, form: FormParameters) -> None: ...

    def attach_session(self, session_id: str) -> None:
        """Record the session the client must present from now on."""
        ...


@runtime_checkable
class AuthResponse(Protocol):
    """Outbound response the authenticator may commit."""

    @property
    def deferred(self) -> bool:
        """True when challenges cannot be sent on this response."""
        ...

    @property
    def committed(self) -> bool: ...

    def send_error(self, status: int) -> None: ...
    def send_redirect(self, status: int, location: str) -> None: ...
    def set_content_length(self, length: int) -> None: ...


class DeferredResponse:
    """Response stand-in used when forcing a deferred authentication.

    Nothing written here reaches the client.
    """

    deferred = True

    def __init__(self) -> None:
        self.status: int | None = None
        self.location: str | None = None

    @property
    def committed(self) -> bool:
        return self.status is not None

    def send_error(self, status: int) -> None:
        self.status = status

    def send_redirect(self, status: int, location: str) -> None:
        self.status = status
        self.location = location

    def set_content_length(self, length: int) -> None:
        return None


def parse_http_version(version: str | None) -> tuple[int, int]:
    """Parse ``"1.1"``, ``"HTTP/1.0"`` or ``"2"`` into a ``(major, minor)`` pair.

    Unparseable values count as HTTP/1.0.
    """
    match = _VERSION_RE.match((version or "").strip())
    if not match:
        return (1, 0)
    return int(match.group(1)), int(match.group(2) or 0)


def redirect_status(http_version: str | None) -> int:
    """Return 303 for HTTP/1.1+ clients and 302 for older ones."""
    if parse_http_version(http_version) < (1, 1):
        return SC_FOUND
    return SC_SEE_OTHER


def is_form_encoded(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == FORM_ENCODED


def add_paths(base: str, path: str) -> str:
    """Join a context path and a path without doubling the slash."""
    if not base:
        return path or "/"
    if not path:
        return base
    return base.rstrip("/") + "/" + path.lstrip("/")
