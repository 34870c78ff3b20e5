"""Per-client session storage for the authenticator.

This module introduces a *narrow* session contract (:class:`Session`,
:class:`SessionStore`) and an in-process implementation backed by
:class:`cachetools.TTLCache`.  The design follows these goals:

* **Exclusivity** – every session owns a re-entrant lock; multi-attribute
  read-modify-write sequences run inside :meth:`Session.exclusive`.
* **Idle expiry** – a session disappears ``idle_timeout`` seconds after it
  was last looked up.
* **Fixation protection** – :meth:`SessionStore.renew` moves the attributes
  to a fresh identifier.

Environment variables
---------------------
OIDC_GATE_SESSION_TIMEOUT
    Idle timeout in seconds used by :func:`default_store` (default 1800).
OIDC_GATE_MAX_SESSIONS
    Optional cap on live sessions for :func:`default_store` (unset: no cap).
"""

from __future__ import annotations

import math
import os
import secrets
import threading
from contextlib import contextmanager
from typing import Any, Final, Iterator, Protocol, runtime_checkable

from cachetools import TTLCache

from oidc_gate.core.clock import Clock, default_clock
from oidc_gate.core.errors import SessionLimitError
from oidc_gate.core.models import ReplayRecord

# --------------------------------------------------------------------------- #
# attribute keys                                                              #
# --------------------------------------------------------------------------- #

AUTHENTICATED_KEY: Final[str] = "oidc_gate.authenticated"
USER_INFO_KEY: Final[str] = "oidc_gate.user_info"
ORIGINAL_URI_KEY: Final[str] = "oidc_gate.original_uri"
ORIGINAL_METHOD_KEY: Final[str] = "oidc_gate.original_method"
ORIGINAL_FORM_KEY: Final[str] = "oidc_gate.original_form"
CSRF_TOKEN_KEY: Final[str] = "oidc_gate.csrf_token"

_DEFAULT_TIMEOUT: Final[int] = 1800
_UNBOUNDED: Final[float] = math.inf


def _new_session_id() -> str:
    return secrets.token_urlsafe(24)


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class Session(Protocol):
    """Mutable, server-owned attribute bag for one client."""

    @property
    def id(self) -> str: ...

    def get(self, name: str, default: Any = None) -> Any: ...
    def set(self, name: str, value: Any) -> None: ...
    def remove(self, name: str) -> None: ...
    def attribute_names(self) -> list[str]: ...

    def exclusive(self): ...  # context manager


@runtime_checkable
class SessionStore(Protocol):
    """Minimal session persistence contract."""

    def get(self, session_id: str | None) -> Session | None: ...
    def create(self) -> Session: ...
    def get_or_create(self, session_id: str | None) -> Session: ...
    def renew(self, session: Session) -> Session: ...
    def invalidate(self, session_id: str) -> None: ...


# --------------------------------------------------------------------------- #
# replay record helpers                                                       #
# --------------------------------------------------------------------------- #


def load_replay(session: Session) -> ReplayRecord | None:
    """Return the saved original request, or ``None`` when no URL is stored."""
    url = session.get(ORIGINAL_URI_KEY)
    if not url:
        return None
    return ReplayRecord(
        url=url,
        method=session.get(ORIGINAL_METHOD_KEY),
        form=session.get(ORIGINAL_FORM_KEY),
    )


def save_replay(session: Session, record: ReplayRecord) -> None:
    session.set(ORIGINAL_URI_KEY, record.url)
    session.set(ORIGINAL_METHOD_KEY, record.method)
    if record.form is not None:
        session.set(ORIGINAL_FORM_KEY, record.form)
    else:
        session.remove(ORIGINAL_FORM_KEY)


def clear_replay(session: Session) -> None:
    session.remove(ORIGINAL_URI_KEY)
    session.remove(ORIGINAL_METHOD_KEY)
    session.remove(ORIGINAL_FORM_KEY)


# --------------------------------------------------------------------------- #
# in-memory implementation                                                    #
# --------------------------------------------------------------------------- #


class InMemorySession(Session):
    """Dictionary-backed session guarded by a re-entrant lock."""

    def __init__(self, session_id: str) -> None:
        self._id = session_id
        self._attributes: dict[str, Any] = {}
        self._lock = threading.RLock()

    @property
    def id(self) -> str:
        return self._id

    def get(self, name: str, default: Any = None) -> Any:
        with self._lock:
            return self._attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            if value is None:
                self._attributes.pop(name, None)
            else:
                self._attributes[name] = value

    def remove(self, name: str) -> None:
        with self._lock:
            self._attributes.pop(name, None)

    def attribute_names(self) -> list[str]:
        with self._lock:
            return list(self._attributes)

    @contextmanager
    def exclusive(self) -> Iterator["InMemorySession"]:
        """Hold the session lock for a read-modify-write sequence."""
        with self._lock:
            yield self

    def __repr__(self) -> str:
        return f"InMemorySession(id={self._id[:6]}****)"


class InMemorySessionStore(SessionStore):
    """Process-local :class:`SessionStore` with idle expiry.

    Sessions only ever leave the store by idling out, :meth:`renew` or
    :meth:`invalidate`.  With ``max_sessions`` set, :meth:`create` refuses new
    sessions once the cap is reached instead of evicting live ones.
    """

    def __init__(
        self,
        *,
        idle_timeout: float = _DEFAULT_TIMEOUT,
        max_sessions: int | None = None,
        clock: Clock = default_clock,
    ) -> None:
        # the cache itself never evicts; the cap is enforced in create()
        self._sessions: TTLCache[str, InMemorySession] = TTLCache(
            maxsize=_UNBOUNDED, ttl=idle_timeout, timer=clock
        )
        self.max_sessions = max_sessions
        # TTLCache itself is not thread-safe
        self._lock = threading.Lock()

    def get(self, session_id: str | None) -> InMemorySession | None:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                # touch: restart the idle timer
                self._sessions[session_id] = session
            return session

    def create(self) -> InMemorySession:
        """Store and return a new session.

        Raises
        ------
        SessionLimitError
            If ``max_sessions`` live sessions already exist.
        """
        session = InMemorySession(_new_session_id())
        with self._lock:
            if self.max_sessions is not None:
                self._sessions.expire()
                if len(self._sessions) >= self.max_sessions:
                    raise SessionLimitError(f"session limit of {self.max_sessions} reached")
            self._sessions[session.id] = session
        return session

    def get_or_create(self, session_id: str | None) -> InMemorySession:
        return self.get(session_id) or self.create()

    def renew(self, session: Session) -> InMemorySession:
        """Move all attributes of *session* to a new identifier."""
        fresh = InMemorySession(_new_session_id())
        with session.exclusive():
            for name in session.attribute_names():
                fresh.set(name, session.get(name))
        with self._lock:
            self._sessions.pop(session.id, None)
            self._sessions[fresh.id] = fresh
        return fresh

    def invalidate(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            self._sessions.expire()
            return len(self._sessions)


# --------------------------------------------------------------------------- #
# Convenience – default singleton                                             #
# --------------------------------------------------------------------------- #

_default_store: InMemorySessionStore | None = None


def default_store() -> InMemorySessionStore:
    """Return a process-wide singleton :class:`InMemorySessionStore`."""
    global _default_store  # noqa: PLW0603
    if _default_store is None:
        timeout = float(os.getenv("OIDC_GATE_SESSION_TIMEOUT", _DEFAULT_TIMEOUT))
        cap = os.getenv("OIDC_GATE_MAX_SESSIONS")
        _default_store = InMemorySessionStore(
            idle_timeout=timeout, max_sessions=int(cap) if cap else None
        )
    return _default_store
