"""OpenID Connect authenticator (Google, Authorization Code flow).

Unauthenticated requests to protected resources are redirected to Google's
authorization endpoint, which eventually redirects back to the configured
``redirect_uri`` with a ``code``.  The code is redeemed through the
:class:`~oidc_gate.core.exchange.LoginService` and the browser is sent back
to the resource it originally asked for.  Later requests are authenticated by
the :class:`~oidc_gate.core.models.CachedAuthentication` stored in their
session.

Every call to :meth:`OpenIdAuthenticator.validate_request` lands in one of
these branches:

1. not mandatory and no ``code``            -> ``DEFERRED``
2. request for the error page               -> ``DEFERRED``
3. ``code`` present (provider callback)     -> ``SUCCESS`` (redirect sent) or ``FAILURE``
4. cached authentication still valid        -> ``SUCCESS``
5. response cannot carry a challenge        -> ``UNAUTHENTICATED``
6. otherwise                                -> ``CHALLENGE_SENT`` (``FAILURE``, 503, when
                                               the session store is full)
"""

from __future__ import annotations

import logging
from typing import Any

from oidc_gate.core.challenge import build_challenge_uri
from oidc_gate.core.config import AuthenticatorConfig
from oidc_gate.core.errors import ServerAuthError, SessionLimitError
from oidc_gate.core.exchange import LoginService
from oidc_gate.core.log_utils import get_auth_logger
from oidc_gate.core.models import (
    AUTH_METHOD_GOOGLE,
    AuthResult,
    AuthState,
    CachedAuthentication,
    GoogleCredentials,
    ReplayRecord,
    UserIdentity,
)
from oidc_gate.core.session import (
    AUTHENTICATED_KEY,
    CSRF_TOKEN_KEY,
    ORIGINAL_METHOD_KEY,
    ORIGINAL_URI_KEY,
    USER_INFO_KEY,
    Session,
    SessionStore,
    clear_replay,
    default_store,
    load_replay,
    save_replay,
)
from oidc_gate.core.state import state_matches
from oidc_gate.core.transport import (
    SC_FORBIDDEN,
    SC_SERVICE_UNAVAILABLE,
    AuthRequest,
    AuthResponse,
    DeferredResponse,
    add_paths,
    is_form_encoded,
    redirect_status,
)

_LOGGER_NAME = "oidc-gate.core.authenticator"


class OpenIdAuthenticator:
    """Per-request authentication decisions for one OpenID client."""

    def __init__(
        self,
        config: AuthenticatorConfig,
        login_service: LoginService,
        store: SessionStore | None = None,
    ) -> None:
        config.validate()
        self.config = config
        self.login_service = login_service
        self.store = store if store is not None else default_store()

    @property
    def auth_method(self) -> str:
        return AUTH_METHOD_GOOGLE

    # ------------------------------------------------------------------ #
    # helpers                                                            #
    # ------------------------------------------------------------------ #
    def _log(self, request: AuthRequest) -> logging.LoggerAdapter:
        return get_auth_logger(
            base_logger_name=_LOGGER_NAME,
            session_id=request.session_id,
            auth_method=self.auth_method,
            correlation_id=getattr(request, "correlation_id", None),
        )

    def _session(self, request: AuthRequest) -> Session | None:
        return self.store.get(request.session_id)

    def _require_session(self, request: AuthRequest) -> Session:
        """Return the request's session, creating and attaching one if needed."""
        session = self.store.get(request.session_id)
        if session is None:
            session = self.store.create()
            request.attach_session(session.id)
        return session

    def has_auth_code(self, request: AuthRequest) -> bool:
        return request.get_parameter("code") is not None

    def is_error_page(self, path_in_context: str | None) -> bool:
        return path_in_context is not None and path_in_context == self.config.error_path

    def state_of(self, session: Session | None) -> AuthState:
        """Resting state of *session* between requests."""
        if session is None:
            return AuthState.UNCHALLENGED
        if session.get(AUTHENTICATED_KEY) is not None:
            return AuthState.AUTHENTICATED
        if session.get(CSRF_TOKEN_KEY):
            return AuthState.CHALLENGE_SENT
        return AuthState.UNCHALLENGED

    # ------------------------------------------------------------------ #
    # login / logout                                                     #
    # ------------------------------------------------------------------ #
    def login(
        self, username: str | None, credentials: Any, request: AuthRequest
    ) -> UserIdentity | None:
        """Resolve *credentials* and cache the identity in the session."""
        user = self.login_service.login(username, credentials)
        if user is None:
            return None

        session = self._require_session(request)
        if self.config.renew_session_on_login and session.get(AUTHENTICATED_KEY) is None:
            session = self.store.renew(session)
            request.attach_session(session.id)

        cached = CachedAuthentication(self.auth_method, user, credentials)
        session.set(AUTHENTICATED_KEY, cached)
        session.set(USER_INFO_KEY, getattr(credentials, "user_info", None))
        return user

    def logout(self, request: AuthRequest) -> None:
        """Drop the cached authentication; replay state and token are kept."""
        session = self._session(request)
        if session is None:
            return
        cached = session.get(AUTHENTICATED_KEY)
        session.remove(AUTHENTICATED_KEY)
        session.remove(USER_INFO_KEY)
        if isinstance(cached, CachedAuthentication):
            self.login_service.logout(cached.user_identity)

    def prepare_request(self, request: AuthRequest) -> None:
        """Restore the original method on the request that resumes a login.

        The provider's redirect back to the original URL always arrives as a
        ``GET``; a login started from a ``POST`` must be resumed as one.
        """
        session = self._session(request)
        if session is None or session.get(AUTHENTICATED_KEY) is None:
            return

        uri = session.get(ORIGINAL_URI_KEY)
        if not uri:
            return
        method = session.get(ORIGINAL_METHOD_KEY)
        if not method:
            return
        if uri != request.full_url:
            return

        self._log(request).debug(
            "Restoring original method %s for %s with method %s", method, uri, request.method
        )
        request.set_method(method)

    def secure_response(
        self, request: AuthRequest, response: AuthResponse, mandatory: bool, user: Any
    ) -> bool:
        return True

    # ------------------------------------------------------------------ #
    # validation                                                         #
    # ------------------------------------------------------------------ #
    def validate_request(
        self, request: AuthRequest, response: AuthResponse, mandatory: bool = False
    ) -> AuthResult:
        """Decide how *request* is authenticated, writing to *response* if needed.

        Raises
        ------
        ServerAuthError
            If writing the redirect or error response fails.
        """
        has_code = self.has_auth_code(request)
        if not (mandatory or has_code):
            return AuthResult.deferred()

        if self.is_error_page(request.path_in_context) and not response.deferred:
            return AuthResult.deferred()

        log = self._log(request)
        try:
            if has_code:
                return self._handle_callback(request, response, log)

            session = self._session(request)
            cached = session.get(AUTHENTICATED_KEY) if session is not None else None
            if session is not None and cached is not None:
                if not self.login_service.validate(cached.user_identity):
                    log.debug("auth revoked %s", cached)
                    session.remove(AUTHENTICATED_KEY)
                else:
                    self._restore_replay(session, request, cached, log)
                    log.debug("auth %s", cached)
                    return AuthResult.success(cached)

            if response.deferred:
                log.debug("auth deferred")
                return AuthResult.unauthenticated()

            return self._send_challenge(request, response, log)
        except OSError as exc:
            raise ServerAuthError(f"failed to write auth response: {exc}") from exc

    def authenticate_deferred(
        self, request: AuthRequest, response: AuthResponse | None = None
    ) -> AuthResult:
        """Force a decision for a request that earlier came back ``DEFERRED``.

        Without a *response* no challenge can be sent, so an unauthenticated
        caller gets ``UNAUTHENTICATED`` instead of a redirect.
        """
        return self.validate_request(request, response or DeferredResponse(), mandatory=True)

    def _handle_callback(
        self, request: AuthRequest, response: AuthResponse, log: logging.LoggerAdapter
    ) -> AuthResult:
        session = self._session(request)
        expected: str | None = None
        if session is not None:
            with session.exclusive():
                expected = session.get(CSRF_TOKEN_KEY)

        if not state_matches(expected, request.get_parameter("state")):
            log.warning("auth failed 403: invalid state parameter")
            response.send_error(SC_FORBIDDEN)
            return AuthResult.failure()

        credentials = GoogleCredentials(auth_code=request.get_parameter("code") or "")
        user = self.login(None, credentials, request)
        if user is not None:
            session = self._require_session(request)
            with session.exclusive():
                next_uri = session.get(ORIGINAL_URI_KEY)
                if not next_uri:
                    next_uri = request.context_path or "/"
            cached = session.get(AUTHENTICATED_KEY)
            log = self._log(request)
            log.debug("authenticated %s->%s", cached, next_uri)

            response.set_content_length(0)
            response.send_redirect(redirect_status(request.http_version), next_uri)
            return AuthResult.success(cached, response_sent=True)

        log.debug("OpenID authentication FAILED")
        if self.config.error_page is None:
            log.debug("auth failed 403")
            response.send_error(SC_FORBIDDEN)
        else:
            log.debug("auth failed %s", self.config.error_page)
            response.send_redirect(
                redirect_status(request.http_version),
                add_paths(request.context_path, self.config.error_page),
            )
        return AuthResult.failure()

    def _restore_replay(
        self,
        session: Session,
        request: AuthRequest,
        cached: CachedAuthentication,
        log: logging.LoggerAdapter,
    ) -> None:
        with session.exclusive():
            record = load_replay(session)
            if record is None:
                return
            log.debug("auth retry %s->%s", cached, record.url)
            if record.url != request.full_url:
                return
            if record.form is not None:
                log.debug("auth rePOST %s->%s", cached, record.url)
                request.set_content_parameters(record.form)
            clear_replay(session)

    def _send_challenge(
        self, request: AuthRequest, response: AuthResponse, log: logging.LoggerAdapter
    ) -> AuthResult:
        try:
            session = self._require_session(request)
        except SessionLimitError as exc:
            log.warning("challenge refused: %s", exc)
            response.send_error(SC_SERVICE_UNAVAILABLE)
            return AuthResult.failure()

        with session.exclusive():
            # first URI wins unless every challenge should be remembered
            if session.get(ORIGINAL_URI_KEY) is None or self.config.always_save_uri:
                method = request.method
                form = None
                if method.upper() == "POST" and is_form_encoded(request.content_type):
                    form = request.form_parameters()
                    if form is None:
                        # body not captured; resume as a plain GET
                        log.warning("form body of %s not saved for replay", request.full_url)
                        method = "GET"
                save_replay(session, ReplayRecord(url=request.full_url, method=method, form=form))

        uri = build_challenge_uri(session, self.config.client_id, self.config.redirect_uri)
        log.debug("challenge %s", session)
        response.send_redirect(redirect_status(request.http_version), uri)
        return AuthResult.challenge_sent()
