"""Structured logging helpers for the authenticator.

Only *non-sensitive* context is attached to log records:

- ``session_id``     – the client session identifier (first 6 chars kept)
- ``auth_method``    – authentication method tag (``GOOGLE``)
- ``correlation_id`` – request correlation identifier, when the transport has one

Anti-forgery tokens, authorization codes and client secrets are never passed
through these helpers.

Usage
-----
>>> from oidc_gate.core.log_utils import get_auth_logger
>>> log = get_auth_logger(session_id="f3a9c2d1e0", auth_method="GOOGLE")
>>> log.info("challenge sent")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("session_id", "auth_method", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "session_id":
                extra_clean[k] = str(extra[k])[:6]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if kwargs.get("extra") is None:
            kwargs["extra"] = {}
        # call-site extras win
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "oidc-gate.core",
    session_id: str | None = None,
    auth_method: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "session_id": session_id,
            "auth_method": auth_method,
            "correlation_id": correlation_id,
        },
    )
