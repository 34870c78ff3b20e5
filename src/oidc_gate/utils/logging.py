"""Logging helpers shared by the core and the HTTP layer."""

from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* with everything after the first *keep* characters masked.

    Values no longer than *keep* are masked completely.
    """
    if not value:
        return "<empty>"
    if len(value) <= keep:
        return "****"
    return f"{value[:keep]}****"


def setup_logging(level: int | str | None = None) -> logging.Logger:
    """Attach a stream handler to the ``oidc-gate`` logger hierarchy.

    The level defaults to ``OIDC_GATE_LOG_LEVEL`` (``INFO`` when unset).
    Calling this twice does not add a second handler.
    """
    logger = logging.getLogger("oidc-gate")
    resolved = level if level is not None else os.getenv("OIDC_GATE_LOG_LEVEL", "INFO")
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.strip().upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    logger.setLevel(resolved)

    if not any(getattr(h, "_oidc_gate", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._oidc_gate = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
