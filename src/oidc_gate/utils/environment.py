"""Utility functions for reading ``OIDC_GATE_*`` environment variables."""

import logging
import os
from typing import Final, Tuple

logger = logging.getLogger("oidc-gate.utils.environment")

ENV_PREFIX: Final[str] = "OIDC_GATE_"
_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")


def truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def env_get(key: str, default: str | None = None) -> str | None:
    """Return ``OIDC_GATE_<key>``, treating blank values as unset."""
    value = os.getenv(ENV_PREFIX + key)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_flag(key: str, default: bool = False) -> bool:
    """
    Return the boolean value of ``OIDC_GATE_<key>``.

    An unset variable yields *default*; any set value is truthy only if it is
    one of ``true``, ``1``, ``yes``, ``y`` or ``on`` (case-insensitive).
    """
    raw = os.getenv(ENV_PREFIX + key)
    if raw is None:
        return default
    return truthy(raw)
