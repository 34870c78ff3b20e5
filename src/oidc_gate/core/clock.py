"""Clock abstraction for testable time handling in the OpenID core.

Id-token expiry checks depend on an injected ``Clock`` rather than calling
``time.time()`` directly, so tests can freeze time with a plain lambda.

Example
-------
>>> from oidc_gate.core.clock import default_clock
>>> isinstance(default_clock(), float)
True
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Delegate to ``time.time()``."""
    return time.time()
