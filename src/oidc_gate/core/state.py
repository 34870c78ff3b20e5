"""Anti-forgery ``state`` token helpers for the OAuth 2.0 web flow.

The token binds a pending login attempt to the browser session that started
it.  It is a 130-bit random integer rendered in base 32 (digits ``0-9a-v``),
which keeps it URL-safe without any encoding.

Logging
-------
Tokens are never logged, not even truncated.
"""

from __future__ import annotations

import hmac
import secrets
from typing import Final

TOKEN_BITS: Final[int] = 130
_DIGITS: Final[str] = "0123456789abcdefghijklmnopqrstuv"


def _to_base32(value: int) -> str:
    if value == 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 32)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def mint_anti_forgery_token(bits: int = TOKEN_BITS) -> str:
    """Return a fresh, high-entropy anti-forgery token.

    Parameters
    ----------
    bits:
        Entropy in bits; values below 130 are rejected.

    Returns
    -------
    str
        Base-32 rendering of ``bits`` random bits.
    """
    if bits < TOKEN_BITS:
        raise ValueError(f"anti-forgery token needs at least {TOKEN_BITS} bits")
    return _to_base32(secrets.randbits(bits))


def state_matches(expected: str | None, received: str | None) -> bool:
    """Return *True* only when both tokens are present and identical."""
    if not expected or received is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
