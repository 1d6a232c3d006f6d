"""State parameter helpers for the OAuth 2.0 authorization-code flow.

The *state* parameter protects the user against CSRF on the redirect back from
the authorization server.  Each login attempt gets a fresh, single-use token:

1. :func:`generate_state` draws 32 bytes from :mod:`secrets` and encodes them
   URL-safe (43 characters, no padding).
2. The token is stored server-side in the session as the *pending state*.
3. On callback, :func:`states_match` compares the echoed value with the pending
   one in constant time.

Because the token lives only in the server-side session there is nothing to
sign; possession of the session cookie and the matching state is required.

Logging
-------
State values are *never* written to logs, not even truncated.
"""

from __future__ import annotations

import hmac
import secrets
from typing import Final

# 32 random bytes -> 256 bits of entropy
_STATE_BYTES: Final[int] = 32


def generate_state(nbytes: int = _STATE_BYTES) -> str:
    """Return a fresh, unguessable, URL-safe state token.

    Parameters
    ----------
    nbytes:
        Number of random bytes; at least 16 (128 bits).

    Returns
    -------
    str
        URL-safe token without padding.
    """
    if nbytes < 16:
        raise ValueError("state tokens need at least 16 random bytes")
    return secrets.token_urlsafe(nbytes)


def states_match(received: str | None, pending: str | None) -> bool:
    """Return ``True`` only if both values are present and identical.

    A missing pending state (never issued, or already consumed) always fails
    closed.
    """
    if not received or not pending:
        return False
    return hmac.compare_digest(received.encode("utf-8"), pending.encode("utf-8"))
