"""Validation of the authorization response delivered to ``/auth/callback``."""

from __future__ import annotations

import logging
from typing import Mapping

from bookshelf_client.oauth.errors import AuthorizationDeniedError, CsrfMismatchError
from bookshelf_client.oauth.state import states_match
from bookshelf_client.oauth.store import SessionTokenStore

_LOG = logging.getLogger("bookshelf-client.oauth.callback")


def validate_callback(params: Mapping[str, str], store: SessionTokenStore) -> str:
    """Check the callback against the pending state and return the code.

    The pending state is consumed on every path, so a state value authorizes at
    most one callback and a replay fails as a mismatch.

    Raises
    ------
    AuthorizationDeniedError
        The authorization server returned ``error`` (or omitted ``code``).
    CsrfMismatchError
        ``state`` is absent, or differs from the pending state.
    """
    pending = store.pending_state
    store.clear_pending()

    error = params.get("error")
    if error:
        _LOG.info("Authorization server returned error=%s", error)
        raise AuthorizationDeniedError(error, params.get("error_description") or None)

    if not states_match(params.get("state"), pending):
        _LOG.warning(
            "Rejected callback with mismatched state (pending state %s)",
            "present" if pending else "absent",
        )
        raise CsrfMismatchError()

    code = params.get("code")
    if not code:
        raise AuthorizationDeniedError("invalid_request", "authorization code missing")
    return code
