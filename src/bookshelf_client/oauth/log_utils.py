"""Structured logging helpers for OAuth client components.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``session_id``     – The server-side session identifier (first 6 chars kept)
- ``grant_type``     – ``authorization_code`` or ``refresh_token``
- ``correlation_id`` – Per-request identifier set by the web layer

Usage
-----
>>> from bookshelf_client.oauth.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="bookshelf-client.oauth.token_client",
...     session_id="Zm9vYmFyYmF6cXV4",
...     grant_type="refresh_token",
... )
>>> log.info("Refreshing access token")
INFO bookshelf-client.oauth.token_client Refreshing access token [session_id=Zm9vYm grant_type=refresh_token]

The adapter is a thin wrapper around :class:`logging.LoggerAdapter`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("session_id", "grant_type", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "session_id":
                # the full id is a bearer credential for the session cookie
                extra_clean[k] = str(extra[k])[:6]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        if self.extra:
            context = " ".join(f"{k}={v}" for k, v in self.extra.items())
            msg = f"{msg} [{context}]"
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "bookshelf-client.oauth",
    session_id: str | None = None,
    grant_type: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "session_id": session_id,
            "grant_type": grant_type,
            "correlation_id": correlation_id,
        },
    )
