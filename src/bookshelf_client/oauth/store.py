"""Server-side session storage and the per-session OAuth token store.

This module introduces a *narrow* persistence interface
(:class:`SessionBackend`), two implementations of it and the
:class:`SessionTokenStore` that owns the OAuth state of one session.

* :class:`MemorySessionBackend` – ``cachetools.TTLCache`` keyed by session id,
  idle sessions are reclaimed after ``ttl_seconds``.  The cache holds at
  most ``maxsize`` sessions; when full the least recently used one is
  evicted, so size it above the expected number of live browsers.
* :class:`DiskSessionBackend` – one JSON file per session, written with
  *temp-file + os.replace*; session ids are hashed before hitting the
  filesystem.  Abandoned files are removed by :meth:`~DiskSessionBackend.cleanup_expired`.

Both backends restart the idle timer whenever a session is loaded or saved.

Components never see the backend directly: they receive a
:class:`SessionHandle`, a capability scoped to exactly one session id.

Environment variables
---------------------
SESSION_STORAGE_DIR
    When set, :func:`default_backend` persists sessions on disk there.
SESSION_TTL_SECONDS
    Idle lifetime of a session (default 24 hours).
SESSION_MAX_ENTRIES
    Capacity of the in-memory backend (default 10 000).
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from hashlib import sha256
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

from cachetools import TTLCache

from bookshelf_client.oauth.clock import Clock, default_clock
from bookshelf_client.oauth.models import TokenExchangeResult
from bookshelf_client.utils.environment import (
    get_float,
    get_optional_int,
    get_session_storage_dir,
)

_LOG = logging.getLogger("bookshelf-client.oauth.store")

# 24 hours of inactivity
DEFAULT_SESSION_TTL = 24 * 60 * 60
DEFAULT_MAX_SESSIONS = 10_000

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _hash(text: str, length: int = 32) -> str:
    return sha256(text.encode()).hexdigest()[:length]


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # per-thread temp name; concurrent writers of one session must not share it
    tmp = path.with_suffix(f"{path.suffix}.{os.getpid()}-{threading.get_ident()}.tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


# --------------------------------------------------------------------------- #
# backend contract                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class SessionBackend(Protocol):
    """Minimal persistence contract for server-side sessions."""

    def load(self, session_id: str) -> dict[str, Any] | None: ...
    def save(self, session_id: str, data: dict[str, Any]) -> None: ...
    def delete(self, session_id: str) -> None: ...


class MemorySessionBackend(SessionBackend):
    """In-process backend; sessions vanish on restart."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL,
        maxsize: int = DEFAULT_MAX_SESSIONS,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(
            maxsize=maxsize, ttl=ttl_seconds, timer=timer
        )
        self._lock = threading.Lock()

    def load(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            data = self._cache.get(session_id)
            if data is None:
                return None
            # re-inserting restarts the idle timer
            self._cache[session_id] = data
            return dict(data)

    def save(self, session_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._cache[session_id] = dict(data)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._cache.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._cache)


def _read_record(path: Path) -> dict[str, Any]:
    """Read a session file; raise ``ValueError`` when it is not a record."""
    with path.open(encoding="utf-8") as fh:
        record = json.load(fh)
    if not isinstance(record, dict) or not isinstance(record.get("data", {}), dict):
        raise ValueError(f"{path.name} does not hold a session record")
    return record


class DiskSessionBackend(SessionBackend):
    """JSON-file implementation of :class:`SessionBackend`."""

    def __init__(
        self,
        base_dir: str | os.PathLike,
        ttl_seconds: float = DEFAULT_SESSION_TTL,
        *,
        clock: Clock = default_clock,
    ) -> None:
        self.base_dir = Path(base_dir).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _session_path(self, session_id: str) -> Path:
        return self.base_dir / "sessions" / f"{_hash(session_id)}.json"

    def load(self, session_id: str) -> dict[str, Any] | None:
        path = self._session_path(session_id)
        if not path.exists():
            return None
        try:
            record = _read_record(path)
            updated_at = float(record.get("updated_at", 0))
        except (OSError, ValueError, TypeError):
            _LOG.warning("Discarding unreadable session file %s", path.name, exc_info=True)
            path.unlink(missing_ok=True)
            return None
        now = self.clock()
        if (now - updated_at) > self.ttl_seconds:
            path.unlink(missing_ok=True)
            return None
        data = dict(record.get("data") or {})
        _atomic_write(path, {"updated_at": now, "data": data})
        return data

    def save(self, session_id: str, data: dict[str, Any]) -> None:
        _atomic_write(
            self._session_path(session_id),
            {"updated_at": self.clock(), "data": data},
        )

    def delete(self, session_id: str) -> None:
        self._session_path(session_id).unlink(missing_ok=True)

    # ---------------- maintenance ---------------------------------------- #
    def cleanup_expired(self) -> int:
        """Remove session files idle for longer than ``ttl_seconds``.

        Unreadable files count as expired.  Returns the number removed.
        """
        session_dir = self.base_dir / "sessions"
        if not session_dir.exists():
            return 0
        removed = 0
        now = self.clock()
        for p in session_dir.glob("*.json"):
            try:
                updated_at = float(_read_record(p).get("updated_at", 0))
            except (OSError, ValueError, TypeError):
                updated_at = 0.0
            if (now - updated_at) > self.ttl_seconds:
                p.unlink(missing_ok=True)
                removed += 1
        return removed


# --------------------------------------------------------------------------- #
# per-session capability                                                      #
# --------------------------------------------------------------------------- #


class SessionHandle:
    """``get/set/destroy`` access to exactly one session id."""

    def __init__(self, backend: SessionBackend, session_id: str) -> None:
        self._backend = backend
        self.session_id = session_id
        self._data: dict[str, Any] | None = None
        self.destroyed = False

    def _loaded(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self._backend.load(self.session_id) or {}
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._loaded().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._loaded()
        data[key] = value
        self._backend.save(self.session_id, data)
        self.destroyed = False

    def pop(self, key: str) -> Any:
        data = self._loaded()
        if key not in data:
            return None
        value = data.pop(key)
        self._backend.save(self.session_id, data)
        return value

    def update(self, values: dict[str, Any]) -> None:
        """Set several keys with a single backend write."""
        data = self._loaded()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._backend.save(self.session_id, data)
        self.destroyed = False

    def destroy(self) -> None:
        self._backend.delete(self.session_id)
        self._data = {}
        self.destroyed = True


# --------------------------------------------------------------------------- #
# OAuth token store                                                           #
# --------------------------------------------------------------------------- #

_STATE_KEY = "oauth_state"
_ACCESS_KEY = "access_token"
_REFRESH_KEY = "refresh_token"
_EXPIRES_KEY = "token_expires_at"


class SessionTokenStore:
    """Exclusive owner of the OAuth state held in one user session."""

    def __init__(self, session: SessionHandle) -> None:
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ----- pending state -------------------------------------------------- #
    @property
    def pending_state(self) -> str | None:
        return self.session.get(_STATE_KEY)

    def set_pending(self, state: str) -> None:
        """Record *state* for a new authorization attempt.

        Tokens from an earlier login are dropped so a pending state never
        coexists with an access token.
        """
        self.session.update(
            {_STATE_KEY: state, _ACCESS_KEY: None, _REFRESH_KEY: None, _EXPIRES_KEY: None}
        )

    def clear_pending(self) -> None:
        self.session.pop(_STATE_KEY)

    # ----- tokens --------------------------------------------------------- #
    @property
    def access_token(self) -> str | None:
        return self.session.get(_ACCESS_KEY)

    @property
    def refresh_token(self) -> str | None:
        return self.session.get(_REFRESH_KEY)

    @property
    def token_expires_at(self) -> float | None:
        return self.session.get(_EXPIRES_KEY)

    def commit(self, result: TokenExchangeResult, now: float) -> None:
        """Persist a successful exchange.

        The previous refresh token is kept when *result* carries none, and any
        pending state is dropped so ``state`` and ``access_token`` never
        coexist.
        """
        self.session.update(
            {
                _ACCESS_KEY: result.access_token,
                _REFRESH_KEY: result.refresh_token or self.refresh_token,
                _EXPIRES_KEY: now + result.expires_in,
                _STATE_KEY: None,
            }
        )

    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, now: float, grace_seconds: float = 0) -> bool:
        """Return *True* if the access token expires within *grace_seconds*."""
        expires_at = self.token_expires_at
        if expires_at is None:
            return True
        return (expires_at - now) <= grace_seconds

    def destroy(self) -> None:
        """Wipe all OAuth fields and end the underlying session."""
        self.session.destroy()


# --------------------------------------------------------------------------- #
# Convenience – default backend                                               #
# --------------------------------------------------------------------------- #


def default_backend() -> SessionBackend:
    """Return a disk backend when ``SESSION_STORAGE_DIR`` is set, else memory."""
    ttl_seconds = get_float("SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL)
    storage_dir = get_session_storage_dir()
    if storage_dir:
        return DiskSessionBackend(storage_dir, ttl_seconds)
    maxsize = get_optional_int("SESSION_MAX_ENTRIES")
    return MemorySessionBackend(
        ttl_seconds, maxsize if maxsize is not None else DEFAULT_MAX_SESSIONS
    )
