"""Utility functions related to environment configuration."""

import logging
import os
from typing import Final, Tuple

logger = logging.getLogger("bookshelf-client.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def get_env(name: str) -> str | None:
    """Return the stripped value of *name*, or ``None`` when unset or blank."""
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_env(name: str) -> str:
    """Return *name* or raise ``ValueError`` when it is missing."""
    value = get_env(name)
    if value is None:
        raise ValueError(f"Environment variable {name} is required")
    return value


def get_float(name: str, default: float) -> float:
    raw = get_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}") from None


def get_optional_int(name: str) -> int | None:
    raw = get_env(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


def get_flag(name: str, default: bool = False) -> bool:
    """
    Return True if *name* is set to a truthy value.

    Unset variables yield *default*; any other value is treated as false.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    return _truthy(raw)


def get_session_storage_dir() -> str | None:
    """
    Directory for on-disk session storage.

    When unset, sessions live in process memory and are lost on restart.
    """
    storage_dir = get_env("SESSION_STORAGE_DIR")
    if storage_dir:
        logger.info("Using on-disk session storage at %s", storage_dir)
    return storage_dir


def get_log_level() -> str:
    return (get_env("BOOKSHELF_LOG_LEVEL") or "INFO").upper()


def get_bind() -> tuple[str, int]:
    """Return ``(host, port)`` for the HTTP server."""
    host = get_env("HOST") or "127.0.0.1"
    port = get_optional_int("PORT")
    return host, port if port is not None else 3001
