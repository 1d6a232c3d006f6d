"""Logging utilities for bookshelf-client."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Configure the ``bookshelf-client`` logger hierarchy.

    Args:
        level: Logging level name or number.
        stream: Output stream, defaults to ``sys.stderr``.

    Returns:
        The package root logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)

    logger = logging.getLogger("bookshelf-client")
    logger.setLevel(level)
    return logger


def mask_sensitive(text: str | None, keep_chars: int = 4) -> str:
    """Mask all but the first *keep_chars* characters of a secret.

    Args:
        text: Secret value to mask (``None`` yields ``"<none>"``).
        keep_chars: Number of leading characters kept in clear.

    Returns:
        The masked string.
    """
    if not text:
        return "<none>"
    if len(text) <= keep_chars * 2:
        return "*" * len(text)
    return text[:keep_chars] + "*" * (len(text) - keep_chars)
