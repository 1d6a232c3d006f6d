from __future__ import annotations

from dataclasses import dataclass

from bookshelf_client.oauth.service import OAuthClientService
from bookshelf_client.oauth.store import SessionBackend


@dataclass(frozen=True)
class MainAppContext:
    """
    Context holding the fully wired OAuth service and session backend,
    built once at application startup and shared by all handlers.
    """

    service: OAuthClientService
    session_backend: SessionBackend
    cookie_secure: bool = False
