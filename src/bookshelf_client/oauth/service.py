"""OAuthClientService – façade used by the HTTP layer.

This service wires the leaf components into the login / callback / logout
flows.  Handlers in ``bookshelf_client.servers.auth`` call the thin methods
below with a :class:`SessionHandle` for the current request.

Configuration is injected at construction; nothing here reads the process
environment.  **All secrets are redacted** from logs.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from bookshelf_client.oauth.authorize import build_authorization_url
from bookshelf_client.oauth.callback import validate_callback
from bookshelf_client.oauth.clock import Clock, default_clock
from bookshelf_client.oauth.gateway import AuthenticatedGateway
from bookshelf_client.oauth.log_utils import get_auth_logger
from bookshelf_client.oauth.models import ClientConfig
from bookshelf_client.oauth.state import generate_state
from bookshelf_client.oauth.store import SessionHandle, SessionTokenStore
from bookshelf_client.oauth.token_client import TokenClient

_LOGGER_NAME = "bookshelf-client.oauth.service"


class OAuthClientService:
    """Application service orchestrating the authorization-code flow."""

    def __init__(
        self,
        config: ClientConfig,
        token_client: TokenClient | None = None,
        *,
        clock: Clock = default_clock,
        state_factory: Callable[[], str] = generate_state,
    ) -> None:
        self.config = config
        self.token_client = token_client if token_client is not None else TokenClient(config)
        self.clock = clock
        self._state_factory = state_factory

    # ------------------------------------------------------------------ #
    # Public API called by HTTP handlers                                 #
    # ------------------------------------------------------------------ #
    def begin_login(self, session: SessionHandle) -> str:
        """Persist a fresh pending state and return the authorize URL."""
        store = SessionTokenStore(session)
        state = self._state_factory()
        store.set_pending(state)
        get_auth_logger(base_logger_name=_LOGGER_NAME, session_id=session.session_id).debug(
            "Issued authorization redirect"
        )
        return build_authorization_url(self.config, state)

    def complete_login(self, session: SessionHandle, params: Mapping[str, str]) -> None:
        """Validate the callback, exchange the code and store the tokens.

        Raises
        ------
        CsrfMismatchError, AuthorizationDeniedError
            Callback rejected before any network call.
        TokenExchangeError
            Code exchange failed; the session stays unauthenticated.
        """
        store = SessionTokenStore(session)
        code = validate_callback(params, store)
        result = self.token_client.exchange_code(code, session_id=session.session_id)
        store.commit(result, self.clock())
        get_auth_logger(base_logger_name=_LOGGER_NAME, session_id=session.session_id).info(
            "Login completed (token expires in %ss)", result.expires_in
        )

    def logout(self, session: SessionHandle) -> None:
        SessionTokenStore(session).destroy()
        get_auth_logger(base_logger_name=_LOGGER_NAME, session_id=session.session_id).info(
            "Session destroyed on logout"
        )

    def is_authenticated(self, session: SessionHandle) -> bool:
        return SessionTokenStore(session).is_authenticated()

    def gateway(self, session: SessionHandle) -> AuthenticatedGateway:
        """Return a resource API gateway bound to *session*."""
        return AuthenticatedGateway(
            SessionTokenStore(session), self.token_client, clock=self.clock
        )
