"""OAuth 2.0 authorization-code client core.

This namespace hosts the **HTTP-agnostic** building blocks of the client; the
Starlette layer in :mod:`bookshelf_client.servers` only translates requests
and errors.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
state
    Anti-CSRF ``state`` token generation / comparison.
authorize
    Authorization redirect URL builder.
callback
    Authorization response validation.
token_client
    Token endpoint exchanges (code and refresh grants).
store
    Server-side session backends and the per-session token store.
gateway
    Bearer-authenticated resource API calls with refresh-on-401.
service
    Façade wiring the above for the web layer.
models
    Immutable configuration and exchange records.
errors
    Exception taxonomy surfaced to callers.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .state import generate_state, states_match  # noqa: F401
from .models import ClientConfig, TokenExchangeResult  # noqa: F401
from .errors import (  # noqa: F401
    AuthenticationRequiredError,
    AuthorizationDeniedError,
    CsrfMismatchError,
    OAuthClientError,
    RefreshFailedError,
    ReplayRefusedError,
    ResourceApiError,
    TokenEndpointError,
    TokenExchangeError,
)
from .authorize import build_authorization_url  # noqa: F401
from .store import (  # noqa: F401
    DiskSessionBackend,
    MemorySessionBackend,
    SessionBackend,
    SessionHandle,
    SessionTokenStore,
)
from .callback import validate_callback  # noqa: F401
from .token_client import TokenClient  # noqa: F401
from .gateway import AuthenticatedGateway  # noqa: F401
from .service import OAuthClientService  # noqa: F401
from .log_utils import get_auth_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # state
    "generate_state",
    "states_match",
    # models
    "ClientConfig",
    "TokenExchangeResult",
    # errors
    "OAuthClientError",
    "CsrfMismatchError",
    "AuthorizationDeniedError",
    "TokenEndpointError",
    "TokenExchangeError",
    "RefreshFailedError",
    "AuthenticationRequiredError",
    "ResourceApiError",
    "ReplayRefusedError",
    # components
    "build_authorization_url",
    "validate_callback",
    "TokenClient",
    "SessionBackend",
    "MemorySessionBackend",
    "DiskSessionBackend",
    "SessionHandle",
    "SessionTokenStore",
    "AuthenticatedGateway",
    "OAuthClientService",
    # logging helpers
    "get_auth_logger",
]
