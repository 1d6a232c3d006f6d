"""Authorization redirect construction.

The builder is pure: it never touches the session.  Callers persist the state
token (see :meth:`SessionTokenStore.set_pending`) *before* redirecting.
"""

from __future__ import annotations

from urllib.parse import urlencode

from bookshelf_client.oauth.models import ClientConfig


def build_authorization_url(config: ClientConfig, state: str) -> str:
    """Return the authorization server URL the user agent is redirected to."""
    query_params: dict[str, str] = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": config.scope,
        "state": state,
    }
    # urlencode uses quote_plus, so the space-delimited scope becomes '+'
    return f"{config.authorize_endpoint}?{urlencode(query_params)}"
