"""Exception taxonomy raised by the OAuth client core.

Only lightweight, **data-carrying** exceptions live here so that the web layer
can transform them into HTTP responses or user-friendly pages.  Every error
exposes a stable ``kind`` and a ``to_payload()`` that never includes tokens,
codes or client secrets.
"""

from __future__ import annotations


class OAuthClientError(RuntimeError):
    """Base class for every error the OAuth client surfaces to callers."""

    kind: str = "oauth_error"
    default_message: str = "OAuth client error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.kind, "message": str(self)}


class CsrfMismatchError(OAuthClientError):
    """Callback ``state`` does not match the pending state of the session."""

    kind = "csrf_mismatch"
    default_message = "Invalid state parameter."


class AuthorizationDeniedError(OAuthClientError):
    """The authorization server answered the redirect with an ``error``."""

    kind = "authorization_denied"
    default_message = "Authorization was denied."

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(f"{error}: {description}" if description else error)
        self.error: str = error
        self.description: str | None = description

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        payload["oauth_error"] = self.error
        if self.description:
            payload["error_description"] = self.description
        return payload


class TokenEndpointError(OAuthClientError):
    """Common base of the two token endpoint failures."""

    kind = "token_endpoint_error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code


class TokenExchangeError(TokenEndpointError):
    """Authorization code could not be exchanged for tokens."""

    kind = "token_exchange_failed"
    default_message = "Failed to obtain access token."


class RefreshFailedError(TokenEndpointError):
    """Refresh token could not be exchanged for a new access token."""

    kind = "refresh_failed"
    default_message = "Failed to refresh access token."


class AuthenticationRequiredError(OAuthClientError):
    """No usable access token remains; the user must log in again."""

    kind = "authentication_required"
    default_message = "Authentication required."


class ResourceApiError(OAuthClientError):
    """The resource API failed with something other than a 401."""

    kind = "resource_api_error"
    default_message = "Resource API request failed."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
        self.body: str | None = body

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        if self.status_code is not None:
            payload["status_code"] = str(self.status_code)
        return payload


class ReplayRefusedError(OAuthClientError):
    """Tokens were refreshed but a non-idempotent call was not replayed."""

    kind = "replay_refused"
    default_message = "Session was renewed; please submit the request again."
