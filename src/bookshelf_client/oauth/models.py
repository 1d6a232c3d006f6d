"""Typed, immutable records used by the OAuth client core."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from bookshelf_client.utils import environment

DEFAULT_SCOPES: Final[tuple[str, ...]] = (
    "read:profile",
    "write:profile",
    "read:books",
    "write:books",
)

TokenBodyEncoding = Literal["form", "json"]


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Registered client credentials and endpoints, loaded once at startup."""

    client_id: str
    client_secret: str
    redirect_uri: str
    authorization_server_url: str
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    # Resource API base; falls back to the authorization server when unset
    resource_api_url: str | None = None
    token_timeout: float = 10.0
    token_body_encoding: TokenBodyEncoding = "form"
    proactive_refresh_seconds: int | None = None

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("client_id", "client_secret", "redirect_uri", "authorization_server_url")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"OAuth client configuration incomplete: {', '.join(missing)}")
        if self.token_body_encoding not in ("form", "json"):
            raise ValueError("token_body_encoding must be 'form' or 'json'")
        # normalise once so endpoint joins never produce a double slash
        object.__setattr__(self, "authorization_server_url", self.authorization_server_url.rstrip("/"))
        if self.resource_api_url:
            object.__setattr__(self, "resource_api_url", self.resource_api_url.rstrip("/"))
        object.__setattr__(self, "scopes", tuple(self.scopes))

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.authorization_server_url}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.authorization_server_url}/oauth/token"

    @property
    def api_base_url(self) -> str:
        return self.resource_api_url or self.authorization_server_url

    @property
    def scope(self) -> str:
        """Space-delimited scope string as sent on the authorize request."""
        return " ".join(self.scopes)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build the configuration from ``OAUTH_*`` environment variables.

        Raises
        ------
        ValueError
            If a required variable is missing or a numeric one is malformed.
        """
        scopes_raw = environment.get_env("OAUTH_SCOPES")
        scopes = tuple(scopes_raw.split()) if scopes_raw else DEFAULT_SCOPES
        encoding = (environment.get_env("OAUTH_TOKEN_BODY") or "form").strip().lower()
        return cls(
            client_id=environment.require_env("OAUTH_CLIENT_ID"),
            client_secret=environment.require_env("OAUTH_CLIENT_SECRET"),
            redirect_uri=environment.require_env("OAUTH_REDIRECT_URI"),
            authorization_server_url=environment.require_env("OAUTH_SERVER_URL"),
            scopes=scopes,
            resource_api_url=environment.get_env("RESOURCE_API_URL"),
            token_timeout=environment.get_float("OAUTH_TOKEN_TIMEOUT", 10.0),
            token_body_encoding=encoding,  # type: ignore[arg-type]
            proactive_refresh_seconds=environment.get_optional_int(
                "OAUTH_PROACTIVE_REFRESH_SECONDS"
            ),
        )


@dataclass(frozen=True, slots=True)
class TokenExchangeResult:
    """Successful token endpoint response; consumed immediately by the store."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
