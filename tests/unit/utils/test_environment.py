"""Tests for ClientConfig.from_env and environment helpers."""

from __future__ import annotations

import pytest

from bookshelf_client.oauth.models import DEFAULT_SCOPES, ClientConfig
from bookshelf_client.utils import environment

REQUIRED = {
    "OAUTH_CLIENT_ID": "cid",
    "OAUTH_CLIENT_SECRET": "csecret",
    "OAUTH_REDIRECT_URI": "http://localhost:3001/auth/callback",
    "OAUTH_SERVER_URL": "http://localhost:3000/",
}

OPTIONAL = (
    "OAUTH_SCOPES",
    "RESOURCE_API_URL",
    "OAUTH_TOKEN_TIMEOUT",
    "OAUTH_TOKEN_BODY",
    "OAUTH_PROACTIVE_REFRESH_SECONDS",
)


@pytest.fixture()
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in OPTIONAL:
        monkeypatch.delenv(key, raising=False)
    for key, value in REQUIRED.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_from_env_defaults(env: pytest.MonkeyPatch) -> None:
    config = ClientConfig.from_env()
    assert config.client_id == "cid"
    assert config.authorization_server_url == "http://localhost:3000"
    assert config.token_endpoint == "http://localhost:3000/oauth/token"
    assert config.api_base_url == "http://localhost:3000"
    assert config.scopes == DEFAULT_SCOPES
    assert config.token_timeout == 10.0
    assert config.token_body_encoding == "form"
    assert config.proactive_refresh_seconds is None


def test_from_env_optional_values(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_SCOPES", "read:books  read:profile")
    env.setenv("RESOURCE_API_URL", "https://api.example.com/")
    env.setenv("OAUTH_TOKEN_TIMEOUT", "2.5")
    env.setenv("OAUTH_TOKEN_BODY", "JSON")
    env.setenv("OAUTH_PROACTIVE_REFRESH_SECONDS", "60")

    config = ClientConfig.from_env()

    assert config.scopes == ("read:books", "read:profile")
    assert config.scope == "read:books read:profile"
    assert config.api_base_url == "https://api.example.com"
    assert config.token_timeout == 2.5
    assert config.token_body_encoding == "json"
    assert config.proactive_refresh_seconds == 60


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_from_env_missing_required(env: pytest.MonkeyPatch, missing: str) -> None:
    env.delenv(missing)
    with pytest.raises(ValueError, match=missing):
        ClientConfig.from_env()


def test_from_env_rejects_bad_numbers(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_TOKEN_TIMEOUT", "soon")
    with pytest.raises(ValueError, match="OAUTH_TOKEN_TIMEOUT"):
        ClientConfig.from_env()


def test_from_env_rejects_unknown_body_encoding(env: pytest.MonkeyPatch) -> None:
    env.setenv("OAUTH_TOKEN_BODY", "xml")
    with pytest.raises(ValueError):
        ClientConfig.from_env()


def test_config_is_immutable(env: pytest.MonkeyPatch) -> None:
    config = ClientConfig.from_env()
    with pytest.raises(AttributeError):
        config.client_id = "other"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("YES", True), ("1", True), ("on", True), ("false", False), ("", False)],
)
def test_get_flag(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("SESSION_COOKIE_SECURE", raw)
    assert environment.get_flag("SESSION_COOKIE_SECURE") is expected


def test_get_bind_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HOST", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    assert environment.get_bind() == ("127.0.0.1", 3001)
