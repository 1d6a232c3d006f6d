"""Tests for TokenClient code and refresh exchanges against /oauth/token."""

from __future__ import annotations

import dataclasses

import pytest
import requests

from bookshelf_client.oauth.errors import RefreshFailedError, TokenExchangeError
from bookshelf_client.oauth.models import ClientConfig, TokenExchangeResult
from bookshelf_client.oauth.token_client import TokenClient


@pytest.fixture()
def client(client_config: ClientConfig, fake_http) -> TokenClient:
    return TokenClient(client_config, http=fake_http)


def test_exchange_code_posts_form_body(client: TokenClient, fake_http) -> None:
    fake_http.queue_token(
        200, {"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3600}
    )

    result = client.exchange_code("ABC")

    assert result == TokenExchangeResult(access_token="AT1", expires_in=3600, refresh_token="RT1")
    (call,) = fake_http.token_calls
    assert call["url"] == "http://localhost:3000/oauth/token"
    assert call["data"] == {
        "grant_type": "authorization_code",
        "code": "ABC",
        "redirect_uri": "http://localhost:3001/auth/callback",
        "client_id": "your-client-id",
        "client_secret": "your-client-secret",
    }
    connect, read = call["timeout"]
    assert connect <= read == 10.0


def test_refresh_posts_refresh_grant(client: TokenClient, fake_http) -> None:
    fake_http.queue_token(200, {"access_token": "AT2", "expires_in": 3600})

    result = client.refresh("RT1")

    assert result.access_token == "AT2"
    assert result.refresh_token is None
    assert fake_http.token_calls[0]["data"] == {
        "grant_type": "refresh_token",
        "refresh_token": "RT1",
        "client_id": "your-client-id",
        "client_secret": "your-client-secret",
    }


def test_json_body_encoding(client_config: ClientConfig, fake_http) -> None:
    config = dataclasses.replace(client_config, token_body_encoding="json")
    fake_http.queue_token(200, {"access_token": "AT1", "expires_in": 60})

    TokenClient(config, http=fake_http).exchange_code("ABC")

    call = fake_http.token_calls[0]
    assert "data" not in call
    assert call["json"]["grant_type"] == "authorization_code"


def test_empty_refresh_token_counts_as_absent(client: TokenClient, fake_http) -> None:
    fake_http.queue_token(200, {"access_token": "AT2", "refresh_token": "", "expires_in": 60})
    assert client.refresh("RT1").refresh_token is None


def test_numeric_string_expires_in_is_accepted(client: TokenClient, fake_http) -> None:
    fake_http.queue_token(200, {"access_token": "AT1", "expires_in": "120"})
    assert client.exchange_code("ABC").expires_in == 120


@pytest.mark.parametrize(
    ("status", "body"),
    [
        (400, {"error": "invalid_grant"}),
        (401, {"error": "invalid_client"}),
        (500, "upstream exploded"),
        (200, "<html>not json</html>"),
        (200, ["not", "an", "object"]),
        (200, {"expires_in": 3600}),
        (200, {"access_token": "AT1"}),
        (200, {"access_token": "AT1", "expires_in": 12.5}),
        (200, {"access_token": "AT1", "expires_in": True}),
        (200, {"access_token": "AT1", "expires_in": "\u00b2"}),
        (200, {"access_token": "AT1", "expires_in": "soon"}),
        (200, {"access_token": "AT1", "expires_in": -1}),
        (200, {"access_token": "AT1", "expires_in": 10**400}),
    ],
)
def test_exchange_failures_raise_exchange_error(
    client: TokenClient, fake_http, status: int, body: object
) -> None:
    fake_http.queue_token(status, body)
    with pytest.raises(TokenExchangeError):
        client.exchange_code("ABC")
    # a consumed code is never retried
    assert len(fake_http.token_calls) == 1


def test_refresh_failure_is_distinct_kind(client: TokenClient, fake_http) -> None:
    fake_http.queue_token(400, {"error": "invalid_grant"})
    with pytest.raises(RefreshFailedError) as excinfo:
        client.refresh("RT1")
    assert not isinstance(excinfo.value, TokenExchangeError)
    assert excinfo.value.status_code == 400
    assert excinfo.value.to_payload() == {
        "error": "refresh_failed",
        "message": "Token endpoint returned 400",
    }


@pytest.mark.parametrize(
    "exc",
    [requests.Timeout("read timed out"), requests.ConnectionError("refused")],
)
def test_transport_errors_are_translated(client: TokenClient, fake_http, exc: Exception) -> None:
    fake_http.token_responses.append(exc)
    with pytest.raises(TokenExchangeError) as excinfo:
        client.exchange_code("ABC")
    assert excinfo.value.__cause__ is exc

    fake_http.token_responses.append(exc)
    with pytest.raises(RefreshFailedError):
        client.refresh("RT1")


def test_secrets_not_logged(client: TokenClient, fake_http, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("DEBUG", logger="bookshelf-client")
    fake_http.queue_token(200, {"access_token": "AT-secret", "refresh_token": "RT-secret", "expires_in": 60})
    client.exchange_code("CODE-secret", session_id="abcdef123456")

    assert "AT-secret" not in caplog.text
    assert "RT-secret" not in caplog.text
    assert "CODE-secret" not in caplog.text
    assert "your-client-secret" not in caplog.text
    assert "abcdef123456" not in caplog.text
    assert "session_id=abcdef" in caplog.text
