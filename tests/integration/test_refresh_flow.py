"""Integration test: full browser flow through the ASGI app with refresh-on-401.

login -> callback -> dashboard (401 -> refresh -> replay) -> logout, with the
authorization server and resource API replaced by a recording fake.  Runs
against both session backends.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest
from starlette.testclient import TestClient

from bookshelf_client.oauth.models import ClientConfig
from bookshelf_client.oauth.store import DiskSessionBackend, MemorySessionBackend, SessionBackend
from bookshelf_client.oauth.token_client import TokenClient
from bookshelf_client.servers.main import create_app
from bookshelf_client.servers.session import SESSION_COOKIE_NAME


def _backend(kind: str, tmp_path: Path) -> SessionBackend:
    return DiskSessionBackend(tmp_path) if kind == "disk" else MemorySessionBackend()


def _login(client: TestClient, fake_http) -> None:
    resp = client.get("/login", follow_redirects=False)
    state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]
    fake_http.queue_token(200, {"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3600})
    resp = client.get(f"/auth/callback?code=ABC&state={state}", follow_redirects=False)
    assert resp.status_code == 303


@pytest.mark.integration
@pytest.mark.ci_safe
@pytest.mark.parametrize("backend_kind", ["memory", "disk"])
def test_expired_token_refreshed_once_and_dashboard_replayed(
    client_config: ClientConfig, fake_http, tmp_path: Path, backend_kind: str
) -> None:
    backend = _backend(backend_kind, tmp_path)
    app = create_app(
        client_config,
        backend=backend,
        token_client=TokenClient(client_config, http=fake_http),
        cookie_secure=False,
    )

    with TestClient(app) as client:
        _login(client, fake_http)

        # profile call rejects the stale token, then both calls succeed
        fake_http.queue_api(401, {"error": "invalid_token"})
        fake_http.queue_token(200, {"access_token": "AT2", "expires_in": 3600})
        fake_http.queue_api(200, {"username": "reader"})
        fake_http.queue_api(200, [])

        resp = client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 200
        assert resp.json() == {"profile": {"username": "reader"}, "books": []}
        assert fake_http.grant_types == ["authorization_code", "refresh_token"]
        assert fake_http.token_calls[1]["data"]["refresh_token"] == "RT1"
        assert [c["headers"]["Authorization"] for c in fake_http.api_calls] == [
            "Bearer AT1",
            "Bearer AT2",
            "Bearer AT2",
        ]

        session_id = client.cookies[SESSION_COOKIE_NAME]
        data = backend.load(session_id)
        assert data is not None
        assert data["access_token"] == "AT2"
        assert data["refresh_token"] == "RT1"
        assert "oauth_state" not in data

        resp = client.get("/logout", follow_redirects=False)
        assert resp.status_code == 303
        assert backend.load(session_id) is None


@pytest.mark.integration
@pytest.mark.ci_safe
def test_failed_refresh_sends_user_back_to_login(client_config: ClientConfig, fake_http) -> None:
    backend = MemorySessionBackend()
    app = create_app(
        client_config,
        backend=backend,
        token_client=TokenClient(client_config, http=fake_http),
        cookie_secure=False,
    )

    with TestClient(app) as client:
        _login(client, fake_http)
        session_id = client.cookies[SESSION_COOKIE_NAME]

        fake_http.queue_api(401)
        fake_http.queue_token(400, {"error": "invalid_grant"})

        resp = client.get("/dashboard", follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == "/login"
        assert backend.load(session_id) is None
        assert len(fake_http.api_calls) == 1
