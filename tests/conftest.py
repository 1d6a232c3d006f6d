"""Shared pytest configuration and fixtures.

HTTP traffic is never sent for real: :class:`FakeHttp` stands in for
``requests.Session`` and replays queued responses.
"""

from __future__ import annotations

import json as _json
from collections import deque
from types import SimpleNamespace
from typing import Any

import pytest

from bookshelf_client.oauth.models import ClientConfig


def pytest_configure(config):
    """Add integration markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring integration with real services"
    )
    config.addinivalue_line(
        "markers", "ci_safe: integration test that stubs all external calls"
    )


def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly requested.

    Tests marked with 'ci_safe' are always run because they stub all external
    calls and are safe for CI.
    """
    if not config.getoption("--integration", default=False):
        skip_integration = pytest.mark.skip(reason="Need --integration option to run")
        for item in items:
            if "integration" in item.keywords and "ci_safe" not in item.keywords:
                item.add_marker(skip_integration)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


# --------------------------------------------------------------------------- #
# Fake HTTP                                                                   #
# --------------------------------------------------------------------------- #
def fake_response(status_code: int = 200, body: Any = None) -> SimpleNamespace:
    """Minimal stand-in for ``requests.Response``."""
    text = body if isinstance(body, str) else _json.dumps(body if body is not None else {})

    def _json_body() -> Any:
        return _json.loads(text)

    return SimpleNamespace(
        status_code=status_code,
        ok=200 <= status_code < 400,
        text=text,
        headers={},
        json=_json_body,
    )


class FakeHttp:
    """Records calls and replays queued responses (or raises queued errors)."""

    def __init__(self) -> None:
        self.token_responses: deque[Any] = deque()
        self.api_responses: deque[Any] = deque()
        self.token_calls: list[dict[str, Any]] = []
        self.api_calls: list[dict[str, Any]] = []

    # ---------------- queueing helpers --------------------------------- #
    def queue_token(self, status_code: int = 200, body: Any = None) -> None:
        self.token_responses.append(fake_response(status_code, body))

    def queue_api(self, status_code: int = 200, body: Any = None) -> None:
        self.api_responses.append(fake_response(status_code, body))

    # ---------------- requests.Session surface ------------------------- #
    def post(self, url: str, **kwargs: Any) -> Any:
        self.token_calls.append({"url": url, **kwargs})
        return self._next(self.token_responses)

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.api_calls.append({"method": method, "url": url, **kwargs})
        return self._next(self.api_responses)

    @staticmethod
    def _next(queue: deque[Any]) -> Any:
        if not queue:
            raise AssertionError("unexpected HTTP call")
        item = queue.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def grant_types(self) -> list[str]:
        return [(c.get("data") or c.get("json"))["grant_type"] for c in self.token_calls]


@pytest.fixture()
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture()
def client_config() -> ClientConfig:
    return ClientConfig(
        client_id="your-client-id",
        client_secret="your-client-secret",
        redirect_uri="http://localhost:3001/auth/callback",
        authorization_server_url="http://localhost:3000",
    )
