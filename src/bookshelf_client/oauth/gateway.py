"""Bearer-authenticated access to the resource API with refresh-on-401.

Failure / retry policy
----------------------
* Transport errors and non-401 statuses surface as :class:`ResourceApiError`;
  nothing is retried and the session is left alone.
* A 401 without a refresh token destroys the session and raises
  :class:`AuthenticationRequiredError`.
* A 401 with a refresh token triggers exactly one refresh.  On success the
  new tokens are committed and the original call is replayed once; on failure
  the session is destroyed.
* A 401 on the replayed call is final: the session is destroyed, there is no
  second refresh.

Unsafe methods (POST, PUT, PATCH, DELETE) carry an ``Idempotency-Key`` header
generated once per logical call and reused on the replay, so the resource
server can drop the duplicate.  Callers that cannot rely on that pass
``replay_unsafe=False`` and receive :class:`ReplayRefusedError` after the
refresh instead of a replay.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Final

import requests

from bookshelf_client.oauth.clock import Clock, default_clock
from bookshelf_client.oauth.errors import (
    AuthenticationRequiredError,
    RefreshFailedError,
    ReplayRefusedError,
    ResourceApiError,
)
from bookshelf_client.oauth.log_utils import get_auth_logger
from bookshelf_client.oauth.store import SessionTokenStore
from bookshelf_client.oauth.token_client import TokenClient

_LOGGER_NAME = "bookshelf-client.oauth.gateway"

SAFE_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD", "OPTIONS"})
IDEMPOTENCY_HEADER: Final[str] = "Idempotency-Key"
_BODY_LOG_LIMIT = 200


class AuthenticatedGateway:
    """Wraps resource API calls for one session."""

    def __init__(
        self,
        store: SessionTokenStore,
        token_client: TokenClient,
        *,
        http: requests.Session | None = None,
        clock: Clock = default_clock,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.token_client = token_client
        self.config = token_client.config
        self.http = http if http is not None else token_client.http
        self.clock = clock
        self.timeout = timeout
        self._log = get_auth_logger(base_logger_name=_LOGGER_NAME, session_id=store.session_id)

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        replay_unsafe: bool = True,
    ) -> requests.Response:
        """Perform *method* on *url* with the session's bearer token.

        Relative *url* values are resolved against the configured resource API
        base URL.

        Raises
        ------
        AuthenticationRequiredError
            No usable token remains; the session has been destroyed.
        ReplayRefusedError
            Tokens were refreshed but an unsafe call was not replayed.
        ResourceApiError
            Transport failure or non-401 error status.
        """
        if not self.store.is_authenticated():
            raise AuthenticationRequiredError("Session is not authenticated")

        method = method.upper()
        target = self._resolve(url)
        call_headers = dict(headers or {})
        unsafe = method not in SAFE_METHODS
        if unsafe:
            call_headers.setdefault(IDEMPOTENCY_HEADER, uuid.uuid4().hex)

        refreshed = False
        grace = self.config.proactive_refresh_seconds
        if (
            grace is not None
            and self.store.refresh_token
            and self.store.is_expired(self.clock(), grace)
        ):
            self._log.info("Access token expires within %ss; refreshing before call", grace)
            self._refresh()
            refreshed = True

        resp = self._send(method, target, json=json, params=params, headers=call_headers)
        if resp.status_code == 401 and not refreshed:
            self._log.info("Resource API rejected access token for %s %s", method, url)
            self._refresh()
            refreshed = True
            if unsafe and not replay_unsafe:
                raise ReplayRefusedError()
            resp = self._send(method, target, json=json, params=params, headers=call_headers)

        if resp.status_code == 401:
            self._log.warning("Resource API rejected a freshly refreshed token; ending session")
            self.store.destroy()
            raise AuthenticationRequiredError("Access token rejected after refresh")

        if not resp.ok:
            body = (resp.text or "")[:_BODY_LOG_LIMIT]
            self._log.warning("Resource API %s %s returned %s: %s", method, url, resp.status_code, body)
            raise ResourceApiError(
                f"Resource API returned {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )
        return resp

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("DELETE", url, **kwargs)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET *url* and decode the JSON body."""
        resp = self.get(url, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise ResourceApiError(
                "Resource API returned a non-JSON body", status_code=resp.status_code
            ) from exc

    # ---------------- internal helpers --------------------------------- #
    def _resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.config.api_base_url}/{url.lstrip('/')}"

    def _send(
        self,
        method: str,
        url: str,
        *,
        json: Any,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> requests.Response:
        # token is read per attempt so a replay picks up the refreshed one
        call_headers = {**headers, "Authorization": f"Bearer {self.store.access_token}"}
        try:
            return self.http.request(
                method,
                url,
                headers=call_headers,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self._log.warning("Resource API %s %s failed: %s", method, url, exc.__class__.__name__)
            raise ResourceApiError("Resource API unreachable") from exc

    def _refresh(self) -> None:
        refresh_token = self.store.refresh_token
        if not refresh_token:
            self._log.info("No refresh token in session; re-authentication required")
            self.store.destroy()
            raise AuthenticationRequiredError("No refresh token available")
        try:
            result = self.token_client.refresh(refresh_token, session_id=self.store.session_id)
        except RefreshFailedError as exc:
            self._log.warning("Token refresh failed; ending session", exc_info=True)
            self.store.destroy()
            raise AuthenticationRequiredError("Token refresh failed") from exc
        self.store.commit(result, self.clock())
