"""Token endpoint client.

Two grants share one HTTP contract (``POST {server}/oauth/token``):

* ``authorization_code`` – single use; a failure is final for that login
  attempt and the call is **never** retried here.
* ``refresh_token`` – mints a new access token; the server may or may not
  rotate the refresh token.

Every failure mode (timeout, transport error, non-2xx status, malformed body)
is translated into :class:`TokenExchangeError` or :class:`RefreshFailedError`.
Raw ``requests`` exceptions never leave this module.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from bookshelf_client.oauth.errors import (
    RefreshFailedError,
    TokenEndpointError,
    TokenExchangeError,
)
from bookshelf_client.oauth.log_utils import get_auth_logger
from bookshelf_client.oauth.models import ClientConfig, TokenExchangeResult

_LOGGER_NAME = "bookshelf-client.oauth.token_client"
_CONNECT_TIMEOUT = 5.0
# error bodies from the server are logged, capped at this many characters
_BODY_LOG_LIMIT = 200
# upper bound for expires_in; larger values overflow float expiry arithmetic
_MAX_EXPIRES_IN = 10**9


class TokenClient:
    """Performs code-for-token and refresh-token-for-token exchanges."""

    def __init__(self, config: ClientConfig, http: requests.Session | None = None) -> None:
        self.config = config
        self.http = http if http is not None else requests.Session()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def exchange_code(self, code: str, *, session_id: str | None = None) -> TokenExchangeResult:
        """Exchange an authorization *code* for tokens.

        Raises
        ------
        TokenExchangeError
            On any failure; the code is consumed server-side, so callers must
            restart the login instead of retrying.
        """
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        return self._request_tokens(payload, TokenExchangeError, session_id=session_id)

    def refresh(self, refresh_token: str, *, session_id: str | None = None) -> TokenExchangeResult:
        """Trade *refresh_token* for a new access token.

        Raises
        ------
        RefreshFailedError
            On any failure.
        """
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        return self._request_tokens(payload, RefreshFailedError, session_id=session_id)

    # ---------------- internal helpers --------------------------------- #
    def _post(self, payload: dict[str, str]) -> requests.Response:
        timeout = (min(_CONNECT_TIMEOUT, self.config.token_timeout), self.config.token_timeout)
        if self.config.token_body_encoding == "json":
            return self.http.post(self.config.token_endpoint, json=payload, timeout=timeout)
        return self.http.post(
            self.config.token_endpoint,
            data=payload,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    def _request_tokens(
        self,
        payload: dict[str, str],
        error_cls: type[TokenEndpointError],
        *,
        session_id: str | None,
    ) -> TokenExchangeResult:
        log = get_auth_logger(
            base_logger_name=_LOGGER_NAME,
            session_id=session_id,
            grant_type=payload["grant_type"],
        )
        try:
            resp = self._post(payload)
        except requests.Timeout as exc:
            log.warning("Token endpoint timed out after %ss", self.config.token_timeout)
            raise error_cls("Token endpoint timed out") from exc
        except requests.RequestException as exc:
            log.warning("Token request failed: %s", exc.__class__.__name__, exc_info=True)
            raise error_cls("Token request failed") from exc

        if not resp.ok:
            log.warning(
                "Token endpoint returned %s: %s",
                resp.status_code,
                (resp.text or "")[:_BODY_LOG_LIMIT],
            )
            raise error_cls(
                f"Token endpoint returned {resp.status_code}", status_code=resp.status_code
            )

        try:
            data = resp.json()
        except ValueError as exc:
            log.warning("Token endpoint returned a non-JSON body")
            raise error_cls("Token response is not JSON") from exc

        result = _parse_token_response(data, error_cls)
        log.info(
            "Token exchange succeeded (expires in %ss, refresh token %s)",
            result.expires_in,
            "present" if result.refresh_token else "absent",
        )
        return result


def _parse_token_response(
    data: Any, error_cls: type[TokenEndpointError]
) -> TokenExchangeResult:
    if not isinstance(data, dict):
        raise error_cls("Token response is not a JSON object")

    access_token = data.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise error_cls("Token response missing access_token")

    expires_in = data.get("expires_in")
    if isinstance(expires_in, str):
        try:
            expires_in = int(expires_in.strip(), 10)
        except ValueError:
            raise error_cls("Token response missing integer expires_in") from None
    # bool is an int subclass; reject it along with floats
    if isinstance(expires_in, bool) or not isinstance(expires_in, int):
        raise error_cls("Token response missing integer expires_in")
    if not 0 <= expires_in <= _MAX_EXPIRES_IN:
        raise error_cls("Token response expires_in out of range")

    refresh_token = data.get("refresh_token")
    if not isinstance(refresh_token, str) or not refresh_token:
        refresh_token = None

    return TokenExchangeResult(
        access_token=access_token,
        expires_in=expires_in,
        refresh_token=refresh_token,
    )
