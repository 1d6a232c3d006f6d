"""Browser-facing OAuth endpoints.

Handlers are intentionally thin:

1. Pull the session and query parameters off the request.
2. Delegate business logic to ``OAuthClientService``.
3. Translate the error taxonomy into a ``Response``.

Calls that reach the authorization server run in Starlette's threadpool.

SECURITY NOTE
-------------
• No raw secrets (state, authorization codes, access / refresh tokens, client
  secret) are ever logged or rendered.
• Users only see the error kind and a safe message; the full exception is
  logged for operators.
• Correlation IDs from ``request.state.correlation_id`` are included in INFO
  logs to aid troubleshooting.

This module is HTTP-only and MUST remain free from protocol logic.
"""

from __future__ import annotations

import html
import logging

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from bookshelf_client.oauth.errors import (
    AuthorizationDeniedError,
    CsrfMismatchError,
    TokenExchangeError,
)
from bookshelf_client.oauth.service import OAuthClientService
from bookshelf_client.oauth.store import SessionHandle

_LOG = logging.getLogger("bookshelf-client.auth.routes")


def html_page(title: str, body: str, status: int = 200, *, link: tuple[str, str] | None = None) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    link_html = ""
    if link:
        href, label = link
        link_html = f"<p><a href='{html.escape(href)}'>{html.escape(label)}</a></p>"
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{html.escape(title)}</title></head><body><h1>{html.escape(title)}</h1>"
        f"<p>{html.escape(body)}</p>{link_html}</body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _session(request: Request) -> SessionHandle:
    return request.state.session


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "-")


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def auth_routes(svc: OAuthClientService) -> list[Route]:
    """Return the login / callback / logout routes bound to *svc*."""

    # ----- GET /login ------------------------------------------------------ #
    async def _login(request: Request) -> Response:
        authorize_url = svc.begin_login(_session(request))
        _LOG.info("OAuth login started correlation_id=%s", _correlation_id(request))
        if request.query_params.get("format") == "json":
            return JSONResponse({"authorize_url": authorize_url})
        # 303 See Other keeps the follow-up a GET
        return RedirectResponse(authorize_url, status_code=303)

    # ----- GET /auth/callback --------------------------------------------- #
    async def _callback(request: Request) -> Response:
        try:
            # token exchange is blocking I/O; keep it off the event loop
            await run_in_threadpool(svc.complete_login, _session(request), request.query_params)
        except CsrfMismatchError:
            _LOG.warning("OAuth callback rejected: state mismatch correlation_id=%s", _correlation_id(request))
            return html_page("Invalid request", "Invalid state parameter", 400)
        except AuthorizationDeniedError as exc:
            _LOG.info(
                "OAuth callback denied error=%s correlation_id=%s",
                exc.error,
                _correlation_id(request),
            )
            return html_page("Authorization Error", str(exc), 400, link=("/", "Try again"))
        except TokenExchangeError:
            _LOG.error(
                "OAuth token exchange failed correlation_id=%s",
                _correlation_id(request),
                exc_info=True,
            )
            return html_page(
                "Authorization failed",
                "Failed to obtain access token",
                502,
                link=("/login", "Log in again"),
            )

        _LOG.info("OAuth login succeeded correlation_id=%s", _correlation_id(request))
        return RedirectResponse("/dashboard", status_code=303)

    # ----- GET /logout ----------------------------------------------------- #
    async def _logout(request: Request) -> Response:
        svc.logout(_session(request))
        _LOG.info("Logged out correlation_id=%s", _correlation_id(request))
        return RedirectResponse("/", status_code=303)

    return [
        Route("/login", _login, methods=["GET"]),
        Route("/auth/callback", _callback, methods=["GET"]),
        Route("/logout", _logout, methods=["GET"]),
    ]
