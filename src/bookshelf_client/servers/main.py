"""Main Starlette application for the Bookshelf OAuth client."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from bookshelf_client.oauth.errors import (
    AuthenticationRequiredError,
    ReplayRefusedError,
    ResourceApiError,
)
from bookshelf_client.oauth.models import ClientConfig
from bookshelf_client.oauth.service import OAuthClientService
from bookshelf_client.oauth.store import DiskSessionBackend, SessionBackend, default_backend
from bookshelf_client.oauth.token_client import TokenClient
from bookshelf_client.servers.auth import auth_routes, html_page
from bookshelf_client.servers.context import MainAppContext
from bookshelf_client.servers.session import SessionMiddleware
from bookshelf_client.utils.environment import get_bind, get_flag, get_float, get_log_level
from bookshelf_client.utils.logging import mask_sensitive, setup_logging

logger = logging.getLogger("bookshelf-client.server.main")

# seconds between sweeps of expired on-disk sessions
DEFAULT_SWEEP_INTERVAL = 60 * 60


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


def _context(request: Request) -> MainAppContext:
    return request.app.state.context


async def index(request: Request) -> Response:
    svc = _context(request).service
    if svc.is_authenticated(request.state.session):
        return RedirectResponse("/dashboard", status_code=303)
    return HTMLResponse(
        "<!doctype html><html lang='en'><head><meta charset='utf-8'>"
        "<title>Bookshelf</title></head><body><h1>Bookshelf</h1>"
        "<p><a href='/login'>Log in with OAuth</a></p></body></html>"
    )


async def dashboard(request: Request) -> Response:
    """Profile and book list of the signed-in user.

    The view is read-only, so the gateway may replay its GETs after a token
    refresh without side effects.
    """
    svc = _context(request).service
    session = request.state.session
    if not svc.is_authenticated(session):
        return RedirectResponse("/login", status_code=303)
    gateway = svc.gateway(session)
    profile = await run_in_threadpool(gateway.get_json, "/api/me")
    books = await run_in_threadpool(gateway.get_json, "/api/books")
    return JSONResponse({"profile": profile, "books": books if isinstance(books, list) else []})


async def profile(request: Request) -> Response:
    svc = _context(request).service
    session = request.state.session
    if not svc.is_authenticated(session):
        return RedirectResponse("/login", status_code=303)
    profile = await run_in_threadpool(svc.gateway(session).get_json, "/api/me")
    return JSONResponse({"profile": profile})


# --------------------------------------------------------------------------- #
# Error translation                                                           #
# --------------------------------------------------------------------------- #
async def _authentication_required(request: Request, exc: Exception) -> Response:
    logger.info(
        "Authentication required (%s) correlation_id=%s",
        exc,
        getattr(request.state, "correlation_id", "-"),
    )
    return RedirectResponse("/login", status_code=303)


async def _replay_refused(request: Request, exc: Exception) -> Response:
    return html_page("Session renewed", str(exc), 409)


async def _resource_api_error(request: Request, exc: ResourceApiError) -> Response:
    logger.error(
        "Resource API error status=%s correlation_id=%s",
        exc.status_code,
        getattr(request.state, "correlation_id", "-"),
        exc_info=exc,
    )
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 600 else 502
    return html_page("Error", "The Bookshelf API request failed", status, link=("/dashboard", "Back"))


# --------------------------------------------------------------------------- #
# Session maintenance                                                         #
# --------------------------------------------------------------------------- #
async def _sweep_sessions(backend: DiskSessionBackend) -> None:
    removed = await run_in_threadpool(backend.cleanup_expired)
    if removed:
        logger.info("Removed %d expired session file(s)", removed)


async def _sweep_forever(backend: DiskSessionBackend, interval: float) -> None:
    while True:
        await anyio.sleep(interval)
        try:
            await _sweep_sessions(backend)
        except OSError:
            logger.warning("Session sweep failed", exc_info=True)


# --------------------------------------------------------------------------- #
# Application factory                                                         #
# --------------------------------------------------------------------------- #
def create_app(
    config: ClientConfig | None = None,
    *,
    backend: SessionBackend | None = None,
    token_client: TokenClient | None = None,
    cookie_secure: bool | None = None,
) -> Starlette:
    """Build the ASGI application.

    Args:
        config: Client configuration; loaded from the environment when omitted.
        backend: Session backend; see :func:`default_backend`.
        token_client: Pre-built token client (tests inject stubs here).
        cookie_secure: Mark the session cookie ``Secure``; defaults to
            ``SESSION_COOKIE_SECURE``.

    Returns:
        Configured Starlette application.
    """
    if config is None:
        config = ClientConfig.from_env()
    if backend is None:
        backend = default_backend()
    if cookie_secure is None:
        cookie_secure = get_flag("SESSION_COOKIE_SECURE")
    sweep_interval = get_float("SESSION_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL)

    service = OAuthClientService(config, token_client)
    context = MainAppContext(service=service, session_backend=backend, cookie_secure=cookie_secure)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Bookshelf OAuth client starting...")
        logger.info("Authorization server: %s", config.authorization_server_url)
        logger.info("Client ID: %s", mask_sensitive(config.client_id, 4))
        logger.info("Redirect URI: %s", config.redirect_uri)
        logger.info("Scopes: %s", config.scope)
        async with anyio.create_task_group() as tg:
            if isinstance(backend, DiskSessionBackend):
                await _sweep_sessions(backend)
                tg.start_soon(_sweep_forever, backend, sweep_interval)
            try:
                yield
            finally:
                tg.cancel_scope.cancel()
                logger.info("Bookshelf OAuth client shutting down")

    routes = [
        Route("/", index, methods=["GET"]),
        Route("/dashboard", dashboard, methods=["GET"]),
        Route("/profile", profile, methods=["GET"]),
        Route("/health", health_check, methods=["GET"]),
        *auth_routes(service),
    ]
    app = Starlette(
        routes=routes,
        middleware=[Middleware(SessionMiddleware, backend=backend, cookie_secure=cookie_secure)],
        exception_handlers={
            AuthenticationRequiredError: _authentication_required,
            ReplayRefusedError: _replay_refused,
            ResourceApiError: _resource_api_error,
        },
        lifespan=lifespan,
    )
    app.state.context = context
    return app


def main() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    setup_logging(get_log_level())
    host, port = get_bind()
    app = create_app()
    logger.info("OAuth client running on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
