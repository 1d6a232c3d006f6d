"""Session cookie middleware.

Resolves the per-user server-side session for every incoming HTTP request and
exposes it as ``request.state.session`` (a :class:`SessionHandle`).  A new
random session id is minted when the cookie is missing; the cookie is only
sent back once the session actually holds data, and it is cleared when the
session was destroyed during the request.

A per-request correlation ID is also attached as
``request.state.correlation_id`` and echoed in the response headers.

Session ids MUST NOT be logged in full.
"""

from __future__ import annotations

import logging
import secrets
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from bookshelf_client.oauth.store import SessionBackend, SessionHandle

SESSION_COOKIE_NAME = "bookshelf_sid"
CORRELATION_HEADER = "X-Correlation-ID"
_logger = logging.getLogger("bookshelf-client.session")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that binds a server-side session to each request."""

    def __init__(
        self,
        app: ASGIApp,
        backend: SessionBackend,
        *,
        cookie_name: str = SESSION_COOKIE_NAME,
        cookie_secure: bool = False,
        max_age: int | None = None,
    ) -> None:
        super().__init__(app)
        self.backend = backend
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex

        cookie_sid = request.cookies.get(self.cookie_name)
        # unknown ids are replaced so a client cannot pick its own session id
        if cookie_sid and self.backend.load(cookie_sid) is not None:
            session_id = cookie_sid
        else:
            if cookie_sid:
                _logger.debug("Discarding unknown session cookie")
            session_id = new_session_id()
        session = SessionHandle(self.backend, session_id)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed:
            response.delete_cookie(self.cookie_name, path="/")
        elif session_id != cookie_sid and self.backend.load(session_id) is not None:
            response.set_cookie(
                self.cookie_name,
                session_id,
                max_age=self.max_age,
                path="/",
                httponly=True,
                secure=self.cookie_secure,
                samesite="lax",
            )
        response.headers[CORRELATION_HEADER] = request.state.correlation_id
        return response
