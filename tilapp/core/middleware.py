"""
FastAPI exception handlers and middleware.

Converts all AppError subclasses and unexpected exceptions into
consistent JSON responses. Injects correlation IDs into every request
and hands the browser its session cookie once one is stored.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tilapp.core.errors import AppError, ErrorCode, RedirectRequired

_log = structlog.get_logger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{32,64}$")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Injects a correlation ID into every request/response cycle.

    The ID is taken from the ``X-Correlation-ID`` request header if
    present; otherwise a new UUID4 is generated. The ID is bound to
    structlog context so that all log statements within the request
    automatically include it.
    """

    HEADER = "X-Correlation-ID"

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(self.HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)

        response.headers[self.HEADER] = correlation_id
        _log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security-relevant HTTP response headers to every response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers.setdefault("Cache-Control", "no-store")
        return response


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """
    Carries the browser session id between the cookie and ``request.state``.

    The cookie holds only an opaque random id; session contents are rows
    in ``web_sessions`` loaded on demand by the website dependencies. Ids
    are never taken over from the client: a malformed cookie reads as no
    session, and the cookie is only (re)set when a route stored the session
    under a new server-issued id.
    """

    def __init__(
        self,
        app: ASGIApp,
        cookie_name: str,
        max_age_seconds: int,
        secure: bool = False,
    ) -> None:
        super().__init__(app)
        self.cookie_name = cookie_name
        self.max_age_seconds = max_age_seconds
        self.secure = secure

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        incoming = request.cookies.get(self.cookie_name)
        if incoming and not _SESSION_ID_RE.match(incoming):
            incoming = None
        request.state.session_id = incoming

        response = await call_next(request)
        session_id = getattr(request.state, "session_id", None)
        if session_id and session_id != incoming:
            response.set_cookie(
                key=self.cookie_name,
                value=session_id,
                max_age=self.max_age_seconds,
                httponly=True,
                samesite="lax",
                secure=self.secure,
            )
        return response


# ── Exception handlers ────────────────────────────────────────────────── #


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Convert a domain AppError to a structured JSON response."""
    _log.warning(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers={"X-Correlation-ID": getattr(request.state, "correlation_id", "")},
    )


async def redirect_handler(request: Request, exc: RedirectRequired) -> RedirectResponse:
    """Send the browser to ``exc.location`` (login page, provider login)."""
    return RedirectResponse(url=exc.location, status_code=303)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    Never leaks internal detail to the client.
    """
    _log.exception("unhandled_exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected internal error occurred.",
                "detail": {},
            }
        },
        headers={"X-Correlation-ID": getattr(request.state, "correlation_id", "")},
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Answer a tripped slowapi limit in the same envelope as every other error."""
    _log.warning("rate_limited", limit=str(exc.detail))
    response = JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": ErrorCode.RATE_LIMITED.value,
                "message": f"Rate limit exceeded: {exc.detail}",
                "detail": {},
            }
        },
        headers={"X-Correlation-ID": getattr(request.state, "correlation_id", "")},
    )
    # Retry-After and X-RateLimit-* headers, as slowapi's own handler adds them
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
