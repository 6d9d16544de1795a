"""Custom middleware for the API."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Type alias for call_next function
CallNext = Callable[[Request], Awaitable[Response]]

logger = structlog.get_logger()

# Polled by the dashboard every few seconds while a run is in flight
QUIET_PATH_PREFIXES = ("/api/test/status/", "/v1/test/status/", "/api/health", "/metrics")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Bind request ID to structlog context
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        # Add to request state for access in handlers
        request.state.request_id = request_id

        response = await call_next(request)  # type: ignore[return-value]

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log request/response details."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        start_time = time.perf_counter()
        path = request.url.path
        quiet = path.startswith(QUIET_PATH_PREFIXES)
        log = logger.debug if quiet else logger.info

        log(
            "request_started",
            method=request.method,
            path=path,
            query=str(request.query_params) if request.query_params else None,
        )

        response = await call_next(request)  # type: ignore[return-value]

        duration_ms = (time.perf_counter() - start_time) * 1000

        log(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response
