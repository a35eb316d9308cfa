"""HTTP middleware: request logging context and cache suppression."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

from ..observability.logging import get_logger

logger = get_logger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, no-transform, must-revalidate, private, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to structlog contextvars and logs each request.

    Long-lived event streams are logged when their response starts, not
    when the stream ends.
    """

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        clear_contextvars()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response = await call_next(request)  # type: ignore[misc]
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response  # type: ignore[no-any-return]


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Game pages change every turn; never let a browser or proxy cache them."""

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        response = await call_next(request)  # type: ignore[misc]
        for name, value in NO_CACHE_HEADERS.items():
            response.headers[name] = value
        return response  # type: ignore[no-any-return]
