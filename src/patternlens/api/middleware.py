"""Request logging middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid_utils.compat import uuid7

from patternlens.core.logging import LogContext, get_logger

logger = get_logger("patternlens.api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a request ID and logs every HTTP request.

    The request ID is taken from the X-Request-ID header when present,
    bound to the log context for the duration of the request and echoed
    back on the response.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request and log request/response."""
        request_id = request.headers.get("X-Request-ID") or str(uuid7())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        with LogContext(request_id=request_id):
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._log_request(request, response, duration_ms)

        response.headers["X-Request-ID"] = request_id
        return response

    def _log_request(self, request: Request, response: Response, duration_ms: float) -> None:
        """Log the completed request."""
        level = "warning" if response.status_code >= 500 else "info"
        getattr(logger, level)(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            query=str(request.url.query) if request.url.query else None,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
