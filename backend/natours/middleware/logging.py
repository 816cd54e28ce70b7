"""
Natours API — Access Log Middleware
====================================

What:  One log line per request on the ``natours.access`` logger.
When:  Installed only when NODE_ENV=development. It sits outside the error
       conversion stage, so the logged status is the one the client gets,
       error responses included.

Line format:
    GET /api/v1/tours/5c88fa8c (/api/v1/tours/{tour_id}) 200 3.2ms from 10.0.0.1

The route template in parentheses is the one the dispatcher matched; it is
omitted for requests answered before routing (static files, 429, 413).
Request bodies are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from natours.context import get_scope_context

logger = logging.getLogger("natours.access")


def level_for_status(status_code: int) -> int:
    """5xx → ERROR, 4xx → WARNING, anything else → INFO."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        ctx = get_scope_context(request.scope)
        client_ip = ctx.client_ip if ctx else "unknown"
        route = ctx.matched_route if ctx else None
        target = f"{request.url.path} ({route})" if route else request.url.path

        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %.1fms from %s",
            request.method,
            target,
            response.status_code,
            elapsed_ms,
            client_ip,
            extra={
                "method": request.method,
                "path": request.url.path,
                "matched_route": route,
                "status": response.status_code,
                "duration_ms": elapsed_ms,
                "client_ip": client_ip,
            },
        )
        return response
