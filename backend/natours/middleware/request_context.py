"""
Natours API — Request Context Middleware
=========================================

What:  Creates the per-request ``RequestContext`` and assigns a request ID.
How:   Accepts a client-supplied ``X-Request-ID`` or generates a short UUID,
       stores it in ``request_id_var`` for loggers, builds the context
       (arrival timestamp, client IP, URL as received) and echoes the ID on the response.
When:  Entered before the access log and error conversion, so every log line
       and every error body of the request carries the same ID.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from natours.context import RequestContext, original_url_of, request_id_var, resolve_client_ip


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Entry stage of the pipeline proper.

    Behavior:
        1. Use X-Request-ID from the client when present, else an 8-char UUID
        2. Store it in the ContextVar for loggers and the error converter
        3. Attach a fresh RequestContext to request.state.ctx
        4. Return the ID in the X-Request-ID response header
    """

    def __init__(self, app: ASGIApp, trust_proxy: bool = True):
        super().__init__(app)
        self.trust_proxy = trust_proxy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)

        request.state.ctx = RequestContext(
            request_id=rid,
            client_ip=resolve_client_ip(request.scope, self.trust_proxy),
            original_url=original_url_of(request.scope),
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
