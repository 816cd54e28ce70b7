"""
Natours API — Error Conversion Middleware
==========================================

What:  The terminal stage of the error path. Wraps every inner stage and the
       router, so a failure raised by rate limiting, body ingestion, a
       resource router or a coroutine those routers await all end here.
How:   Pure ASGI so it can tell whether the response has started. Before
       that point any exception is rendered by the ``ErrorConverter``; after
       it nothing can be rendered, so the failure is logged and re-raised to
       let the server drop the connection.
"""

import logging

from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours.error_handling import ErrorConverter

logger = logging.getLogger(__name__)


class ErrorConversionMiddleware:
    def __init__(self, app: ASGIApp, converter: ErrorConverter):
        self.app = app
        self.converter = converter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as exc:
            if response_started:
                logger.error(
                    "Failure after response started on %s; connection will be dropped",
                    scope.get("path", ""),
                    exc_info=True,
                )
                raise
            response = self.converter.render(HTTPConnection(scope), exc)
            await response(scope, receive, send)
