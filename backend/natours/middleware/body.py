"""
Natours API — Body Ingestion Middleware
========================================

What:  Two mutually exclusive ways of ingesting a request body.
How:   Pure ASGI middleware, because both stages consume the receive channel
       and must hand an equivalent one to the next stage.

    RawBodyMiddleware     POST <webhook_path> with the declared media type:
                          bytes kept verbatim in ctx.raw_body, replayed as-is.
    BodyParserMiddleware  every other request: JSON / url-encoded bodies
                          decoded into ctx.body, size-capped.

Ordering:
    RawBodyMiddleware must run before BodyParserMiddleware, otherwise the
    parser would decode the webhook payload and a signature computed over the
    original bytes could no longer be verified. ``PipelineBuilder`` fixes this
    order; the parser also skips any request whose raw body was captured.
"""

import json
import logging
from typing import Optional
from urllib.parse import parse_qsl

from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Receive, Scope, Send

from natours.context import ensure_scope_context, replay_receive
from natours.exceptions import BadRequestError, PayloadTooLargeError
from natours.sanitizers import pairs_to_mapping

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def media_type_of(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == b"content-type":
            return value.decode("latin-1").split(";")[0].strip().lower()
    return ""


def declared_length(scope: Scope) -> Optional[int]:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


async def read_body(scope: Scope, receive: Receive, limit: int) -> bytes:
    """
    Drain the receive channel, failing fast once ``limit`` bytes are exceeded.

    The declared Content-Length is checked first so oversized uploads are
    rejected before any byte is read.
    """
    length = declared_length(scope)
    if length is not None and length > limit:
        raise PayloadTooLargeError(limit)

    chunks = []
    size = 0
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnect()
        chunk = message.get("body", b"")
        size += len(chunk)
        if size > limit:
            raise PayloadTooLargeError(limit)
        chunks.append(chunk)
        if not message.get("more_body", False):
            return b"".join(chunks)


class RawBodyMiddleware:
    """Preserve the webhook body byte-for-byte for signature verification."""

    def __init__(
        self,
        app: ASGIApp,
        path: str = "/webhook-checkout",
        media_type: str = JSON_MEDIA_TYPE,
        limit: int = 100 * 1024,
    ):
        self.app = app
        self.path = path
        self.media_type = media_type
        self.limit = limit

    def applies_to(self, scope: Scope) -> bool:
        return (
            scope["type"] == "http"
            and scope["method"] == "POST"
            and scope["path"] == self.path
            and media_type_of(scope) == self.media_type
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self.applies_to(scope):
            await self.app(scope, receive, send)
            return

        body = await read_body(scope, receive, self.limit)
        ensure_scope_context(scope).raw_body = body
        logger.debug("Captured %d raw bytes for %s", len(body), self.path)
        await self.app(scope, replay_receive(body, receive), send)


class BodyParserMiddleware:
    """
    Decode JSON and url-encoded bodies into ``ctx.body``.

    JSON must be an object or an array; anything else, or malformed JSON, is
    a 400. Other content types are forwarded without touching the stream.
    """

    def __init__(self, app: ASGIApp, limit: int = 10 * 1024):
        self.app = app
        self.limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ctx = ensure_scope_context(scope)
        media_type = media_type_of(scope)
        if ctx.raw_body is not None or media_type not in (JSON_MEDIA_TYPE, FORM_MEDIA_TYPE):
            await self.app(scope, receive, send)
            return

        body = await read_body(scope, receive, self.limit)
        if media_type == JSON_MEDIA_TYPE:
            ctx.body = self.decode_json(body)
        else:
            ctx.body = self.decode_form(body)

        await self.app(scope, replay_receive(body, receive), send)

    @staticmethod
    def decode_json(body: bytes):
        if not body.strip():
            return {}
        try:
            parsed = json.loads(body)
        except (UnicodeDecodeError, ValueError):
            raise BadRequestError("Invalid JSON payload")
        if not isinstance(parsed, (dict, list)):
            raise BadRequestError("Invalid JSON payload: expected an object or an array")
        return parsed

    @staticmethod
    def decode_form(body: bytes):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            raise BadRequestError("Invalid url-encoded payload")
        return pairs_to_mapping(parse_qsl(text, keep_blank_values=True))
