"""
Natours API — Sanitization Middleware
======================================

What:  Applies the input sanitizers to everything a router can read.
How:   Runs after body ingestion, in this order per input:
           query   strip operator keys → escape markup → collapse duplicates
           body    strip operator keys → escape markup (→ collapse for forms)
       The sanitized query replaces ``scope["query_string"]``; the sanitized
       body is stored in ``ctx.body`` and re-serialized into the stream so
       routers that declare body models see the same data.
       Path params are only known after routing, so ``sanitize_route_params``
       is attached to every routed binding as a dependency instead.

Nothing here rejects a request. The raw webhook body is left untouched.
"""

import json
import sys
from typing import Iterable
from urllib.parse import parse_qsl, urlencode

from fastapi import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from natours.context import ensure_scope_context, get_context, replace_header, replay_receive
from natours.middleware.body import FORM_MEDIA_TYPE, JSON_MEDIA_TYPE, media_type_of, read_body
from natours.sanitizers import (
    collapse_duplicates,
    mapping_to_pairs,
    pairs_to_mapping,
    sanitize,
)


class SanitizationMiddleware:
    def __init__(self, app: ASGIApp, whitelist: Iterable[str] = ()):
        self.app = app
        self.whitelist = tuple(whitelist)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        ctx = ensure_scope_context(scope)
        if ctx.raw_body is not None:
            await self.app(scope, receive, send)
            return

        query = pairs_to_mapping(
            parse_qsl(scope.get("query_string", b"").decode("latin-1"), keep_blank_values=True)
        )
        ctx.query = collapse_duplicates(sanitize(query), self.whitelist)
        scope["query_string"] = urlencode(mapping_to_pairs(ctx.query)).encode("ascii")

        media_type = media_type_of(scope)
        if media_type not in (JSON_MEDIA_TYPE, FORM_MEDIA_TYPE):
            await self.app(scope, receive, send)
            return

        # Drain the stream replayed by the body parser; it is already in memory.
        original = await read_body(scope, receive, sys.maxsize)

        if media_type == JSON_MEDIA_TYPE:
            ctx.body = sanitize(ctx.body)
            body = json.dumps(ctx.body).encode("utf-8") if original.strip() else original
        else:
            ctx.body = collapse_duplicates(sanitize(ctx.body), self.whitelist)
            body = urlencode(mapping_to_pairs(ctx.body)).encode("ascii")

        replace_header(scope, b"content-length", str(len(body)).encode("ascii"))
        await self.app(scope, replay_receive(body, receive), send)


def sanitize_route_params(request: Request) -> None:
    """
    Router-level dependency: sanitize resolved path params in place and record
    which route template matched.
    """
    ctx = get_context(request)
    route = request.scope.get("route")
    if route is not None:
        ctx.matched_route = getattr(route, "path", None)

    params = request.scope.get("path_params")
    if params:
        cleaned = sanitize(dict(params))
        params.clear()
        params.update(cleaned)
