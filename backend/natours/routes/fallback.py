"""
Natours API — Fallback Routes
==============================

Included after every other router. Any OPTIONS request is answered with 204
(preflights carrying CORS headers are already answered by CORSMiddleware);
any other request that reached this point matched nothing and becomes a 404
operational error naming the URL exactly as the client sent it (the
sanitization stage has rewritten the query string by then).
"""

from fastapi import APIRouter, Request
from starlette.responses import Response

from natours.context import get_context
from natours.exceptions import NotFoundError

router = APIRouter(include_in_schema=False)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


@router.options("/{path:path}")
async def preflight(path: str) -> Response:
    return Response(status_code=204)


@router.api_route("/{path:path}", methods=ALL_METHODS)
async def not_found(request: Request, path: str) -> None:
    url = get_context(request).original_url
    raise NotFoundError(f"Can't find {url} on this server!")
