"""
Natours API — Per-Request Context
==================================

What:  The mutable bag of derived attributes every stage may read or extend.
How:   ``RequestContextMiddleware`` creates one ``RequestContext`` at pipeline
       entry and stores it in the ASGI scope state, so both pure ASGI stages
       (``scope["state"]["ctx"]``) and Starlette requests
       (``request.state.ctx``) see the same object. It is dropped together
       with the scope once the response is sent.

Attributes set by stages:
    REQUEST_CONTEXT  request_id, request_time, client_ip, original_url
    RAW_BODY         raw_body (webhook only)
    BODY_PARSER      body
    SANITIZATION     body, query (sanitized in place)
    routing          matched_route
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import Request
from starlette.types import Message, Receive, Scope

# Coroutine-local request ID, read by the log filter and the error converter.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

QueryValue = Union[str, List[str]]


@dataclass
class RequestContext:
    request_id: str
    client_ip: str
    original_url: str = ""
    request_time: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    body: Any = field(default_factory=dict)
    raw_body: Optional[bytes] = None
    query: Dict[str, QueryValue] = field(default_factory=dict)
    matched_route: Optional[str] = None


def resolve_client_ip(scope: Scope, trust_proxy: bool) -> str:
    """
    Client identity used for rate limiting and logging.

    With ``trust_proxy`` the left-most ``X-Forwarded-For`` hop wins, otherwise
    the socket peer address. Falls back to ``"unknown"`` (e.g. in-process tests
    without a client tuple).
    """
    if trust_proxy:
        for name, value in scope.get("headers", []):
            if name == b"x-forwarded-for":
                first = value.decode("latin-1").split(",")[0].strip()
                if first:
                    return first
    client = scope.get("client")
    if client:
        return client[0]
    return "unknown"


def original_url_of(scope: Scope) -> str:
    """Path and query string as received, before any stage rewrites them."""
    query = scope.get("query_string", b"").decode("latin-1")
    path = scope.get("path", "")
    return f"{path}?{query}" if query else path


def get_scope_context(scope: Scope) -> Optional[RequestContext]:
    return scope.get("state", {}).get("ctx")


def ensure_scope_context(scope: Scope) -> RequestContext:
    """Context of the current request, created on the spot if no stage made one."""
    ctx = get_scope_context(scope)
    if ctx is None:
        ctx = RequestContext(
            request_id=request_id_var.get(""),
            client_ip=resolve_client_ip(scope, trust_proxy=False),
            original_url=original_url_of(scope),
        )
        scope.setdefault("state", {})["ctx"] = ctx
    return ctx


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """
    Build a receive callable that yields ``body`` once, then defers to the
    original channel (so disconnect messages still arrive).

    Used by stages that had to consume the request stream before forwarding.
    """
    sent = False

    async def receive_replayed() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return receive_replayed


def replace_header(scope: Scope, name: bytes, value: bytes) -> None:
    headers = [(k, v) for k, v in scope.get("headers", []) if k != name]
    headers.append((name, value))
    scope["headers"] = headers


# ── FastAPI dependencies for resource routers ─────────────────────────────


def get_context(request: Request) -> RequestContext:
    return ensure_scope_context(request.scope)


def get_body(request: Request) -> Any:
    """Sanitized, structured request body (``{}`` when none was parsed)."""
    return get_context(request).body


def get_raw_body(request: Request) -> Optional[bytes]:
    """Unparsed bytes, only ever set for the webhook endpoint."""
    return get_context(request).raw_body
