"""
Natours API — Rate Limiting Middleware
=======================================

What:  Per-IP fixed window rate limiter for the API surface.
How:   A ``RateLimitStore`` maps client IP → ``RateLimitCounter``. On each
       request under the API prefix the counter is hit; a count above the cap
       short-circuits with ``RateLimitExceededError`` (429), which the error
       conversion stage renders. Nothing after this stage sees the request.
When:  After error conversion (so the 429 is rendered like every other
       failure) and before body ingestion.

Algorithm: Fixed Window Counter
    1. No counter, or the window has elapsed → count = 1, window restarts
    2. Otherwise count += 1
    3. count > cap → reject until the window ends

Store and clock are injected at construction. ``InMemoryRateLimitStore`` is
single-process; a shared store (e.g. Redis INCR with TTL) only has to
implement ``hit``/``reset``.

Concurrency:
    ``hit`` is synchronous and never awaits, so on a single event loop an
    update can not interleave with another request's update.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from natours.context import get_scope_context, resolve_client_ip
from natours.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class RateLimitCounter:
    count: int
    window_start: float


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage interface for rate limit counters."""

    def hit(self, key: str, window: float, now: float) -> RateLimitCounter: ...

    def reset(self, key: str) -> None: ...


class InMemoryRateLimitStore:
    """Process-local counters. Not shared between workers."""

    def __init__(self) -> None:
        self._counters: Dict[str, RateLimitCounter] = {}

    def hit(self, key: str, window: float, now: float) -> RateLimitCounter:
        counter = self._counters.get(key)
        if counter is None or now - counter.window_start >= window:
            counter = RateLimitCounter(count=1, window_start=now)
            self._counters[key] = counter
        else:
            counter.count += 1
        return RateLimitCounter(counter.count, counter.window_start)

    def reset(self, key: str) -> None:
        self._counters.pop(key, None)

    def purge_expired(self, window: float, now: float) -> int:
        """Drop counters whose window has elapsed. Returns how many were removed."""
        expired = [
            key for key, counter in self._counters.items()
            if now - counter.window_start >= window
        ]
        for key in expired:
            del self._counters[key]
        if expired:
            logger.debug("Purged %d expired rate limit counters", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed window limiter applied to paths under ``path_prefix``.

    Allowed responses carry X-RateLimit-Limit / -Remaining / -Reset headers.
    Rejections raise ``RateLimitExceededError`` with ``retry_after`` set to the
    seconds left in the window.
    """

    # Purge expired counters every N hits to bound memory
    PURGE_EVERY = 1000

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window: float = 3600,
        path_prefix: str = "/api",
        store: Optional[RateLimitStore] = None,
        clock: Optional[Clock] = None,
        trust_proxy: bool = True,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window = window
        self.path_prefix = path_prefix.rstrip("/")
        self.store: RateLimitStore = store if store is not None else InMemoryRateLimitStore()
        self.clock: Clock = clock or time.monotonic
        self.trust_proxy = trust_proxy
        self._hits = 0

    def applies_to(self, path: str) -> bool:
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.applies_to(request.url.path):
            return await call_next(request)

        ctx = get_scope_context(request.scope)
        client_ip = ctx.client_ip if ctx else resolve_client_ip(request.scope, self.trust_proxy)

        now = self.clock()
        counter = self.store.hit(client_ip, self.window, now)
        reset_in = max(0, math.ceil(counter.window_start + self.window - now))

        self._hits += 1
        if self._hits % self.PURGE_EVERY == 0 and isinstance(self.store, InMemoryRateLimitStore):
            self.store.purge_expired(self.window, now)

        if counter.count > self.max_requests:
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ss window",
                client_ip,
                counter.count,
                self.window,
            )
            raise RateLimitExceededError(retry_after=reset_in)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(self.max_requests - counter.count)
        response.headers["X-RateLimit-Reset"] = str(reset_in)
        return response
