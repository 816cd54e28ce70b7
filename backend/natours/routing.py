"""
Natours API — Routing Dispatcher
=================================

What:  Maps path prefixes to the resource routers and mounts them in order.
How:   ``RouteTable`` holds ordered ``RouteBinding``s. Once frozen it rejects
       further bindings. ``mount_routes`` includes, in this order:

           1. /health and the webhook route (own routers)
           2. every binding of the table, in registration order
           3. the fallback router (OPTIONS 204, everything else 404)

       Starlette tries routes in inclusion order and the first full match
       owns the request, so a path no binding serves always reaches the
       fallback. Dispatch itself never raises.

Resource routers are external collaborators: plain ``APIRouter``s supplied
through ``Collaborators``.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Tuple

from fastapi import APIRouter, Depends, FastAPI

from natours.exceptions import PipelineAssemblyError
from natours.middleware.sanitize import sanitize_route_params
from natours.routes import fallback, health
from natours.routes.webhook import WebhookHandler, build_webhook_router, webhook_not_configured


class RouteBinding(NamedTuple):
    prefix: str
    router: APIRouter
    name: str


class RouteTable:
    """Ordered prefix → router bindings, immutable after ``freeze()``."""

    def __init__(self) -> None:
        self._bindings: List[RouteBinding] = []
        self._frozen = False

    def bind(self, prefix: str, router: APIRouter, name: str = "") -> "RouteTable":
        if self._frozen:
            raise PipelineAssemblyError("Route table is frozen")
        if not prefix.startswith("/"):
            raise PipelineAssemblyError(f"Route prefix must start with '/': {prefix!r}")
        normalized = prefix.rstrip("/") or "/"
        if normalized in self.prefixes:
            raise PipelineAssemblyError(f"Route prefix bound twice: {normalized}")
        self._bindings.append(RouteBinding(normalized, router, name or normalized))
        return self

    def freeze(self) -> "RouteTable":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def prefixes(self) -> List[str]:
        return [binding.prefix for binding in self._bindings]

    def __iter__(self) -> Iterator[RouteBinding]:
        return iter(tuple(self._bindings))

    def __len__(self) -> int:
        return len(self._bindings)


@dataclass
class Collaborators:
    """
    Resource routers and the webhook handler the dispatcher delegates to.

    Unset routers are empty, so their paths fall through to the 404 fallback.
    """

    views: APIRouter = field(default_factory=APIRouter)
    tours: APIRouter = field(default_factory=APIRouter)
    users: APIRouter = field(default_factory=APIRouter)
    reviews: APIRouter = field(default_factory=APIRouter)
    bookings: APIRouter = field(default_factory=APIRouter)
    webhook_checkout: WebhookHandler = webhook_not_configured


def default_route_table(collaborators: Collaborators) -> RouteTable:
    table = RouteTable()
    bindings: Tuple[Tuple[str, APIRouter, str], ...] = (
        ("/", collaborators.views, "views"),
        ("/api/v1/tours", collaborators.tours, "tours"),
        ("/api/v1/users", collaborators.users, "users"),
        ("/api/v1/reviews", collaborators.reviews, "reviews"),
        ("/api/v1/bookings", collaborators.bookings, "bookings"),
    )
    for prefix, router, name in bindings:
        table.bind(prefix, router, name)
    return table.freeze()


def mount_routes(
    app: FastAPI,
    table: RouteTable,
    webhook_handler: WebhookHandler,
    webhook_path: str = "/webhook-checkout",
) -> None:
    if not table.frozen:
        raise PipelineAssemblyError("Route table must be frozen before mounting")

    app.include_router(health.router)
    app.include_router(build_webhook_router(webhook_handler, webhook_path))

    for binding in table:
        app.include_router(
            binding.router,
            prefix="" if binding.prefix == "/" else binding.prefix,
            dependencies=[Depends(sanitize_route_params)],
        )

    app.include_router(fallback.router)
