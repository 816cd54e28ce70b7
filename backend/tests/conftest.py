"""
Natours API — Test Configuration (conftest.py)
===============================================

What:  Shared pytest fixtures for the test suite.
How:   Apps are built with ``create_app`` and explicit ``Settings`` so no test
       depends on the process environment. Resource routers are small stand-in
       ``APIRouter``s that echo what the pipeline handed them.

Fixtures:
    ├── fake_clock: Manually advanced monotonic clock for rate limiting
    ├── received_webhooks: Payloads captured by the stub webhook handler
    ├── collaborators: Stand-in resource routers + webhook handler
    ├── make_app / make_client: Factories for apps and AsyncClients
    └── client / dev_client: Ready clients in production / development mode
"""

import os
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from fastapi import APIRouter, Depends, Request
from httpx import ASGITransport, AsyncClient

# Keep the module-level app in natours.main from picking up a developer .env
os.environ.setdefault("NODE_ENV", "production")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from natours.config import Settings  # noqa: E402
from natours.context import RequestContext, get_body, get_context  # noqa: E402
from natours.exceptions import BadRequestError, NotFoundError  # noqa: E402
from natours.main import create_app  # noqa: E402
from natours.routing import Collaborators  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def _failing_lookup() -> None:
    raise RuntimeError("database connection lost")


def build_tour_router() -> APIRouter:
    router = APIRouter()

    @router.get("")
    async def list_tours(request: Request, ctx: RequestContext = Depends(get_context)) -> Dict[str, Any]:
        return {
            "status": "success",
            "query": ctx.query,
            "query_params": dict(request.query_params),
            "request_time": ctx.request_time,
        }

    @router.post("")
    async def create_tour(body: Any = Depends(get_body)) -> Dict[str, Any]:
        return {"status": "success", "data": body}

    @router.post("/raw")
    async def create_tour_from_stream(request: Request) -> Dict[str, Any]:
        return {"status": "success", "data": await request.json()}

    @router.get("/defect")
    async def defect() -> None:
        raise RuntimeError("tour index corrupted")

    @router.get("/async-defect")
    async def async_defect() -> None:
        await _failing_lookup()

    @router.get("/{tour_id}")
    async def get_tour(tour_id: str, ctx: RequestContext = Depends(get_context)) -> Dict[str, Any]:
        if tour_id == "missing":
            raise NotFoundError("No tour found with that ID")
        if tour_id == "bad":
            raise BadRequestError("Invalid tour id")
        return {"status": "success", "id": tour_id, "matched_route": ctx.matched_route}

    return router


def build_view_router() -> APIRouter:
    router = APIRouter()

    @router.get("/")
    async def overview() -> Dict[str, str]:
        return {"page": "overview"}

    @router.get("/broken-view")
    async def broken_view() -> None:
        raise ValueError("template variable missing")

    return router


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def received_webhooks() -> List[bytes]:
    return []


@pytest.fixture
def collaborators(received_webhooks) -> Collaborators:
    async def webhook_handler(request: Request, payload: bytes) -> None:
        received_webhooks.append(payload)

    return Collaborators(
        views=build_view_router(),
        tours=build_tour_router(),
        webhook_checkout=webhook_handler,
    )


@pytest.fixture
def make_app(collaborators, fake_clock, tmp_path):
    def _make(**overrides):
        options = {
            "node_env": "production",
            "log_level": "WARNING",
            "public_dir": str(tmp_path / "public"),
            "trust_proxy": True,
        }
        options.update(overrides)
        return create_app(Settings(**options), collaborators=collaborators, clock=fake_clock)

    return _make


@pytest.fixture
def make_client():
    def _make(app) -> AsyncClient:
        transport = ASGITransport(app=app)
        return AsyncClient(transport=transport, base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def client(make_app, make_client):
    async with make_client(make_app()) as c:
        yield c


@pytest_asyncio.fixture
async def dev_client(make_app, make_client):
    async with make_client(make_app(node_env="development")) as c:
        yield c
