"""
Natours API — Health Check Route
=================================

What:  Liveness probe for load balancers and container health checks.
How:   Reports version, environment and uptime. It lives outside the API
       prefix, so it is never rate limited.
"""

import time

from fastapi import APIRouter, Request

from natours import __version__
from natours.schemas.common import HealthResponse

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=request.app.state.settings.node_env,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
