"""
Health check endpoint.

GET /health reports one status per dependency:

    mongodb   ok | error                        error → unhealthy (503)
    redis     ok | error | not_configured       otherwise → degraded
    email     ok | unavailable | not_configured unavailable → degraded

Auth keeps working without Redis or mail; it does not work without MongoDB.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])

_DEGRADING = {
    "redis": {"error", "not_configured"},
    "email": {"unavailable"},
}


async def _check_mongodb(request: Request) -> str:
    try:
        await request.app.state.db.client.admin.command("ping")
    except Exception as e:
        log.warning("health_check_failed", dependency="mongodb", error_type=type(e).__name__)
        return "error"
    return "ok"


async def _check_redis(request: Request) -> str:
    redis = request.app.state.redis
    if redis is None:
        return "not_configured"
    try:
        await redis.ping()
    except Exception as e:
        log.warning("health_check_failed", dependency="redis", error_type=type(e).__name__)
        return "error"
    return "ok"


async def _check_email(request: Request) -> str:
    probe = getattr(request.app.state, "email_availability", None)
    if probe is None:
        return "not_configured"
    return "ok" if await probe.is_available() else "unavailable"


@router.get(
    "/health",
    responses={200: {"model": HealthResponse}, 503: {"model": HealthResponse}},
)
async def health_check(request: Request) -> JSONResponse:
    checks = {
        "mongodb": await _check_mongodb(request),
        "redis": await _check_redis(request),
        "email": await _check_email(request),
    }

    if checks["mongodb"] != "ok":
        overall = "unhealthy"
    elif any(checks[name] in states for name, states in _DEGRADING.items()):
        overall = "degraded"
    else:
        overall = "healthy"

    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content={"status": overall, "checks": checks},
    )
