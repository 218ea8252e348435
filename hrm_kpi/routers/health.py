"""
Health Check Router - HRM KPI Engine
hrm_kpi/routers/health.py

Returns health status of the engine's dependencies with real connection checks.
Redis is optional (locks and caches degrade to in-process), so only Snowflake
decides between healthy and 503.
"""
from datetime import datetime, timezone

import redis
from fastapi import APIRouter, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from hrm_kpi.config import settings
from hrm_kpi.models.api import HealthResponse
from hrm_kpi.services.snowflake import check_snowflake_connection

router = APIRouter(tags=["Health"])


#  Dependency Health Checks


def check_snowflake() -> str:
    """Check Snowflake connection health."""
    if not settings.snowflake_configured:
        return "unhealthy: Snowflake credentials not configured"
    return "healthy" if check_snowflake_connection() else "unhealthy: connection failed"


def check_redis() -> str:
    """Check Redis connection health."""
    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=5)
        client.ping()
        client.close()
        return "healthy"
    except redis.RedisError as e:
        error_msg = str(e)[:100] + "..." if len(str(e)) > 100 else str(e)
        return f"degraded: {error_msg}"


#  Main Health Check Route


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "Storage reachable"},
        503: {"description": "Storage unreachable"},
    },
    summary="Health check",
)
async def health_check():
    dependencies = {
        "snowflake": await run_in_threadpool(check_snowflake),
        "redis": await run_in_threadpool(check_redis),
    }

    storage_ok = dependencies["snowflake"].startswith("healthy")
    all_healthy = all(v.startswith("healthy") for v in dependencies.values())

    response = HealthResponse(
        status="healthy" if all_healthy else ("degraded" if storage_ok else "unhealthy"),
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        dependencies=dependencies,
    )

    if storage_ok:
        return response
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )
