"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.config.constants import Jobs
from shared.config.settings import settings
from shared.infrastructure.db import Database
from shared.infrastructure.redis_pool import get_redis_pool
from shared.utils.health import (
    HealthStatus,
    aggregate_health_checks,
    health_check_with_timeout,
)
from rest_api.services.payments.circuit_breaker import get_all_breaker_stats


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


@health_check_with_timeout(timeout=3.0, component="postgresql")
async def check_postgresql_health(database: Database) -> dict:
    with database.session_scope() as db:
        db.execute(text("SELECT 1"))
    return {"type": database.engine.dialect.name}


@health_check_with_timeout(timeout=3.0, component="redis")
async def check_redis_health() -> dict:
    redis = await get_redis_pool()
    await redis.ping()
    return {"type": "redis"}


@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """
    Dependency health plus circuit breaker and settlement queue stats.

    Returns 503 Service Unavailable if any dependency is down.
    """
    health_results = await aggregate_health_checks([
        check_postgresql_health(request.app.state.database),
        check_redis_health(),
    ])

    checks = {
        "service": "rest-api",
        "environment": settings.environment,
        "status": health_results["status"],
        "dependencies": health_results["components"],
        "circuit_breakers": get_all_breaker_stats(),
    }

    job_queue = getattr(request.app.state, "job_queue", None)
    if job_queue is not None and health_results["components"]["redis"]["status"] == "healthy":
        checks["settlement_queue"] = await job_queue.get_stats(Jobs.DISCOUNT_CODE_SETTLE)

    if checks["status"] != HealthStatus.HEALTHY.value:
        return JSONResponse(content=checks, status_code=503)

    return checks
