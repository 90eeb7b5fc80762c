"""
Health router.
Basic liveness plus a detailed check of the order database, the local
cart store and (when used) Redis.
"""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.config.settings import settings
from shared.infrastructure.db import CartSessionLocal, SessionLocal, get_db_context
from shared.infrastructure.events import get_redis_pool
from shared.utils.health import (
    HealthStatus,
    blocking_health_check,
    health_check_with_timeout,
    overall_status,
)


router = APIRouter(tags=["health"])


def _ping(session_factory) -> None:
    with get_db_context(session_factory) as db:
        db.execute(text("SELECT 1"))


@blocking_health_check(timeout=3.0, component="order_database")
def check_order_database():
    _ping(SessionLocal)


@blocking_health_check(timeout=3.0, component="cart_store")
def check_cart_store():
    _ping(CartSessionLocal)


@health_check_with_timeout(timeout=3.0, component="redis")
async def check_redis():
    redis = await get_redis_pool()
    await redis.ping()


@router.get("/api/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": "pos-api",
        "environment": settings.environment,
    }


@router.get("/api/health/detailed")
async def detailed_health_check(request: Request):
    """
    Detailed health check that verifies connectivity to dependencies.
    Returns 503 when any of them is down.
    """
    checks = [check_order_database(), check_cart_store()]
    if settings.order_feed_backend == "redis":
        checks.append(check_redis())
    results = await asyncio.gather(*checks)

    status = overall_status(results)
    registry = getattr(request.app.state, "registry", None)
    body = {
        "status": status.value,
        "service": "pos-api",
        "environment": settings.environment,
        "dependencies": {result.component: result.to_dict() for result in results},
        "open_tables": len(registry) if registry is not None else 0,
    }
    if status != HealthStatus.HEALTHY:
        return JSONResponse(content=body, status_code=503)
    return body
