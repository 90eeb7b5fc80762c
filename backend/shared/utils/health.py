"""
Dependency health probes.

A probe is a function wrapped by one of the decorators below. It may
return a dict of details; a timeout or any exception turns into an
UNHEALTHY result instead of propagating.

Usage:
    @blocking_health_check(timeout=3.0, component="order_database")
    def check_order_database():
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))

    @health_check_with_timeout(timeout=3.0, component="redis")
    async def check_redis():
        await redis.ping()

    results = await asyncio.gather(check_order_database(), check_redis())
    overall_status(results)  # HealthStatus.HEALTHY or DEGRADED
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from shared.config.logging import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheckResult:
    status: HealthStatus
    component: str
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value}
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        if self.error:
            result["error"] = self.error
        if self.details:
            result["details"] = self.details
        return result


async def run_probe(component: str, probe: Awaitable[Any], timeout: float) -> HealthCheckResult:
    """Await ``probe`` under ``timeout`` and report the outcome."""
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return (time.perf_counter() - started) * 1000

    try:
        details = await asyncio.wait_for(probe, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Health check timeout", component=component, timeout=timeout)
        return HealthCheckResult(
            HealthStatus.UNHEALTHY, component, elapsed_ms(), error=f"timeout after {timeout}s"
        )
    except Exception as e:
        logger.warning("Health check failed", component=component, error=str(e))
        return HealthCheckResult(HealthStatus.UNHEALTHY, component, elapsed_ms(), error=str(e))

    return HealthCheckResult(
        HealthStatus.HEALTHY,
        component,
        elapsed_ms(),
        details=details if isinstance(details, dict) else {},
    )


def _component_name(func: Callable[..., Any], component: str | None) -> str:
    return component or func.__name__.removeprefix("check_")


def health_check_with_timeout(timeout: float = 5.0, component: str | None = None):
    """Wrap an async probe so that calling it yields a HealthCheckResult."""

    def decorator(func):
        name = _component_name(func, component)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> HealthCheckResult:
            return await run_probe(name, func(*args, **kwargs), timeout)

        return wrapper

    return decorator


def blocking_health_check(timeout: float = 5.0, component: str | None = None):
    """Same as health_check_with_timeout for a blocking probe, run in a worker thread."""

    def decorator(func):
        name = _component_name(func, component)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> HealthCheckResult:
            return await run_probe(name, asyncio.to_thread(func, *args, **kwargs), timeout)

        return wrapper

    return decorator


def overall_status(results: Iterable[HealthCheckResult]) -> HealthStatus:
    return HealthStatus.HEALTHY if all(r.is_healthy for r in results) else HealthStatus.DEGRADED
