"""
Health check endpoints.

Provides basic and detailed health check functionality.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.dependencies import get_app_settings, get_prompt_store, get_ws_manager
from api.schemas.common import (
    HealthStatus,
    HealthCheckResponse,
    DetailedHealthCheckResponse,
    ComponentHealth,
)
from api.schemas.prompts import CatalogName
from core.config import Settings
from core.redis import RedisHealthCheck
from services.prompt_store import PromptCatalogStore
from services.websocket_manager import WebSocketManager

router = APIRouter(prefix="/health", tags=["health"])

# Track application start time for uptime calculation
_start_time = time.time()


def _catalog_health(name: CatalogName, status: dict) -> ComponentHealth:
    """
    Map a catalog status to component health.

    A missing custom catalog is normal (nothing saved yet); a missing
    default catalog means the deployment was never seeded.
    """
    details = {k: v for k, v in status.items() if k in ("path", "entries")}
    state = status["status"]

    if state == "ok" or (state == "missing" and name is CatalogName.CUSTOM):
        return ComponentHealth(status=HealthStatus.HEALTHY, details=details)
    if state == "missing":
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            error="Default catalog not seeded",
            details=details,
        )
    return ComponentHealth(
        status=HealthStatus.UNHEALTHY,
        error=status.get("error"),
        details=details,
    )


def _redis_health(redis_health: dict) -> ComponentHealth:
    if redis_health["status"] == "disabled":
        return ComponentHealth(status=HealthStatus.HEALTHY, details={"enabled": False})
    return ComponentHealth(
        status=HealthStatus.HEALTHY if redis_health["status"] == "healthy" else HealthStatus.UNHEALTHY,
        latency_ms=redis_health.get("latency_ms"),
        error=redis_health.get("error"),
    )


def _worst(statuses: list[HealthStatus]) -> HealthStatus:
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Basic health check",
    description="Quick health check endpoint for load balancers and container orchestration.",
)
async def health_check() -> HealthCheckResponse:
    """
    Basic health check.

    Returns a simple healthy status if the API is running.
    """
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/detailed",
    response_model=DetailedHealthCheckResponse,
    summary="Detailed health check",
    description="Comprehensive health check with status of all components.",
)
async def detailed_health_check(
    settings: Settings = Depends(get_app_settings),
    store: PromptCatalogStore = Depends(get_prompt_store),
    ws_manager: WebSocketManager = Depends(get_ws_manager),
) -> DetailedHealthCheckResponse:
    """
    Detailed health check with component status.

    Checks the health of:
    - Default and custom catalog documents
    - Redis change relay (if enabled)
    - WebSocket connections
    """
    components = {}

    for name in CatalogName:
        status = await store.catalog_status(name)
        components[f"{name.value}_catalog"] = _catalog_health(name, status)

    components["redis"] = _redis_health(await RedisHealthCheck.check())

    components["websocket"] = ComponentHealth(
        status=HealthStatus.HEALTHY,
        details={"connections": ws_manager.connection_count},
    )

    uptime_seconds = time.time() - _start_time

    return DetailedHealthCheckResponse(
        status=_worst([c.status for c in components.values()]),
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=round(uptime_seconds, 2),
        components=components,
    )


@router.get(
    "/ready",
    response_model=HealthCheckResponse,
    summary="Readiness check",
    description="Check if the application is ready to accept traffic.",
)
async def readiness_check(
    store: PromptCatalogStore = Depends(get_prompt_store),
) -> HealthCheckResponse:
    """
    Readiness check for Kubernetes.

    Ready once the default catalog is readable and Redis (when enabled)
    answers.
    """
    default_health = _catalog_health(
        CatalogName.DEFAULT, await store.catalog_status(CatalogName.DEFAULT)
    )
    redis_health = _redis_health(await RedisHealthCheck.check())

    ready = (
        default_health.status == HealthStatus.HEALTHY
        and redis_health.status == HealthStatus.HEALTHY
    )
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/live",
    response_model=HealthCheckResponse,
    summary="Liveness check",
    description="Check if the application is alive.",
)
async def liveness_check() -> HealthCheckResponse:
    """
    Liveness check for Kubernetes.

    Simple check that the application process is running.
    """
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
    )
