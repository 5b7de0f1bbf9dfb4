"""Health check endpoints for production monitoring."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import APIRouter, Request

from vendor_risk.schemas.health import HealthResponse, LivenessResponse, ServiceHealth

router = APIRouter(tags=["health"])


def _check_service(name: str, check_fn: Callable[[], None]) -> ServiceHealth:
    """Run a health check function and return a ServiceHealth result."""
    start = time.monotonic()
    try:
        check_fn()
        latency = (time.monotonic() - start) * 1000
        return ServiceHealth(service=name, status="healthy", latency_ms=round(latency, 2))
    except Exception as exc:
        latency = (time.monotonic() - start) * 1000
        return ServiceHealth(
            service=name,
            status="unhealthy",
            latency_ms=round(latency, 2),
            details=str(exc)[:200],
        )


def _check_app() -> None:
    """Application self-check, always passes."""


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Basic health check: is the application running?"""
    settings = request.app.state.settings
    services = [_check_service("app", _check_app)]
    overall = "healthy" if all(s.status == "healthy" for s in services) else "degraded"
    return HealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        services=services,
    )


@router.get("/health/ready", response_model=HealthResponse)
def readiness_check(request: Request) -> HealthResponse:
    """Readiness check: application plus database."""
    settings = request.app.state.settings
    store = request.app.state.services.store
    services = [
        _check_service("app", _check_app),
        _check_service("database", store.ping),
    ]
    overall = "healthy" if all(s.status == "healthy" for s in services) else "unhealthy"
    return HealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        services=services,
    )


@router.get("/health/live", response_model=LivenessResponse)
def liveness_check() -> LivenessResponse:
    """Liveness probe: is the process alive?"""
    return LivenessResponse()
