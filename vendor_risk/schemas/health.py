"""Schemas for the health probes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

CheckStatus = Literal["healthy", "unhealthy"]


class ServiceHealth(BaseModel):
    """Result of one dependency check, e.g. the database ping."""

    service: str
    status: CheckStatus
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    environment: str
    services: list[ServiceHealth]


class LivenessResponse(BaseModel):
    status: Literal["alive"] = "alive"
