"""Schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from vendor_risk.schemas.common import CamelModel


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class AuthUser(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool = True
    organization_id: str
    organization_name: str
    created_at: datetime | None = None


class LoginResult(CamelModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AuthUser


class CurrentUser(AuthUser):
    permissions: list[str]
