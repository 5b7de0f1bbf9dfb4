"""Schemas for user management endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from vendor_risk.schemas.common import CamelModel
from vendor_risk.services.permissions import Role

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _normalise_email(value: str) -> str:
    return value.strip().lower()


class UserCreate(CamelModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    role: Role

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value: Any) -> Any:
        return _normalise_email(value) if isinstance(value, str) else value

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class UserUpdate(CamelModel):
    email: str | None = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    role: Role | None = None
    is_active: bool | None = None
    password: str | None = Field(None, min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value: Any) -> Any:
        return _normalise_email(value) if isinstance(value, str) else value

    @field_validator("email", "first_name", "last_name", "role", "is_active", "password")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may not be null")
        return value

    def submitted(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class UserRead(CamelModel):
    """Public user shape. Never carries the password hash."""

    id: str
    organization_id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
