"""Schemas for supplier endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import Field, field_validator

from vendor_risk.models import Category, RiskLevel, SupplierStatus
from vendor_risk.schemas.common import CamelModel


class SupplierCreate(CamelModel):
    """Payload for creating a supplier."""

    name: str = Field(..., min_length=1, max_length=255)
    domain: str = Field(..., min_length=1, max_length=255)
    category: Category
    risk_level: RiskLevel = RiskLevel.MEDIUM
    status: SupplierStatus = SupplierStatus.ACTIVE
    contract_end_date: date | None = None
    notes: str | None = Field(None, max_length=5000)

    @field_validator("name", "domain")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class SupplierUpdate(CamelModel):
    """Partial update. Only fields present in the request are considered."""

    name: str | None = Field(None, min_length=1, max_length=255)
    domain: str | None = Field(None, min_length=1, max_length=255)
    category: Category | None = None
    risk_level: RiskLevel | None = None
    status: SupplierStatus | None = None
    contract_end_date: date | None = None
    notes: str | None = Field(None, max_length=5000)

    @field_validator("name", "domain", "category", "risk_level", "status")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may not be null")
        if isinstance(value, str) and not value.strip():
            raise ValueError("must not be blank")
        return value

    def submitted(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SupplierRead(CamelModel):
    """Public shape of a supplier, also used as the audit snapshot."""

    id: str
    organization_id: str
    name: str
    domain: str
    category: str
    risk_level: str
    status: str
    contract_end_date: date | None = None
    notes: str | None = None
    ai_status: str | None = None
    ai_risk_score: float | None = None
    ai_analysis: dict[str, Any] | None = None
    ai_last_requested_at: datetime | None = None
    ai_last_completed_at: datetime | None = None
    ai_error: str | None = None
    created_at: datetime
    updated_at: datetime
