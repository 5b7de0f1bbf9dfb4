"""Supplier model and its closed enumerations."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from vendor_risk.models.base import Base, TimestampMixin


class Category(str, Enum):
    SAAS = "SaaS"
    INFRASTRUCTURE = "Infrastructure"
    CONSULTING = "Consulting"
    OTHER = "Other"


class RiskLevel(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class SupplierStatus(str, Enum):
    ACTIVE = "Active"
    UNDER_REVIEW = "Under Review"
    INACTIVE = "Inactive"


class AiStatus(str, Enum):
    """State of the current AI enrichment cycle. NULL in the column means never requested."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class Supplier(TimestampMixin, Base):
    """A third-party supplier tracked by an organisation."""

    __tablename__ = "suppliers"

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organisations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    risk_level: Mapped[str] = mapped_column(String(50), nullable=False, default=RiskLevel.MEDIUM.value, index=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=SupplierStatus.ACTIVE.value)
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # AI analysis sub-record
    ai_status: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    ai_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_analysis: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    ai_last_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ai_last_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ai_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Bumped on every cycle reset; only consulted when stale-job fencing is enabled.
    ai_cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Supplier {self.name} org={self.organization_id[:8]}>"
