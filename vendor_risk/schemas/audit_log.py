"""Schemas for audit trail endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from vendor_risk.schemas.common import CamelModel


class AuditLogRead(CamelModel):
    id: str
    organization_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    ip_address: str
    created_at: datetime
