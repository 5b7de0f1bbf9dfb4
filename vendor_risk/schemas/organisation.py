"""Schemas for organisation endpoints."""

from __future__ import annotations

from vendor_risk.schemas.common import CamelModel


class OrganisationDeletion(CamelModel):
    """Row counts removed by an organisation teardown."""

    organization_id: str
    audit_logs: int
    users: int
    suppliers: int
