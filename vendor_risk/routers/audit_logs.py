"""Audit trail endpoints. Read-only."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from vendor_risk.deps import ServicesDep, require_permission
from vendor_risk.models import AuditAction, EntityType
from vendor_risk.schemas.audit_log import AuditLogRead
from vendor_risk.schemas.common import DataResponse, PageResponse
from vendor_risk.services.access import Principal
from vendor_risk.services.audit import DEFAULT_AUDIT_PAGE_SIZE
from vendor_risk.services.permissions import Permission

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])

CanReadAudit = Annotated[
    Principal,
    Depends(require_permission(Permission.AUDIT_READ, message="You do not have permission to view the audit trail")),
]


@router.get("", response_model=PageResponse[AuditLogRead])
def list_audit_logs(
    principal: CanReadAudit,
    services: ServicesDep,
    page: int = Query(1),
    limit: int = Query(DEFAULT_AUDIT_PAGE_SIZE),
    entity_type: EntityType | None = Query(None, alias="entityType"),
    entity_id: str | None = Query(None, alias="entityId"),
    user_id: str | None = Query(None, alias="userId"),
    action: AuditAction | None = None,
) -> PageResponse[AuditLogRead]:
    """Newest-first audit entries of the caller's organisation."""
    with services.store.transaction(principal.organization_id) as session:
        result = services.audit.list_entries(
            session,
            principal.organization_id,
            entity_type=entity_type.value if entity_type else None,
            entity_id=entity_id,
            user_id=user_id,
            action=action.value if action else None,
            page=page,
            limit=limit,
        )
    return PageResponse[AuditLogRead].from_page(result, AuditLogRead)


@router.get("/{log_id}", response_model=DataResponse[AuditLogRead])
def get_audit_log(log_id: str, principal: CanReadAudit, services: ServicesDep) -> DataResponse[AuditLogRead]:
    with services.store.transaction(principal.organization_id) as session:
        entry = services.audit.get(session, principal.organization_id, log_id)
    return DataResponse[AuditLogRead](data=AuditLogRead.model_validate(entry))
