"""Audit Recorder: append-only before/after snapshots of every mutation.

``record`` is called inside the mutating transaction, so a failed audit
write rolls the mutation back with it. Snapshots are the full public shape
of the entity, never diffs.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.orm import Session

from vendor_risk.models import AuditAction, AuditLog, EntityType
from vendor_risk.services.pagination import Page, paginate
from vendor_risk.services.tenant_scope import ensure_tenant, scoped_select

logger = structlog.get_logger()

DEFAULT_AUDIT_PAGE_SIZE = 20


class AuditRecorder:
    """Writes and reads the audit trail of one organisation at a time."""

    def record(
        self,
        session: Session,
        *,
        organization_id: str,
        user_id: str,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        ip_address: str,
    ) -> AuditLog:
        """Append one entry to the session's transaction.

        Raises:
            ValueError: if the snapshots do not match the action shape
                (CREATE has no before, DELETE has no after, UPDATE has both).
        """
        action = AuditAction(action)
        if action is AuditAction.CREATE and (before is not None or after is None):
            raise ValueError("CREATE entries carry an 'after' snapshot only")
        if action is AuditAction.DELETE and (before is None or after is not None):
            raise ValueError("DELETE entries carry a 'before' snapshot only")
        if action is AuditAction.UPDATE and (before is None or after is None):
            raise ValueError("UPDATE entries carry both snapshots")

        entry = AuditLog(
            organization_id=organization_id,
            user_id=user_id,
            action=action.value,
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            before=before,
            after=after,
            ip_address=ip_address,
        )
        session.add(entry)
        # Flush now so a failed audit insert fails the caller's mutation.
        session.flush()
        logger.debug(
            "audit_recorded",
            organization_id=organization_id,
            action=action.value,
            entity_type=entry.entity_type,
            entity_id=entity_id,
        )
        return entry

    def list_entries(
        self,
        session: Session,
        organization_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        user_id: str | None = None,
        action: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_AUDIT_PAGE_SIZE,
    ) -> Page[AuditLog]:
        """Newest-first page of entries; all filters AND together."""
        statement = scoped_select(AuditLog, organization_id)
        if entity_type:
            statement = statement.where(AuditLog.entity_type == entity_type)
        if entity_id:
            statement = statement.where(AuditLog.entity_id == entity_id)
        if user_id:
            statement = statement.where(AuditLog.user_id == user_id)
        if action:
            statement = statement.where(AuditLog.action == action.upper())
        statement = statement.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        return paginate(session, statement, page, limit)

    def get(self, session: Session, organization_id: str, log_id: str) -> AuditLog:
        entry = session.scalar(scoped_select(AuditLog, organization_id).where(AuditLog.id == log_id))
        return ensure_tenant(entry, organization_id, "Audit log entry not found")
