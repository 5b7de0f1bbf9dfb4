"""Supplier lifecycle: scoped reads, gated writes, audit and AI cycle.

Each mutation runs in one transaction together with its audit entry. The
AI job is enqueued after commit and before the caller gets its response,
so the next read observes at least ``pending``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import structlog
from sqlalchemy.orm import Session

from vendor_risk.models import AuditAction, EntityType, Supplier
from vendor_risk.schemas.supplier import SupplierRead
from vendor_risk.services.access import AccessDecisionService, Principal
from vendor_risk.services.audit import AuditRecorder
from vendor_risk.services.enrichment import EnrichmentService
from vendor_risk.services.pagination import Page, paginate
from vendor_risk.services.permissions import Permission
from vendor_risk.services.tenant_scope import ensure_tenant, scoped_delete, scoped_select
from vendor_risk.store import DataStore

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 10

SORTABLE_COLUMNS = {
    "name": Supplier.name,
    "domain": Supplier.domain,
    "category": Supplier.category,
    "riskLevel": Supplier.risk_level,
    "status": Supplier.status,
    "createdAt": Supplier.created_at,
    "updatedAt": Supplier.updated_at,
    "contractEndDate": Supplier.contract_end_date,
    "aiRiskScore": Supplier.ai_risk_score,
}


@dataclass(frozen=True)
class SupplierFilters:
    name: str | None = None
    category: str | None = None
    risk_level: str | None = None
    status: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"


def supplier_snapshot(supplier: Supplier) -> dict[str, Any]:
    """Full public shape of a supplier, JSON-ready."""
    return SupplierRead.model_validate(supplier).model_dump(mode="json", by_alias=True)


def _column_values(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


class SupplierService:
    def __init__(
        self,
        store: DataStore,
        access: AccessDecisionService,
        audit: AuditRecorder,
        enrichment: EnrichmentService,
    ) -> None:
        self.store = store
        self.access = access
        self.audit = audit
        self.enrichment = enrichment

    @staticmethod
    def _load(session: Session, organization_id: str, supplier_id: str) -> Supplier:
        supplier = session.scalar(scoped_select(Supplier, organization_id).where(Supplier.id == supplier_id))
        return ensure_tenant(supplier, organization_id, "Supplier not found")

    def list_suppliers(
        self,
        principal: Principal,
        filters: SupplierFilters | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Supplier]:
        self.access.require(principal, Permission.SUPPLIER_READ)
        filters = filters or SupplierFilters()

        statement = scoped_select(Supplier, principal.organization_id)
        if filters.name:
            statement = statement.where(Supplier.name.ilike(f"%{filters.name}%"))
        if filters.category:
            statement = statement.where(Supplier.category == filters.category)
        if filters.risk_level:
            statement = statement.where(Supplier.risk_level == filters.risk_level)
        if filters.status:
            statement = statement.where(Supplier.status == filters.status)

        column = SORTABLE_COLUMNS.get(filters.sort_by, Supplier.created_at)
        ordering = column.asc() if filters.sort_order.lower() == "asc" else column.desc()
        statement = statement.order_by(ordering, Supplier.id)

        with self.store.transaction(principal.organization_id) as session:
            return paginate(session, statement, page, limit)

    def get(self, principal: Principal, supplier_id: str) -> Supplier:
        self.access.require(principal, Permission.SUPPLIER_READ)
        with self.store.transaction(principal.organization_id) as session:
            return self._load(session, principal.organization_id, supplier_id)

    def create(self, principal: Principal, values: Mapping[str, Any], ip_address: str) -> Supplier:
        self.access.require(principal, Permission.SUPPLIER_CREATE)
        with self.store.transaction(principal.organization_id) as session:
            supplier = Supplier(organization_id=principal.organization_id, **_column_values(values))
            EnrichmentService.reset_cycle(supplier)
            session.add(supplier)
            session.flush()
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.CREATE,
                entity_type=EntityType.SUPPLIER,
                entity_id=supplier.id,
                before=None,
                after=supplier_snapshot(supplier),
                ip_address=ip_address,
            )

        logger.info("supplier_created", supplier_id=supplier.id, organization_id=supplier.organization_id)
        self.enrichment.request_analysis(supplier)
        return supplier

    def update(
        self,
        principal: Principal,
        supplier_id: str,
        changes: Mapping[str, Any],
        ip_address: str,
    ) -> Supplier:
        """Apply the fields the principal's grants allow.

        Structural fields from a partial grantee are dropped silently; a
        gated field the principal cannot change fails the whole update.
        """
        with self.store.transaction(principal.organization_id) as session:
            supplier = self._load(session, principal.organization_id, supplier_id)
            decision = self.access.authorize_supplier_update(principal, supplier.organization_id, changes.keys())
            values = _column_values(decision.apply_to(changes))
            if decision.ignored:
                logger.info("supplier_fields_ignored", supplier_id=supplier_id, fields=decision.ignored)
            if not values:
                return supplier

            before = supplier_snapshot(supplier)
            for key, value in values.items():
                setattr(supplier, key, value)
            EnrichmentService.reset_cycle(supplier)
            session.flush()
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.UPDATE,
                entity_type=EntityType.SUPPLIER,
                entity_id=supplier.id,
                before=before,
                after=supplier_snapshot(supplier),
                ip_address=ip_address,
            )

        logger.info("supplier_updated", supplier_id=supplier.id, fields=sorted(values))
        self.enrichment.request_analysis(supplier)
        return supplier

    def delete(self, principal: Principal, supplier_id: str, ip_address: str) -> None:
        self.access.require(principal, Permission.SUPPLIER_DELETE)
        with self.store.transaction(principal.organization_id) as session:
            supplier = self._load(session, principal.organization_id, supplier_id)
            before = supplier_snapshot(supplier)
            session.execute(
                scoped_delete(Supplier, principal.organization_id)
                .where(Supplier.id == supplier.id)
                .execution_options(synchronize_session=False)
            )
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.DELETE,
                entity_type=EntityType.SUPPLIER,
                entity_id=supplier_id,
                before=before,
                after=None,
                ip_address=ip_address,
            )
        logger.info("supplier_deleted", supplier_id=supplier_id, organization_id=principal.organization_id)
