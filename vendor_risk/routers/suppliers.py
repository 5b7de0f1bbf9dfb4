"""Supplier API endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from vendor_risk.deps import ClientIP, ServicesDep, require_permission
from vendor_risk.models import Category, RiskLevel, SupplierStatus
from vendor_risk.schemas.common import DataResponse, MessageResponse, PageResponse
from vendor_risk.schemas.supplier import SupplierCreate, SupplierRead, SupplierUpdate
from vendor_risk.services.access import SUPPLIER_UPDATE_GRANTS, Principal
from vendor_risk.services.permissions import Permission
from vendor_risk.services.suppliers import DEFAULT_PAGE_SIZE, SupplierFilters

router = APIRouter(prefix="/api/suppliers", tags=["suppliers"])

CanRead = Annotated[Principal, Depends(require_permission(Permission.SUPPLIER_READ))]
CanCreate = Annotated[Principal, Depends(require_permission(Permission.SUPPLIER_CREATE))]
CanUpdate = Annotated[Principal, Depends(require_permission(*SUPPLIER_UPDATE_GRANTS))]
CanDelete = Annotated[Principal, Depends(require_permission(Permission.SUPPLIER_DELETE))]


@router.get("", response_model=PageResponse[SupplierRead])
def list_suppliers(
    principal: CanRead,
    services: ServicesDep,
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    name: str | None = Query(None, max_length=255),
    category: Category | None = None,
    risk_level: RiskLevel | None = Query(None, alias="riskLevel"),
    supplier_status: SupplierStatus | None = Query(None, alias="status"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc|ASC|DESC)$"),
) -> PageResponse[SupplierRead]:
    """List the organisation's suppliers with filters, sorting and pagination."""
    filters = SupplierFilters(
        name=name,
        category=category.value if category else None,
        risk_level=risk_level.value if risk_level else None,
        status=supplier_status.value if supplier_status else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = services.suppliers.list_suppliers(principal, filters, page, limit)
    return PageResponse[SupplierRead].from_page(result, SupplierRead)


@router.post("", response_model=DataResponse[SupplierRead], status_code=status.HTTP_201_CREATED)
def create_supplier(
    body: SupplierCreate,
    principal: CanCreate,
    services: ServicesDep,
    ip_address: ClientIP,
) -> DataResponse[SupplierRead]:
    """Create a supplier and queue its first AI analysis."""
    supplier = services.suppliers.create(principal, body.model_dump(), ip_address)
    return DataResponse[SupplierRead](data=SupplierRead.model_validate(supplier))


@router.get("/{supplier_id}", response_model=DataResponse[SupplierRead])
def get_supplier(supplier_id: str, principal: CanRead, services: ServicesDep) -> DataResponse[SupplierRead]:
    supplier = services.suppliers.get(principal, supplier_id)
    return DataResponse[SupplierRead](data=SupplierRead.model_validate(supplier))


@router.api_route("/{supplier_id}", methods=["PUT", "PATCH"], response_model=DataResponse[SupplierRead])
def update_supplier(
    supplier_id: str,
    body: SupplierUpdate,
    principal: CanUpdate,
    services: ServicesDep,
    ip_address: ClientIP,
) -> DataResponse[SupplierRead]:
    """Update the fields the caller is allowed to change.

    Full editors may change everything. Risk-level and notes grantees may
    change only those fields; other submitted fields are ignored.
    """
    supplier = services.suppliers.update(principal, supplier_id, body.submitted(), ip_address)
    return DataResponse[SupplierRead](data=SupplierRead.model_validate(supplier))


@router.delete("/{supplier_id}", response_model=MessageResponse)
def delete_supplier(
    supplier_id: str,
    principal: CanDelete,
    services: ServicesDep,
    ip_address: ClientIP,
) -> MessageResponse:
    services.suppliers.delete(principal, supplier_id, ip_address)
    return MessageResponse(message="Supplier deleted successfully")
