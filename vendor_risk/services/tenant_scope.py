"""Tenant scoping for every data access against tenant-owned tables.

All reads, updates and deletes of suppliers, users and audit logs go through
the ``scoped_*`` builders so the organisation predicate is always present.
A row that exists but belongs to another tenant is reported exactly like a
missing row.
"""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import Delete, Select, Update, delete, select, update

from vendor_risk.errors import NotFound
from vendor_risk.models import AuditLog, Supplier, User
from vendor_risk.services.permissions import Permission, Role, has_permission

TENANT_MODELS = (Supplier, User, AuditLog)

T = TypeVar("T")


def _check_tenant_model(model: Any) -> None:
    if model not in TENANT_MODELS:
        raise TypeError(f"{model!r} is not a tenant-owned model")


def scoped_select(model: type[T], organization_id: str) -> Select[tuple[T]]:
    """SELECT restricted to one organisation."""
    _check_tenant_model(model)
    return select(model).where(model.organization_id == organization_id)


def scoped_update(model: type[Any], organization_id: str) -> Update:
    """UPDATE restricted to one organisation."""
    _check_tenant_model(model)
    return update(model).where(model.organization_id == organization_id)


def scoped_delete(model: type[Any], organization_id: str) -> Delete:
    """DELETE restricted to one organisation."""
    _check_tenant_model(model)
    return delete(model).where(model.organization_id == organization_id)


def can_access_resource(
    role: Role | str | None,
    caller_organization_id: str,
    resource_organization_id: str,
    permission: Permission | str,
) -> bool:
    """Permission check behind a tenant check.

    A tenant mismatch denies before the permission table is consulted.
    """
    if caller_organization_id != resource_organization_id:
        return False
    return has_permission(role, permission)


def ensure_tenant(entity: T | None, organization_id: str, message: str = "Resource not found") -> T:
    """Return ``entity`` if it belongs to ``organization_id``; otherwise NotFound."""
    if entity is None or getattr(entity, "organization_id", None) != organization_id:
        raise NotFound(message)
    return entity
