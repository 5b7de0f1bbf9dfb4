"""Access decisions: permission map + tenant guard, per request and per field.

Supplier update is the multi-grant case. A principal may hold a full update
grant (``supplier:update``), a risk-level grant (``risk_level:update``) or a
notes grant (``notes:add``). Each submitted field is then resolved through
``SUPPLIER_FIELD_GATES``:

=================  ==============  ===========================  ==========
field gate         full update     holds the gate permission    otherwise
=================  ==============  ===========================  ==========
None (structural)  apply           -                            ignore
permission         apply           apply                        reject
=================  ==============  ===========================  ==========

Ignored fields are dropped silently. Rejected fields fail the whole request.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from vendor_risk.errors import NotFound, PermissionDenied
from vendor_risk.services.permissions import Permission, Role, has_permission


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as resolved by the authentication boundary."""

    user_id: str
    email: str
    role: Role | None
    organization_id: str


class FieldAction(str, Enum):
    APPLY = "apply"
    IGNORE = "ignore"
    REJECT = "reject"


SUPPLIER_UPDATE_GRANTS = (
    Permission.SUPPLIER_UPDATE,
    Permission.RISK_LEVEL_UPDATE,
    Permission.NOTES_ADD,
)

SUPPLIER_FIELD_GATES: Mapping[str, Permission | None] = MappingProxyType(
    {
        "name": None,
        "domain": None,
        "category": None,
        "status": None,
        "contract_end_date": None,
        "risk_level": Permission.RISK_LEVEL_UPDATE,
        "notes": Permission.NOTES_ADD,
    }
)

# API-facing names, used in error messages.
FIELD_LABELS = {"risk_level": "riskLevel", "contract_end_date": "contractEndDate"}


@dataclass(frozen=True)
class SupplierUpdateDecision:
    full_update: bool
    risk_level: bool
    notes: bool
    fields: Mapping[str, FieldAction]

    @property
    def allowed(self) -> bool:
        return self.full_update or self.risk_level or self.notes

    def _with(self, action: FieldAction) -> list[str]:
        return [name for name, value in self.fields.items() if value is action]

    @property
    def applied(self) -> list[str]:
        return self._with(FieldAction.APPLY)

    @property
    def ignored(self) -> list[str]:
        return self._with(FieldAction.IGNORE)

    @property
    def rejected(self) -> list[str]:
        return self._with(FieldAction.REJECT)

    def apply_to(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Keep only the values this decision applies."""
        return {name: values[name] for name in self.applied if name in values}


def decide_supplier_update(role: Role | str | None, fields: Iterable[str]) -> SupplierUpdateDecision:
    """Resolve each submitted field against the three update grants."""
    full_update = has_permission(role, Permission.SUPPLIER_UPDATE)
    grants = {
        Permission.RISK_LEVEL_UPDATE: has_permission(role, Permission.RISK_LEVEL_UPDATE),
        Permission.NOTES_ADD: has_permission(role, Permission.NOTES_ADD),
    }

    actions: dict[str, FieldAction] = {}
    for name in fields:
        if name not in SUPPLIER_FIELD_GATES:
            raise KeyError(f"Unknown supplier field: {name}")
        gate = SUPPLIER_FIELD_GATES[name]
        if full_update:
            actions[name] = FieldAction.APPLY
        elif gate is None:
            actions[name] = FieldAction.IGNORE
        elif grants[gate]:
            actions[name] = FieldAction.APPLY
        else:
            actions[name] = FieldAction.REJECT

    return SupplierUpdateDecision(
        full_update=full_update,
        risk_level=grants[Permission.RISK_LEVEL_UPDATE],
        notes=grants[Permission.NOTES_ADD],
        fields=MappingProxyType(actions),
    )


class AccessDecisionService:
    """Single authorization entry point for routes and services."""

    def require(
        self,
        principal: Principal,
        permission: Permission,
        resource_organization_id: str | None = None,
        message: str | None = None,
        not_found_message: str = "Resource not found",
    ) -> None:
        """Raise NotFound on tenant mismatch, PermissionDenied on a missing grant."""
        if resource_organization_id is not None and resource_organization_id != principal.organization_id:
            raise NotFound(not_found_message)
        if not has_permission(principal.role, permission):
            raise PermissionDenied(message or f"Forbidden: '{permission.value}' permission required")

    def require_any(self, principal: Principal, permissions: Iterable[Permission], message: str | None = None) -> None:
        """Route-level gate: at least one of ``permissions`` must be held."""
        permissions = tuple(permissions)
        if any(has_permission(principal.role, p) for p in permissions):
            return
        joined = ", ".join(p.value for p in permissions)
        raise PermissionDenied(message or f"Forbidden: one of [{joined}] required")

    def authorize_supplier_update(
        self,
        principal: Principal,
        resource_organization_id: str,
        fields: Iterable[str],
    ) -> SupplierUpdateDecision:
        """Per-field decision for a supplier update, raising on denial."""
        if resource_organization_id != principal.organization_id:
            raise NotFound("Supplier not found")

        decision = decide_supplier_update(principal.role, fields)
        if not decision.allowed:
            self.require_any(principal, SUPPLIER_UPDATE_GRANTS)

        if decision.rejected:
            name = decision.rejected[0]
            gate = SUPPLIER_FIELD_GATES[name]
            raise PermissionDenied(
                f"Forbidden: '{gate.value}' permission required to change {FIELD_LABELS.get(name, name)}"
            )
        return decision
