"""Static role -> permission capability map.

Capabilities are a flat lookup table, not a role hierarchy. The table is
built once at import time and exposed read-only.

Owner lacks ``audit:read``: audit visibility belongs to Admin
and Auditor only, independent of the role that can delete the organisation.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    ANALYST = "Analyst"
    AUDITOR = "Auditor"


class Permission(str, Enum):
    # Organisation management
    ORG_DELETE = "org:delete"

    # User management
    USER_MANAGE = "user:manage"

    # Supplier CRUD
    SUPPLIER_CREATE = "supplier:create"
    SUPPLIER_READ = "supplier:read"
    SUPPLIER_UPDATE = "supplier:update"
    SUPPLIER_DELETE = "supplier:delete"

    # Risk management
    RISK_LEVEL_UPDATE = "risk_level:update"
    RISK_POLICY_CONFIGURE = "risk_policy:configure"

    # Notes
    NOTES_ADD = "notes:add"

    # Audit trail
    AUDIT_READ = "audit:read"


ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType(
    {
        Role.OWNER: frozenset(
            {
                Permission.ORG_DELETE,
                Permission.USER_MANAGE,
                Permission.SUPPLIER_CREATE,
                Permission.SUPPLIER_READ,
                Permission.SUPPLIER_UPDATE,
                Permission.SUPPLIER_DELETE,
                Permission.RISK_LEVEL_UPDATE,
                Permission.RISK_POLICY_CONFIGURE,
                Permission.NOTES_ADD,
            }
        ),
        Role.ADMIN: frozenset(
            {
                Permission.SUPPLIER_CREATE,
                Permission.SUPPLIER_READ,
                Permission.SUPPLIER_UPDATE,
                Permission.SUPPLIER_DELETE,
                Permission.RISK_POLICY_CONFIGURE,
                Permission.AUDIT_READ,
            }
        ),
        Role.ANALYST: frozenset(
            {
                Permission.SUPPLIER_READ,
                Permission.RISK_LEVEL_UPDATE,
                Permission.NOTES_ADD,
            }
        ),
        Role.AUDITOR: frozenset(
            {
                Permission.SUPPLIER_READ,
                Permission.AUDIT_READ,
            }
        ),
    }
)

_ROLE_LOOKUP = {role.value.lower(): role for role in Role}


def parse_role(value: Role | str | None) -> Role | None:
    """Normalise a role from an external boundary.

    Case-insensitive for known names; anything unrecognised yields None,
    which holds no permissions.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    return _ROLE_LOOKUP.get(value.strip().lower())


def permissions_for(role: Role | str | None) -> frozenset[Permission]:
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def has_permission(role: Role | str | None, permission: Permission | str) -> bool:
    """True when ``role`` holds ``permission``. Unknown roles or permissions deny."""
    try:
        wanted = Permission(permission)
    except ValueError:
        return False
    return wanted in permissions_for(role)
