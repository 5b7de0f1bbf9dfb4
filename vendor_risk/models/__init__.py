"""Database models for the Vendor Risk service."""

from vendor_risk.models.base import Base
from vendor_risk.models.organisation import Organisation
from vendor_risk.models.user import User
from vendor_risk.models.supplier import AiStatus, Category, RiskLevel, Supplier, SupplierStatus
from vendor_risk.models.audit_log import AuditAction, AuditLog, EntityType

__all__ = [
    "Base",
    "Organisation",
    "User",
    "Supplier",
    "Category",
    "RiskLevel",
    "SupplierStatus",
    "AiStatus",
    "AuditLog",
    "AuditAction",
    "EntityType",
]
