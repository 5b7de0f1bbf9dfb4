"""Development seed data: two tenants, one user per role, a few suppliers.

Usage::

    python -m vendor_risk.seed

All seeded users share the password ``password123``.
"""

from __future__ import annotations

from datetime import date

import structlog
from sqlalchemy import select

from vendor_risk.config import get_settings
from vendor_risk.models import Organisation, Supplier, User
from vendor_risk.services.access import AccessDecisionService
from vendor_risk.services.auth import hash_password
from vendor_risk.services.organisations import OrganisationService
from vendor_risk.services.permissions import Role
from vendor_risk.store import DataStore

logger = structlog.get_logger()

SEED_PASSWORD = "password123"

ORGANISATIONS = {
    "Acme Corp": {
        "owner": ("alice@acme.com", "Alice", "Martin"),
        "members": [("bob@acme.com", "Bob", "Dupont", Role.ADMIN)],
        "suppliers": [
            ("CloudHost Pro", "cloudhost.io", "Infrastructure", "High", "Active", "Primary hosting provider"),
            ("DataSync", "datasync.com", "SaaS", "Medium", "Active", "CRM synchronisation"),
            ("SecureAudit Partners", "secureaudit.com", "Consulting", "Low", "Under Review", None),
            ("LegacyMail", "legacymail.net", "Other", "Critical", "Active", "Runs legacy end-of-life mail servers"),
        ],
    },
    "Globex Industries": {
        "owner": ("grace@globex.com", "Grace", "Hopper"),
        "members": [
            ("charlie@globex.com", "Charlie", "Bernard", Role.ANALYST),
            ("diana@globex.com", "Diana", "Leroy", Role.AUDITOR),
        ],
        "suppliers": [
            ("PayStream", "paystream.com", "SaaS", "High", "Active", "Payment processing with third-party SDKs"),
            ("NetOps Ltd", "netops.co.uk", "Other", "Critical", "Inactive", "Terminated contract due to security incident"),
        ],
    },
}


def seed_if_empty(store: DataStore) -> dict:
    """Idempotent seed: does nothing when any organisation already exists."""
    with store.transaction() as session:
        existing = session.scalar(select(Organisation).limit(1))
    if existing is not None:
        return {"seeded": False}

    organisations = OrganisationService(store, AccessDecisionService())
    created: dict[str, str] = {}
    password_hash = hash_password(SEED_PASSWORD)

    for name, layout in ORGANISATIONS.items():
        email, first_name, last_name = layout["owner"]
        organisation, _ = organisations.create_with_owner(
            name,
            owner_email=email,
            owner_password=SEED_PASSWORD,
            owner_first_name=first_name,
            owner_last_name=last_name,
        )
        created[name] = organisation.id

        with store.transaction(organisation.id) as session:
            for member_email, member_first, member_last, role in layout["members"]:
                session.add(
                    User(
                        organization_id=organisation.id,
                        email=member_email,
                        first_name=member_first,
                        last_name=member_last,
                        password_hash=password_hash,
                        role=role.value,
                        is_active=True,
                    )
                )
            for supplier_name, domain, category, risk_level, status, notes in layout["suppliers"]:
                session.add(
                    Supplier(
                        organization_id=organisation.id,
                        name=supplier_name,
                        domain=domain,
                        category=category,
                        risk_level=risk_level,
                        status=status,
                        notes=notes,
                        contract_end_date=date(2027, 12, 31),
                    )
                )

    logger.info("seed_complete", organisations=list(created))
    return {"seeded": True, "organisations": created}


if __name__ == "__main__":
    settings = get_settings()
    data_store = DataStore(settings.database_url)
    if settings.auto_create_schema:
        data_store.create_schema()
    print(seed_if_empty(data_store))
