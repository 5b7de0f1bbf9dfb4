"""Organisation lifecycle: bootstrap and cascade teardown."""

from __future__ import annotations

import structlog
from sqlalchemy import delete

from vendor_risk.models import AuditLog, Organisation, Supplier, User
from vendor_risk.services.access import AccessDecisionService, Principal
from vendor_risk.services.auth import hash_password
from vendor_risk.services.permissions import Permission, Role
from vendor_risk.services.tenant_scope import scoped_delete
from vendor_risk.store import AUDIT_PURGE_FLAG, DataStore

logger = structlog.get_logger()

# Dependency order: audit logs, then users, then suppliers, then the tenant row.
TEARDOWN_ORDER = (AuditLog, User, Supplier)


class OrganisationService:
    def __init__(self, store: DataStore, access: AccessDecisionService) -> None:
        self.store = store
        self.access = access

    def create_with_owner(
        self,
        name: str,
        *,
        owner_email: str,
        owner_password: str,
        owner_first_name: str,
        owner_last_name: str,
    ) -> tuple[Organisation, User]:
        """Create a tenant together with its first Owner."""
        with self.store.transaction() as session:
            organisation = Organisation(name=name)
            session.add(organisation)
            session.flush()
            owner = User(
                organization_id=organisation.id,
                email=owner_email.strip().lower(),
                first_name=owner_first_name,
                last_name=owner_last_name,
                password_hash=hash_password(owner_password),
                role=Role.OWNER.value,
                is_active=True,
            )
            session.add(owner)
        logger.info("organisation_created", organization_id=organisation.id)
        return organisation, owner

    def delete_organisation(self, principal: Principal) -> dict[str, int]:
        """Remove the caller's organisation and everything it owns, atomically.

        Not audited: the audit trail is part of what is removed.
        """
        self.access.require(principal, Permission.ORG_DELETE, message="Only the Owner can delete the organisation")
        organization_id = principal.organization_id

        counts: dict[str, int] = {}
        with self.store.transaction(organization_id) as session:
            session.info[AUDIT_PURGE_FLAG] = True
            try:
                for model in TEARDOWN_ORDER:
                    result = session.execute(
                        scoped_delete(model, organization_id).execution_options(synchronize_session=False)
                    )
                    counts[model.__tablename__] = result.rowcount
                session.execute(delete(Organisation).where(Organisation.id == organization_id))
            finally:
                session.info.pop(AUDIT_PURGE_FLAG, None)

        logger.info("organisation_deleted", organization_id=organization_id, **counts)
        return counts
