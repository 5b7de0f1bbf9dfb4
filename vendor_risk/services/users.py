"""Organisation membership management.

Every organisation keeps at least one active Owner: the last one cannot be
deleted, demoted or deactivated, and nobody can delete their own account.
"""

from __future__ import annotations

from typing import Any, Mapping

import structlog
from sqlalchemy import Select, func
from sqlalchemy.orm import Session

from vendor_risk.errors import InvariantViolation
from vendor_risk.models import AuditAction, EntityType, User
from vendor_risk.schemas.user import UserRead
from vendor_risk.services.access import AccessDecisionService, Principal
from vendor_risk.services.audit import AuditRecorder
from vendor_risk.services.auth import hash_password
from vendor_risk.services.pagination import Page, paginate
from vendor_risk.services.permissions import Permission, Role
from vendor_risk.services.tenant_scope import ensure_tenant, scoped_delete, scoped_select
from vendor_risk.store import DataStore

logger = structlog.get_logger()

MANAGE_USERS_MESSAGE = "You do not have permission to manage users"
EMAIL_TAKEN_MESSAGE = "A user with this email already exists in your organisation"


def user_snapshot(user: User) -> dict[str, Any]:
    return UserRead.model_validate(user).model_dump(mode="json", by_alias=True)


def active_owners_for_update(organization_id: str) -> Select[tuple[str]]:
    """Ids of the active Owners of an organisation, locked until commit."""
    return (
        scoped_select(User, organization_id)
        .with_only_columns(User.id)
        .where(User.role == Role.OWNER.value)
        .where(User.is_active.is_(True))
        .order_by(User.id)
        .with_for_update()
    )


class UserService:
    def __init__(self, store: DataStore, access: AccessDecisionService, audit: AuditRecorder) -> None:
        self.store = store
        self.access = access
        self.audit = audit

    def _require_manage(self, principal: Principal) -> None:
        self.access.require(principal, Permission.USER_MANAGE, message=MANAGE_USERS_MESSAGE)

    @staticmethod
    def _load(session: Session, organization_id: str, user_id: str) -> User:
        user = session.scalar(scoped_select(User, organization_id).where(User.id == user_id))
        return ensure_tenant(user, organization_id, "User not found")

    @staticmethod
    def _email_taken(session: Session, organization_id: str, email: str, exclude_id: str | None = None) -> bool:
        statement = scoped_select(User, organization_id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            statement = statement.where(User.id != exclude_id)
        return session.scalar(statement) is not None

    def _guard_last_owner(self, session: Session, user: User, message: str) -> None:
        if user.role != Role.OWNER.value or not user.is_active:
            return
        # Locked rows reflect committed concurrent demotions and deletions.
        owner_ids = session.scalars(active_owners_for_update(user.organization_id)).all()
        if user.id in owner_ids and len(owner_ids) <= 1:
            raise InvariantViolation(message)

    def list_users(self, principal: Principal, page: int = 1, limit: int = 20) -> Page[User]:
        self._require_manage(principal)
        statement = scoped_select(User, principal.organization_id).order_by(User.created_at.asc(), User.id)
        with self.store.transaction(principal.organization_id) as session:
            return paginate(session, statement, page, limit)

    def get(self, principal: Principal, user_id: str) -> User:
        self._require_manage(principal)
        with self.store.transaction(principal.organization_id) as session:
            return self._load(session, principal.organization_id, user_id)

    def create(self, principal: Principal, values: Mapping[str, Any], ip_address: str) -> User:
        self._require_manage(principal)
        email = values["email"].strip().lower()
        with self.store.transaction(principal.organization_id) as session:
            if self._email_taken(session, principal.organization_id, email):
                raise InvariantViolation(EMAIL_TAKEN_MESSAGE)
            user = User(
                organization_id=principal.organization_id,
                email=email,
                first_name=values["first_name"],
                last_name=values["last_name"],
                password_hash=hash_password(values["password"]),
                role=Role(values["role"]).value,
                is_active=True,
            )
            session.add(user)
            session.flush()
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.CREATE,
                entity_type=EntityType.USER,
                entity_id=user.id,
                before=None,
                after=user_snapshot(user),
                ip_address=ip_address,
            )
        logger.info("user_created", user_id=user.id, organization_id=user.organization_id, role=user.role)
        return user

    def update(self, principal: Principal, user_id: str, changes: Mapping[str, Any], ip_address: str) -> User:
        self._require_manage(principal)
        with self.store.transaction(principal.organization_id) as session:
            user = self._load(session, principal.organization_id, user_id)

            if "email" in changes:
                email = changes["email"].strip().lower()
                if self._email_taken(session, principal.organization_id, email, exclude_id=user.id):
                    raise InvariantViolation(EMAIL_TAKEN_MESSAGE)
            if "role" in changes and Role(changes["role"]) is not Role.OWNER:
                self._guard_last_owner(session, user, "Cannot demote the last Owner of the organisation")
            if changes.get("is_active") is False:
                self._guard_last_owner(session, user, "Cannot deactivate the last Owner of the organisation")

            before = user_snapshot(user)
            for key, value in changes.items():
                if key == "password":
                    user.password_hash = hash_password(value)
                elif key == "email":
                    user.email = value.strip().lower()
                elif key == "role":
                    user.role = Role(value).value
                else:
                    setattr(user, key, value)
            session.flush()
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.UPDATE,
                entity_type=EntityType.USER,
                entity_id=user.id,
                before=before,
                after=user_snapshot(user),
                ip_address=ip_address,
            )
        logger.info("user_updated", user_id=user.id, fields=sorted(changes))
        return user

    def delete(self, principal: Principal, user_id: str, ip_address: str) -> None:
        self._require_manage(principal)
        if user_id == principal.user_id:
            raise InvariantViolation("You cannot delete your own account")
        with self.store.transaction(principal.organization_id) as session:
            user = self._load(session, principal.organization_id, user_id)
            self._guard_last_owner(session, user, "Cannot delete the last Owner of the organisation")
            before = user_snapshot(user)
            session.execute(
                scoped_delete(User, principal.organization_id)
                .where(User.id == user.id)
                .execution_options(synchronize_session=False)
            )
            self.audit.record(
                session,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
                action=AuditAction.DELETE,
                entity_type=EntityType.USER,
                entity_id=user_id,
                before=before,
                after=None,
                ip_address=ip_address,
            )
        logger.info("user_deleted", user_id=user_id, organization_id=principal.organization_id)
