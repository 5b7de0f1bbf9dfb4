"""Authentication: password hashing and bearer tokens.

Tokens are HS256 JWTs carrying ``userId``, ``email``, ``role`` and
``organizationId``. The request dependency re-loads the user on every call,
so deactivated or deleted users lose access immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import structlog
from jose import JWTError, jwt
from sqlalchemy import select
from werkzeug.security import check_password_hash, generate_password_hash

from vendor_risk.config import Settings
from vendor_risk.errors import AuthenticationMissing
from vendor_risk.models import Organisation, User
from vendor_risk.models.base import utcnow
from vendor_risk.services.access import Principal
from vendor_risk.services.permissions import parse_role
from vendor_risk.store import DataStore

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int
    user: User
    organization: Organisation


class AuthService:
    def __init__(self, store: DataStore, settings: Settings) -> None:
        self.store = store
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.expire_minutes = settings.access_token_expire_minutes

    def create_access_token(self, user: User) -> str:
        expires = utcnow() + timedelta(minutes=self.expire_minutes)
        claims: dict[str, Any] = {
            "sub": user.id,
            "userId": user.id,
            "email": user.email,
            "role": user.role,
            "organizationId": user.organization_id,
            "exp": expires,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise AuthenticationMissing("Invalid or expired token") from exc
        if not claims.get("userId") or not claims.get("organizationId"):
            raise AuthenticationMissing("Invalid or expired token")
        return claims

    def authenticate(self, email: str, password: str) -> IssuedToken:
        """Exchange credentials for a bearer token."""
        email = email.strip().lower()
        with self.store.transaction() as session:
            row = session.execute(
                select(User, Organisation)
                .join(Organisation, Organisation.id == User.organization_id)
                .where(User.email == email)
                .where(User.is_active.is_(True))
                .order_by(User.created_at)
            ).first()
        if row is None or not verify_password(password, row.User.password_hash):
            logger.info("login_failed", email=email)
            raise AuthenticationMissing(INVALID_CREDENTIALS)

        user, organization = row.User, row.Organisation
        logger.info("login_succeeded", user_id=user.id, organization_id=user.organization_id)
        return IssuedToken(
            token=self.create_access_token(user),
            expires_in=self.expire_minutes * 60,
            user=user,
            organization=organization,
        )

    def resolve_principal(self, token: str) -> Principal:
        """Token -> Principal, using the stored user as the source of truth."""
        claims = self.decode_access_token(token)
        with self.store.transaction() as session:
            user = session.get(User, claims["userId"])
        if user is None or not user.is_active or user.organization_id != claims["organizationId"]:
            raise AuthenticationMissing("User no longer exists or is inactive")
        return Principal(
            user_id=user.id,
            email=user.email,
            role=parse_role(user.role),
            organization_id=user.organization_id,
        )

    def load_profile(self, principal: Principal) -> tuple[User, Organisation]:
        with self.store.transaction() as session:
            user = session.get(User, principal.user_id)
            organization = session.get(Organisation, principal.organization_id)
        if user is None or organization is None:
            raise AuthenticationMissing("User no longer exists or is inactive")
        return user, organization
