"""Authentication endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from vendor_risk.deps import CurrentPrincipal, ServicesDep
from vendor_risk.schemas.auth import AuthUser, CurrentUser, LoginRequest, LoginResult
from vendor_risk.schemas.common import DataResponse, MessageResponse
from vendor_risk.services.permissions import permissions_for

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=DataResponse[LoginResult])
def login(body: LoginRequest, services: ServicesDep) -> DataResponse[LoginResult]:
    """Exchange email and password for a bearer token."""
    issued = services.auth.authenticate(body.email, body.password)
    user = issued.user
    profile = AuthUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        organization_id=user.organization_id,
        organization_name=issued.organization.name,
        created_at=user.created_at,
    )
    return DataResponse[LoginResult](
        data=LoginResult(token=issued.token, expires_in=issued.expires_in, user=profile),
    )


@router.get("/me", response_model=DataResponse[CurrentUser])
def me(principal: CurrentPrincipal, services: ServicesDep) -> DataResponse[CurrentUser]:
    user, organization = services.auth.load_profile(principal)
    return DataResponse[CurrentUser](
        data=CurrentUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            organization_id=user.organization_id,
            organization_name=organization.name,
            created_at=user.created_at,
            permissions=sorted(p.value for p in permissions_for(principal.role)),
        )
    )


@router.post("/logout", response_model=MessageResponse)
def logout(principal: CurrentPrincipal) -> MessageResponse:
    """Tokens are stateless; the client discards its token."""
    return MessageResponse(message="Logged out successfully (discard the token client-side)")
