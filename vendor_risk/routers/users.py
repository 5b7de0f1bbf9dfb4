"""User management endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from vendor_risk.deps import ClientIP, ServicesDep, require_permission
from vendor_risk.schemas.common import DataResponse, MessageResponse, PageResponse
from vendor_risk.schemas.user import UserCreate, UserRead, UserUpdate
from vendor_risk.services.access import Principal
from vendor_risk.services.permissions import Permission
from vendor_risk.services.users import MANAGE_USERS_MESSAGE

router = APIRouter(prefix="/api/users", tags=["users"])

CanManage = Annotated[
    Principal,
    Depends(require_permission(Permission.USER_MANAGE, message=MANAGE_USERS_MESSAGE)),
]


@router.get("", response_model=PageResponse[UserRead])
def list_users(
    principal: CanManage,
    services: ServicesDep,
    page: int = Query(1),
    limit: int = Query(20),
) -> PageResponse[UserRead]:
    result = services.users.list_users(principal, page, limit)
    return PageResponse[UserRead].from_page(result, UserRead)


@router.post("", response_model=DataResponse[UserRead], status_code=status.HTTP_201_CREATED)
def create_user(body: UserCreate, principal: CanManage, services: ServicesDep, ip_address: ClientIP) -> DataResponse[UserRead]:
    user = services.users.create(principal, body.model_dump(), ip_address)
    return DataResponse[UserRead](data=UserRead.model_validate(user))


@router.get("/{user_id}", response_model=DataResponse[UserRead])
def get_user(user_id: str, principal: CanManage, services: ServicesDep) -> DataResponse[UserRead]:
    user = services.users.get(principal, user_id)
    return DataResponse[UserRead](data=UserRead.model_validate(user))


@router.api_route("/{user_id}", methods=["PUT", "PATCH"], response_model=DataResponse[UserRead])
def update_user(
    user_id: str,
    body: UserUpdate,
    principal: CanManage,
    services: ServicesDep,
    ip_address: ClientIP,
) -> DataResponse[UserRead]:
    user = services.users.update(principal, user_id, body.submitted(), ip_address)
    return DataResponse[UserRead](data=UserRead.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: str, principal: CanManage, services: ServicesDep, ip_address: ClientIP) -> MessageResponse:
    """Remove a member. Self-deletion and removing the last Owner are rejected."""
    services.users.delete(principal, user_id, ip_address)
    return MessageResponse(message="User removed from organisation")
