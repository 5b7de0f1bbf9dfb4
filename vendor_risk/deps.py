"""FastAPI dependencies: service lookup, authentication and route gates."""

from __future__ import annotations

from typing import Annotated, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vendor_risk.container import Services
from vendor_risk.errors import AuthenticationMissing
from vendor_risk.services.access import Principal
from vendor_risk.services.permissions import Permission

security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    services: Annotated[Services, Depends(get_services)],
) -> Principal:
    """Resolve the bearer token to the calling principal."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationMissing()
    principal = services.auth.resolve_principal(credentials.credentials)
    request.state.principal = principal
    return principal


def require_permission(*permissions: Permission, message: str | None = None) -> Callable[..., Principal]:
    """Route gate: the principal must hold at least one of ``permissions``.

    Runs before any resource is loaded, so a denial here says nothing about
    whether the resource exists.
    """

    def dependency(
        principal: Annotated[Principal, Depends(get_principal)],
        services: Annotated[Services, Depends(get_services)],
    ) -> Principal:
        services.access.require_any(principal, permissions, message)
        return principal

    return dependency


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
ServicesDep = Annotated[Services, Depends(get_services)]
ClientIP = Annotated[str, Depends(client_ip)]
