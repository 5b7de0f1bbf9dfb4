"""Organisation endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from vendor_risk.deps import ServicesDep, require_permission
from vendor_risk.schemas.common import DataResponse
from vendor_risk.schemas.organisation import OrganisationDeletion
from vendor_risk.services.access import Principal
from vendor_risk.services.permissions import Permission

router = APIRouter(prefix="/api/organisations", tags=["organisations"])

CanDeleteOrg = Annotated[
    Principal,
    Depends(require_permission(Permission.ORG_DELETE, message="Only the Owner can delete the organisation")),
]


@router.delete("/current", response_model=DataResponse[OrganisationDeletion])
def delete_current_organisation(principal: CanDeleteOrg, services: ServicesDep) -> DataResponse[OrganisationDeletion]:
    """Irreversibly delete the caller's organisation and all of its data."""
    counts = services.organisations.delete_organisation(principal)
    return DataResponse[OrganisationDeletion](
        data=OrganisationDeletion(
            organization_id=principal.organization_id,
            audit_logs=counts.get("audit_logs", 0),
            users=counts.get("users", 0),
            suppliers=counts.get("suppliers", 0),
        ),
        message="Organisation deleted",
    )
