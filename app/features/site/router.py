"""
Tenant-scoped endpoints, served on an organization's subdomain.
"""

from fastapi import APIRouter

from app.core.exceptions import BadRequestError
from app.features.organizations.dependencies import OrganizationServiceDep
from app.features.site.dependencies import ActiveTenant, TenantOwner
from app.schemas.common import ErrorResponse
from app.schemas.organization import OrganizationPublic, OrganizationRead

router = APIRouter(prefix="/site", tags=["Site"])


@router.get(
    "",
    response_model=OrganizationPublic,
    responses={
        402: {"model": ErrorResponse, "description": "No active subscription"},
        404: {"model": ErrorResponse, "description": "Unknown subdomain"},
    },
)
async def get_site(
    tenant: ActiveTenant,
    service: OrganizationServiceDep,
) -> OrganizationPublic:
    """Public landing information for the organization behind this subdomain."""
    if tenant is None:
        raise BadRequestError("This endpoint requires an organization subdomain")

    organization = await service.get_by_id(tenant.id)
    return OrganizationPublic.model_validate(organization)


@router.get("/dashboard", response_model=OrganizationRead)
async def get_dashboard(
    owner: TenantOwner,
    tenant: ActiveTenant,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    """Owner dashboard; requires the owner's token and an active subscription."""
    organization = await service.get_owned(tenant.id, owner.user_id)
    return OrganizationRead.model_validate(organization)
