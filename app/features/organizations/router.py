"""
Organization onboarding and management endpoints.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, status

from app.config import settings
from app.core.rate_limit import rate_limit
from app.features.auth.dependencies import CurrentIdentity, IdentityClient, OptionalIdentity
from app.features.organizations.dependencies import OrganizationServiceDep
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.organization import (
    OrganizationCreate,
    OrganizationPublic,
    OrganizationRead,
    OrganizationUpdate,
    OrgnameAvailability,
    Phase1Response,
    SetOrgnameRequest,
    SubscriptionStatusResponse,
    VerifyEmailRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post(
    "/phase1",
    response_model=Phase1Response,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("onboarding", by="user"))],
)
async def register_organization(
    data: OrganizationCreate,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
    identity_client: IdentityClient,
) -> Phase1Response:
    """
    Phase 1: register company information.

    Creates the organization in ``pending_verification`` and issues an
    email verification token valid for 24 hours.
    """
    owner_email = identity.email
    if owner_email is None:
        try:
            owner_email = await identity_client.fetch_primary_email(identity.user_id)
        except httpx.HTTPError as e:
            # The owner email is informational; registration proceeds without it
            logger.warning(f"Could not fetch owner email for {identity.user_id}: {e}")

    organization, token = await service.register(data, identity.user_id, owner_email)

    return Phase1Response(
        organization=OrganizationRead.model_validate(organization),
        message="Organization registered. Please verify your company email.",
        verification_token=None if settings.is_production else token,
    )


@router.post("/verify-email", response_model=OrganizationRead)
async def verify_email(
    data: VerifyEmailRequest,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    """Phase 2: consume the email verification token."""
    organization = await service.verify_email(data.organization_id, data.verification_token)
    return OrganizationRead.model_validate(organization)


@router.post(
    "/set-orgname",
    response_model=OrganizationRead,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Orgname already taken"},
    },
)
async def set_orgname(
    data: SetOrgnameRequest,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    """
    Phase 3: claim the organization's subdomain and activate it.

    Returns 409 when the orgname is taken, including when a concurrent
    request claims it first.
    """
    organization = await service.set_orgname(data.organization_id, data.orgname, identity.user_id)
    return OrganizationRead.model_validate(organization)


@router.get(
    "/check-orgname/{orgname}",
    response_model=OrgnameAvailability,
    dependencies=[Depends(rate_limit("orgname_check"))],
)
async def check_orgname(
    orgname: str,
    service: OrganizationServiceDep,
) -> OrgnameAvailability:
    """Check whether an orgname is valid and still available."""
    return await service.check_availability(orgname)


@router.get("/my-organizations", response_model=list[OrganizationRead])
async def list_my_organizations(
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> list[OrganizationRead]:
    organizations = await service.list_for_owner(identity.user_id)
    return [OrganizationRead.model_validate(org) for org in organizations]


@router.get("/by-orgname/{orgname}", response_model=None)
async def get_organization_by_orgname(
    orgname: str,
    identity: OptionalIdentity,
    service: OrganizationServiceDep,
) -> OrganizationRead | OrganizationPublic:
    """
    Look up an organization by orgname.

    The owner receives the full view; everyone else the public view.
    """
    organization = await service.get_by_orgname(orgname)
    if identity is not None and identity.user_id == organization.owner_id:
        return OrganizationRead.model_validate(organization)
    return OrganizationPublic.model_validate(organization)


@router.get("/subscription-status/{orgname}", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    orgname: str,
    service: OrganizationServiceDep,
) -> SubscriptionStatusResponse:
    return await service.subscription_status(orgname)


@router.get("/{organization_id}", response_model=OrganizationRead)
async def get_organization(
    organization_id: str,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    organization = await service.get_owned(organization_id, identity.user_id)
    return OrganizationRead.model_validate(organization)


@router.put("/{organization_id}", response_model=OrganizationRead)
async def update_organization(
    organization_id: str,
    data: OrganizationUpdate,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    """Update company details or landing-page metadata (owner only)."""
    organization = await service.update(organization_id, identity.user_id, data)
    return OrganizationRead.model_validate(organization)


@router.delete("/{organization_id}", response_model=MessageResponse)
async def delete_organization(
    organization_id: str,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> MessageResponse:
    await service.delete(organization_id, identity.user_id)
    return MessageResponse(message="Organization deleted successfully")


@router.post("/{organization_id}/suspend", response_model=OrganizationRead)
async def suspend_organization(
    organization_id: str,
    identity: CurrentIdentity,
    service: OrganizationServiceDep,
) -> OrganizationRead:
    organization = await service.suspend(organization_id, identity.user_id)
    return OrganizationRead.model_validate(organization)
