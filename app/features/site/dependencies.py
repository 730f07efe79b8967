"""
Gates for tenant-scoped (subdomain) routes.

``SubdomainResolverMiddleware`` attaches ``request.state.organization``;
these dependencies decide whether the request may proceed.
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request

from app.core.exceptions import BadRequestError, ForbiddenError, PaymentRequiredError, UnauthorizedError
from app.core.subdomain import TenantContext
from app.features.auth.dependencies import OptionalIdentity
from app.features.auth.schemas import Identity

logger = structlog.get_logger(__name__)


def get_tenant(request: Request) -> TenantContext | None:
    return getattr(request.state, "organization", None)


async def require_active_subscription(
    tenant: Annotated[TenantContext | None, Depends(get_tenant)],
) -> TenantContext | None:
    """Block tenant requests for organizations without an active subscription."""
    if tenant is None:
        return None

    if not tenant.has_active_subscription:
        logger.info("subscription_required", orgname=tenant.orgname, organization_id=tenant.id)
        raise PaymentRequiredError(
            "This organization does not have an active subscription",
            data={"orgname": tenant.orgname, "redirect_to": "/pricing"},
        )

    return tenant


async def require_organization_owner(
    tenant: Annotated[TenantContext | None, Depends(get_tenant)],
    identity: OptionalIdentity,
) -> Identity:
    """Only the tenant's owner may pass."""
    if tenant is None:
        raise BadRequestError("This endpoint requires an organization subdomain")

    if identity is None:
        raise UnauthorizedError("Authentication required")

    if identity.user_id != tenant.owner_id:
        logger.warning("owner_gate_denied", orgname=tenant.orgname, user_id=identity.user_id)
        raise ForbiddenError("Only the organization owner can access this resource")

    return identity


ActiveTenant = Annotated[TenantContext | None, Depends(require_active_subscription)]
TenantOwner = Annotated[Identity, Depends(require_organization_owner)]
