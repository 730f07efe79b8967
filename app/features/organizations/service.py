"""
Organization onboarding and management business logic.

Onboarding is three strictly ordered phases:

1. register      -> pending_verification  (company info, verification token)
2. verify_email  -> pending_orgname       (token consumed, one-time)
3. set_orgname   -> active                (subdomain label claimed)

Every precondition failure raises an ``AppException`` subclass that
propagates untouched to the boundary translator. Nothing is retried.
"""

from datetime import timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
)
from app.core.metrics import (
    emails_verified_total,
    organizations_registered_total,
    orgname_claims_total,
)
from app.core.orgname import is_reserved, normalize_orgname, orgname_format_error
from app.core.orgname_cache import OrgnameCache
from app.core.security import generate_verification_token, tokens_match
from app.features.organizations.repository import OrganizationRepository
from app.models.base import as_utc, utcnow
from app.models.organization import Organization, OrganizationStatus, can_transition
from app.schemas.organization import (
    OrganizationCreate,
    OrganizationUpdate,
    OrgnameAvailability,
    SubscriptionStatusResponse,
)

logger = structlog.get_logger(__name__)


class OrganizationService:
    """Onboarding phase controller plus owner-scoped CRUD."""

    def __init__(self, session: AsyncSession, cache: OrgnameCache) -> None:
        self.session = session
        self.repository = OrganizationRepository(session)
        self.cache = cache

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    async def register(
        self,
        data: OrganizationCreate,
        owner_id: str,
        owner_email: str | None,
    ) -> tuple[Organization, str]:
        """
        Register a company and issue its email verification token.

        Returns:
            The created organization and the raw verification token

        Raises:
            LimitExceededError: owner already has the maximum number of organizations
            ConflictError: company email already registered
        """
        existing = await self.repository.count_by_owner(owner_id)
        if existing >= settings.max_organizations_per_owner:
            raise LimitExceededError("Maximum number of organizations reached")

        company_email = data.company_email.lower()
        if await self.repository.company_email_exists(company_email):
            raise ConflictError("An organization with this email already exists")

        token = generate_verification_token()
        organization = await self.repository.create(
            company_name=data.company_name,
            company_email=company_email,
            company_address=data.company_address.model_dump(),
            owner_id=owner_id,
            owner_email=owner_email.lower() if owner_email else None,
            status=OrganizationStatus.PENDING_VERIFICATION.value,
            is_email_verified=False,
            verification_token=token,
            verification_token_expiry=utcnow() + timedelta(hours=settings.verification_token_ttl_hours),
            profile={},
        )
        await self.repository.commit("An organization with this email already exists")

        organizations_registered_total.inc()
        logger.info(
            "organization_registered",
            organization_id=organization.id,
            owner_id=owner_id,
        )
        # Email delivery is external; the route exposes the token outside production.
        return organization, token

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    async def verify_email(self, organization_id: str, token: str) -> Organization:
        """
        Consume a verification token.

        Checks, in order: organization exists, token matches, token not expired.
        """
        organization = await self.repository.get(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")

        if not tokens_match(organization.verification_token, token):
            emails_verified_total.labels(outcome="invalid").inc()
            raise BadRequestError("Invalid verification token")

        expiry = as_utc(organization.verification_token_expiry)
        if expiry is not None and expiry < utcnow():
            emails_verified_total.labels(outcome="expired").inc()
            raise BadRequestError("Verification token expired")

        if not await self.repository.mark_email_verified(organization_id, token):
            # Consumed by a concurrent request between the read and the write
            emails_verified_total.labels(outcome="invalid").inc()
            raise BadRequestError("Invalid verification token")

        await self.session.commit()

        emails_verified_total.labels(outcome="verified").inc()
        logger.info("email_verified", organization_id=organization_id)
        return await self._reload(organization_id)

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    async def check_availability(self, orgname: str) -> OrgnameAvailability:
        """
        Validate an orgname and report whether it can be claimed.

        Read-only apart from populating the availability cache.
        """
        name = normalize_orgname(orgname)

        error = orgname_format_error(name)
        if error:
            return OrgnameAvailability(available=False, message=error)

        if is_reserved(name):
            return OrgnameAvailability(available=False, message="This orgname is reserved")

        available = await self._is_available(name)
        return OrgnameAvailability(
            available=available,
            message="Orgname is available" if available else "Orgname is already taken",
        )

    async def set_orgname(self, organization_id: str, orgname: str, caller_id: str) -> Organization:
        """
        Claim an orgname for a verified organization and activate it.

        The availability pre-checks only fail fast; the unique index on
        ``organizations.orgname`` arbitrates concurrent claims.
        """
        name = normalize_orgname(orgname)

        organization = await self.repository.get(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")

        if organization.owner_id != caller_id:
            raise ForbiddenError("Not authorized to configure this organization")

        self._check_claim_preconditions(organization)

        error = orgname_format_error(name)
        if error:
            orgname_claims_total.labels(outcome="rejected").inc()
            raise BadRequestError(error)

        if is_reserved(name):
            orgname_claims_total.labels(outcome="rejected").inc()
            raise BadRequestError("This orgname is reserved")

        # Cache first, then the store right before the write
        if not await self._is_available(name) or await self.repository.orgname_exists(name):
            self.cache.set(name, True)
            orgname_claims_total.labels(outcome="conflict").inc()
            raise ConflictError("Orgname is not available")

        try:
            claimed = await self.repository.claim_orgname(organization_id, name)
            if claimed:
                await self.repository.commit("Orgname is already taken")
        except ConflictError:
            self.cache.set(name, True)
            orgname_claims_total.labels(outcome="conflict").inc()
            logger.warning("orgname_claim_conflict", organization_id=organization_id, orgname=name)
            raise

        if not claimed:
            # State moved underneath us; report the precondition that now fails
            await self.session.rollback()
            self._check_claim_preconditions(await self._reload(organization_id))
            raise BadRequestError("Failed to set orgname")

        self.cache.set(name, True)
        orgname_claims_total.labels(outcome="claimed").inc()
        logger.info("orgname_claimed", organization_id=organization_id, orgname=name)
        return await self._reload(organization_id)

    @staticmethod
    def _check_claim_preconditions(organization: Organization) -> None:
        if not organization.is_email_verified:
            raise BadRequestError("Email must be verified before setting orgname")

        if organization.orgname:
            raise BadRequestError("Orgname already set")

    async def _is_available(self, orgname: str) -> bool:
        cached = self.cache.get(orgname)
        if cached is not None:
            logger.debug("orgname_availability_cached", orgname=orgname, exists=cached)
            return not cached

        exists = await self.repository.orgname_exists(orgname)
        self.cache.set(orgname, exists)
        return not exists

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, organization_id: str) -> Organization:
        organization = await self.repository.get(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def get_owned(self, organization_id: str, owner_id: str) -> Organization:
        """Fetch an organization and verify the caller owns it."""
        organization = await self.get_by_id(organization_id)
        if organization.owner_id != owner_id:
            logger.warning(
                "organization_access_denied",
                organization_id=organization_id,
                caller_id=owner_id,
            )
            raise ForbiddenError("Not authorized to access this organization")
        return organization

    async def get_by_orgname(self, orgname: str) -> Organization:
        organization = await self.repository.get_by_orgname(normalize_orgname(orgname))
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def list_for_owner(self, owner_id: str) -> list[Organization]:
        return await self.repository.list_by_owner(owner_id)

    async def subscription_status(self, orgname: str) -> SubscriptionStatusResponse:
        """Unknown orgnames report no active subscription."""
        name = normalize_orgname(orgname)
        organization = await self.repository.get_by_orgname(name)
        return SubscriptionStatusResponse(
            orgname=name,
            has_active_subscription=bool(organization and organization.has_active_subscription),
        )

    # ------------------------------------------------------------------
    # Owner writes
    # ------------------------------------------------------------------

    async def update(self, organization_id: str, owner_id: str, data: OrganizationUpdate) -> Organization:
        organization = await self.get_owned(organization_id, owner_id)

        changes = data.model_dump(exclude_unset=True, mode="json")
        if "company_name" in changes:
            organization.company_name = changes["company_name"]
        if "company_email" in changes:
            organization.company_email = changes["company_email"].lower()
        if "company_address" in changes:
            organization.company_address = changes["company_address"]
        if "metadata" in changes:
            organization.profile = {**organization.profile, **(changes["metadata"] or {})}

        await self.repository.commit("An organization with this email already exists")

        logger.info("organization_updated", organization_id=organization_id, fields=sorted(changes))
        return await self._reload(organization_id)

    async def suspend(self, organization_id: str, owner_id: str) -> Organization:
        organization = await self.get_owned(organization_id, owner_id)

        if not can_transition(organization.status, OrganizationStatus.SUSPENDED):
            raise BadRequestError(f"Cannot suspend an organization in status '{organization.status}'")

        if not await self.repository.transition_status(
            organization_id, OrganizationStatus.ACTIVE, OrganizationStatus.SUSPENDED
        ):
            raise BadRequestError("Organization status changed, please retry")

        await self.session.commit()
        logger.info("organization_suspended", organization_id=organization_id)
        return await self._reload(organization_id)

    async def delete(self, organization_id: str, owner_id: str) -> None:
        organization = await self.get_owned(organization_id, owner_id)
        orgname = organization.orgname

        await self.repository.delete(organization_id)
        await self.session.commit()

        if orgname:
            self.cache.invalidate(orgname)

        logger.info("organization_deleted", organization_id=organization_id, owner_id=owner_id)

    async def _reload(self, organization_id: str) -> Organization:
        organization = await self.repository.get(organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization
