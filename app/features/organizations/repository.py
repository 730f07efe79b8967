"""
Organization persistence.

All writes that set a unique column (orgname, company_email) translate a
unique-constraint violation into ``ConflictError``: the store, not the
application pre-checks, decides who wins a concurrent claim.
"""

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.models.base import utcnow
from app.models.organization import Organization, OrganizationStatus

logger = structlog.get_logger(__name__)


class OrganizationRepository:
    """Database operations for organizations, bound to one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, organization_id: str) -> Organization | None:
        result = await self.session.execute(
            select(Organization)
            .where(Organization.id == organization_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_orgname(self, orgname: str) -> Organization | None:
        result = await self.session.execute(
            select(Organization).where(Organization.orgname == orgname)
        )
        return result.scalar_one_or_none()

    async def get_active_by_orgname(self, orgname: str) -> Organization | None:
        """Lookup used by subdomain resolution."""
        result = await self.session.execute(
            select(Organization).where(
                Organization.orgname == orgname,
                Organization.status == OrganizationStatus.ACTIVE.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_by_owner(self, owner_id: str) -> list[Organization]:
        result = await self.session.execute(
            select(Organization)
            .where(Organization.owner_id == owner_id)
            .order_by(Organization.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_by_owner(self, owner_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Organization).where(Organization.owner_id == owner_id)
        )
        return result.scalar_one()

    async def orgname_exists(self, orgname: str) -> bool:
        result = await self.session.execute(
            select(Organization.id).where(Organization.orgname == orgname).limit(1)
        )
        return result.first() is not None

    async def company_email_exists(self, company_email: str) -> bool:
        result = await self.session.execute(
            select(Organization.id).where(Organization.company_email == company_email).limit(1)
        )
        return result.first() is not None

    async def commit(self, conflict_message: str) -> None:
        """Commit, mapping unique violations to ``ConflictError``."""
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("unique_constraint_violation", error=str(e.orig))
            raise ConflictError(conflict_message)

    async def create(self, **values: Any) -> Organization:
        organization = Organization(**values)
        self.session.add(organization)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("unique_constraint_violation", error=str(e.orig))
            raise ConflictError("An organization with this email already exists")
        return organization

    async def mark_email_verified(self, organization_id: str, token: str) -> bool:
        """
        Consume the verification token.

        Conditional on the token still being stored, so a token can only
        be used once even under concurrent submissions.
        """
        result = await self.session.execute(
            update(Organization)
            .where(
                Organization.id == organization_id,
                Organization.verification_token == token,
                Organization.status == OrganizationStatus.PENDING_VERIFICATION.value,
            )
            .values(
                is_email_verified=True,
                status=OrganizationStatus.PENDING_ORGNAME.value,
                verification_token=None,
                verification_token_expiry=None,
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1

    async def claim_orgname(self, organization_id: str, orgname: str) -> bool:
        """
        Set the orgname and activate in a single conditional update.

        Returns False when the organization no longer satisfies the phase 3
        preconditions. Raises ``ConflictError`` when another organization
        holds the name (unique index).
        """
        try:
            result = await self.session.execute(
                update(Organization)
                .where(
                    Organization.id == organization_id,
                    Organization.orgname.is_(None),
                    Organization.is_email_verified.is_(True),
                    Organization.status == OrganizationStatus.PENDING_ORGNAME.value,
                )
                .values(
                    orgname=orgname,
                    status=OrganizationStatus.ACTIVE.value,
                    updated_at=utcnow(),
                )
            )
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("orgname_unique_violation", orgname=orgname, error=str(e.orig))
            raise ConflictError("Orgname is already taken")
        return result.rowcount == 1

    async def transition_status(
        self,
        organization_id: str,
        current: OrganizationStatus,
        target: OrganizationStatus,
    ) -> bool:
        result = await self.session.execute(
            update(Organization)
            .where(
                Organization.id == organization_id,
                Organization.status == current.value,
            )
            .values(status=target.value, updated_at=utcnow())
        )
        return result.rowcount == 1

    async def update_subscription(
        self,
        organization_id: str,
        *,
        status: str,
        plan_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        payment_id: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {"subscription_status": status, "updated_at": utcnow()}
        if plan_id is not None:
            values.update(
                subscription_plan_id=plan_id,
                subscription_start_date=start_date,
                subscription_end_date=end_date,
                subscription_payment_id=payment_id,
            )

        result = await self.session.execute(
            update(Organization).where(Organization.id == organization_id).values(**values)
        )
        return result.rowcount == 1

    async def delete(self, organization_id: str) -> bool:
        result = await self.session.execute(
            delete(Organization).where(Organization.id == organization_id)
        )
        return result.rowcount == 1
