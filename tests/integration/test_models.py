"""
Integration tests for database models.

Tests ORM behavior and database constraints.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models import Organization, OrganizationStatus, SubscriptionStatus
from app.models.base import utcnow
from app.models.organization import can_transition
from tests.factories import OrganizationFactory, PlanFactory


@pytest.mark.integration
class TestOrganizationModel:
    """Test Organization model database operations."""

    async def test_defaults(self, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id="user_1")

        assert organization.id is not None
        assert organization.created_at is not None
        assert organization.orgname is None
        assert organization.subscription_status == SubscriptionStatus.INACTIVE.value
        assert organization.subdomain_url is None
        assert organization.has_active_subscription is False

    async def test_company_email_unique(self, db_session):
        await OrganizationFactory.create(db_session, company_email="dup@acme.com")

        with pytest.raises(IntegrityError):
            await OrganizationFactory.create(db_session, company_email="dup@acme.com")

    async def test_orgname_unique(self, db_session):
        await OrganizationFactory.create_active(db_session, orgname="acme")

        with pytest.raises(IntegrityError):
            await OrganizationFactory.create_active(db_session, orgname="acme")

    async def test_many_organizations_without_orgname(self, db_session):
        await OrganizationFactory.create(db_session)
        await OrganizationFactory.create(db_session)

        result = await db_session.execute(
            select(Organization).where(Organization.orgname.is_(None))
        )
        assert len(result.scalars().all()) == 2

    async def test_profile_stored_under_metadata_column(self, db_session):
        organization = await OrganizationFactory.create(
            db_session, profile={"industry": "Retail"}
        )

        assert Organization.__table__.c["metadata"] is not None
        assert organization.profile == {"industry": "Retail"}

    async def test_active_subscription(self, db_session):
        plan = await PlanFactory.create(db_session)
        organization = await OrganizationFactory.create_active(db_session, orgname="acme", plan=plan)

        assert organization.has_active_subscription is True
        assert organization.subscription["plan_id"] == plan.id
        assert organization.subdomain_url == "acme.localhost:3000"

    async def test_suspended_organization_has_no_active_subscription(self, db_session):
        plan = await PlanFactory.create(db_session)
        organization = await OrganizationFactory.create_active(
            db_session,
            orgname="acme",
            plan=plan,
            status=OrganizationStatus.SUSPENDED.value,
        )

        assert organization.has_active_subscription is False

    async def test_subscription_past_end_date_stays_active_until_cancelled(self, db_session):
        plan = await PlanFactory.create(db_session)
        organization = await OrganizationFactory.create_active(
            db_session,
            orgname="acme",
            plan=plan,
            subscription_end_date=utcnow() - timedelta(days=1),
        )

        assert organization.has_active_subscription is True

        organization.subscription_status = SubscriptionStatus.EXPIRED.value
        assert organization.has_active_subscription is False


@pytest.mark.unit
class TestStatusTransitions:

    @pytest.mark.parametrize(
        "current, target",
        [
            (OrganizationStatus.PENDING_VERIFICATION, OrganizationStatus.PENDING_ORGNAME),
            (OrganizationStatus.PENDING_ORGNAME, OrganizationStatus.ACTIVE),
            (OrganizationStatus.ACTIVE, OrganizationStatus.SUSPENDED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target) is True

    @pytest.mark.parametrize(
        "current, target",
        [
            ("pending_verification", "active"),
            ("pending_orgname", "suspended"),
            ("suspended", "active"),
            ("active", "pending_orgname"),
        ],
    )
    def test_rejected(self, current, target):
        assert can_transition(current, target) is False
