"""
Integration tests for the onboarding phase controller.
"""

import asyncio
from datetime import timedelta

import pytest

from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
)
from app.core.orgname_cache import OrgnameCache
from app.features.organizations.repository import OrganizationRepository
from app.features.organizations.service import OrganizationService
from app.models import OrganizationStatus
from app.models.base import utcnow
from app.schemas.organization import OrganizationCreate, OrganizationUpdate
from tests.factories import DEFAULT_TOKEN, OrganizationFactory, registration_payload

OWNER = "user_owner"


@pytest.fixture
def cache() -> OrgnameCache:
    return OrgnameCache()


@pytest.fixture
def service(db_session, cache) -> OrganizationService:
    return OrganizationService(db_session, cache)


@pytest.mark.integration
class TestRegister:

    async def test_creates_pending_organization(self, service):
        data = OrganizationCreate(**registration_payload(company_email="Hello@Acme.COM"))

        organization, token = await service.register(data, OWNER, "Owner@Example.com")

        assert organization.status == OrganizationStatus.PENDING_VERIFICATION.value
        assert organization.company_email == "hello@acme.com"
        assert organization.owner_email == "owner@example.com"
        assert organization.is_email_verified is False
        assert organization.orgname is None
        assert len(token) == 64
        assert organization.verification_token == token
        assert organization.verification_token_expiry > utcnow() + timedelta(hours=23)

    async def test_duplicate_company_email(self, service):
        payload = registration_payload(company_email="dup@acme.com")
        await service.register(OrganizationCreate(**payload), OWNER, None)

        with pytest.raises(ConflictError):
            await service.register(OrganizationCreate(**payload), "another_owner", None)

    async def test_owner_limit(self, service):
        for _ in range(5):
            await service.register(OrganizationCreate(**registration_payload()), OWNER, None)

        with pytest.raises(LimitExceededError) as exc_info:
            await service.register(OrganizationCreate(**registration_payload()), OWNER, None)

        assert exc_info.value.message == "Maximum number of organizations reached"
        assert len(await service.list_for_owner(OWNER)) == 5


@pytest.mark.integration
class TestVerifyEmail:

    async def test_moves_to_pending_orgname(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)

        verified = await service.verify_email(organization.id, DEFAULT_TOKEN)

        assert verified.status == OrganizationStatus.PENDING_ORGNAME.value
        assert verified.is_email_verified is True
        assert verified.verification_token is None
        assert verified.verification_token_expiry is None

    async def test_unknown_organization(self, service):
        with pytest.raises(NotFoundError):
            await service.verify_email("missing", DEFAULT_TOKEN)

    async def test_wrong_token(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)

        with pytest.raises(BadRequestError) as exc_info:
            await service.verify_email(organization.id, "b" * 64)

        assert exc_info.value.message == "Invalid verification token"

    async def test_expired_token_even_when_matching(self, service, db_session):
        organization = await OrganizationFactory.create(
            db_session,
            owner_id=OWNER,
            verification_token_expiry=utcnow() - timedelta(minutes=1),
        )

        with pytest.raises(BadRequestError) as exc_info:
            await service.verify_email(organization.id, DEFAULT_TOKEN)

        assert exc_info.value.message == "Verification token expired"

    async def test_token_is_single_use(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)
        await service.verify_email(organization.id, DEFAULT_TOKEN)

        with pytest.raises(BadRequestError):
            await service.verify_email(organization.id, DEFAULT_TOKEN)


@pytest.mark.integration
class TestSetOrgname:

    async def test_claims_and_activates(self, service, db_session, cache):
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)

        active = await service.set_orgname(organization.id, "  Acme-Corp ", OWNER)

        assert active.orgname == "acme-corp"
        assert active.status == OrganizationStatus.ACTIVE.value
        assert active.subdomain_url == "acme-corp.localhost:3000"
        assert cache.get("acme-corp") is True

    async def test_requires_verified_email(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)

        with pytest.raises(BadRequestError) as exc_info:
            await service.set_orgname(organization.id, "acme", OWNER)

        assert exc_info.value.message == "Email must be verified before setting orgname"

    async def test_only_owner(self, service, db_session):
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)

        with pytest.raises(ForbiddenError):
            await service.set_orgname(organization.id, "acme", "intruder")

    async def test_unknown_organization(self, service):
        with pytest.raises(NotFoundError):
            await service.set_orgname("missing", "acme", OWNER)

    async def test_orgname_set_once(self, service, db_session):
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)
        await service.set_orgname(organization.id, "acme", OWNER)

        with pytest.raises(BadRequestError) as exc_info:
            await service.set_orgname(organization.id, "acme-two", OWNER)

        assert exc_info.value.message == "Orgname already set"

    @pytest.mark.parametrize(
        "orgname, message",
        [
            ("ab", "Orgname must be at least 3 characters"),
            ("acme_corp", "Orgname can only contain lowercase letters, numbers, and hyphens"),
            ("acme-", "Orgname cannot start or end with a hyphen"),
            ("admin", "This orgname is reserved"),
        ],
    )
    async def test_rejects_invalid_names(self, service, db_session, orgname, message):
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)

        with pytest.raises(BadRequestError) as exc_info:
            await service.set_orgname(organization.id, orgname, OWNER)

        assert exc_info.value.message == message

    async def test_taken_name(self, service, db_session, cache):
        await OrganizationFactory.create_active(db_session, orgname="acme")
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)

        with pytest.raises(ConflictError):
            await service.set_orgname(organization.id, "acme", OWNER)

        assert cache.get("acme") is True

    async def test_stale_cache_does_not_allow_duplicate(self, service, db_session, cache):
        await OrganizationFactory.create_active(db_session, orgname="acme")
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)
        cache.set("acme", False)

        with pytest.raises(ConflictError):
            await service.set_orgname(organization.id, "acme", OWNER)

    async def test_unique_index_decides_direct_claim(self, db_session):
        await OrganizationFactory.create_active(db_session, orgname="acme")
        organization = await OrganizationFactory.create_verified(db_session, owner_id=OWNER)

        with pytest.raises(ConflictError):
            await OrganizationRepository(db_session).claim_orgname(organization.id, "acme")

    async def test_concurrent_claims_single_winner(self, db_manager):
        async with db_manager.session() as session:
            first = await OrganizationFactory.create_verified(session, owner_id="owner_a")
            second = await OrganizationFactory.create_verified(session, owner_id="owner_b")

        async def claim(organization_id: str, owner_id: str):
            async with db_manager.session() as session:
                service = OrganizationService(session, OrgnameCache())
                try:
                    return await service.set_orgname(organization_id, "contested", owner_id)
                except (ConflictError, BadRequestError) as e:
                    return e

        results = await asyncio.gather(
            claim(first.id, "owner_a"),
            claim(second.id, "owner_b"),
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ConflictError)

        async with db_manager.session() as session:
            repository = OrganizationRepository(session)
            assert await repository.orgname_exists("contested")
            loser_id = second.id if winners[0].id == first.id else first.id
            loser = await repository.get(loser_id)
            assert loser.orgname is None
            assert loser.status == OrganizationStatus.PENDING_ORGNAME.value


@pytest.mark.integration
class TestCheckAvailability:

    async def test_available(self, service):
        result = await service.check_availability("fresh-name")

        assert result.available is True
        assert result.message == "Orgname is available"

    async def test_taken(self, service, db_session):
        await OrganizationFactory.create_active(db_session, orgname="acme")

        result = await service.check_availability("ACME")

        assert result.available is False
        assert result.message == "Orgname is already taken"

    async def test_reserved_regardless_of_store(self, service):
        result = await service.check_availability("admin")

        assert result.available is False
        assert result.message == "This orgname is reserved"

    async def test_invalid_format(self, service):
        result = await service.check_availability("a")

        assert result.available is False
        assert result.message == "Orgname must be at least 3 characters"

    async def test_idempotent(self, service):
        first = await service.check_availability("stable-name")
        second = await service.check_availability("stable-name")

        assert first == second

    async def test_answers_from_cache(self, service, cache):
        cache.set("cached-name", True)

        result = await service.check_availability("cached-name")

        assert result.available is False


@pytest.mark.integration
class TestManagement:

    async def test_update_merges_metadata(self, service, db_session):
        organization = await OrganizationFactory.create_active(
            db_session,
            orgname="acme",
            owner_id=OWNER,
            profile={"industry": "Retail"},
        )

        updated = await service.update(
            organization.id,
            OWNER,
            OrganizationUpdate(company_name="Acme Holdings", metadata={"description": "We sell anvils"}),
        )

        assert updated.company_name == "Acme Holdings"
        assert updated.profile == {"industry": "Retail", "description": "We sell anvils"}

    async def test_update_requires_owner(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)

        with pytest.raises(ForbiddenError):
            await service.update(organization.id, "intruder", OrganizationUpdate(company_name="Nope"))

    async def test_suspend_active(self, service, db_session):
        organization = await OrganizationFactory.create_active(db_session, orgname="acme", owner_id=OWNER)

        suspended = await service.suspend(organization.id, OWNER)

        assert suspended.status == OrganizationStatus.SUSPENDED.value

    async def test_suspend_pending_rejected(self, service, db_session):
        organization = await OrganizationFactory.create(db_session, owner_id=OWNER)

        with pytest.raises(BadRequestError):
            await service.suspend(organization.id, OWNER)

    async def test_delete_invalidates_cache(self, service, db_session, cache):
        organization = await OrganizationFactory.create_active(db_session, orgname="acme", owner_id=OWNER)
        cache.set("acme", True)

        await service.delete(organization.id, OWNER)

        assert cache.get("acme") is None
        with pytest.raises(NotFoundError):
            await service.get_by_id(organization.id)
        assert (await service.check_availability("acme")).available is True

    async def test_subscription_status_unknown_name(self, service):
        status = await service.subscription_status("nobody")

        assert status.orgname == "nobody"
        assert status.has_active_subscription is False
