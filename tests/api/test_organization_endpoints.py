"""
API tests for organization onboarding endpoints.
"""

import httpx
import pytest
from httpx import AsyncClient

from app.config import Settings
from app.core.security import create_access_token
from app.features.auth.client import IdentityProviderClient
from tests.factories import (
    DEFAULT_TOKEN,
    OTHER_USER_ID,
    OWNER_EMAIL,
    OWNER_ID,
    InMemoryCounterCache,
    registration_payload,
)

BASE = "/api/v1/organizations"


@pytest.mark.api
class TestOnboardingFlow:
    """Walk an organization through all three phases."""

    async def test_full_flow(self, client: AsyncClient, owner_headers):
        response = await client.post(f"{BASE}/phase1", json=registration_payload(), headers=owner_headers)

        assert response.status_code == 201
        data = response.json()
        organization = data["organization"]
        assert organization["status"] == "pending_verification"
        assert organization["owner_id"] == OWNER_ID
        assert organization["owner_email"] == OWNER_EMAIL
        assert "verification_token" not in organization
        token = data["verification_token"]
        assert len(token) == 64

        response = await client.post(
            f"{BASE}/verify-email",
            json={"organization_id": organization["id"], "verification_token": token},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending_orgname"
        assert response.json()["is_email_verified"] is True

        response = await client.get(f"{BASE}/check-orgname/newco")
        assert response.json() == {"available": True, "message": "Orgname is available"}

        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": organization["id"], "orgname": "NewCo"},
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.json()["orgname"] == "newco"
        assert response.json()["status"] == "active"
        assert response.json()["subdomain_url"] == "newco.localhost:3000"

        response = await client.get(f"{BASE}/check-orgname/newco")
        assert response.json()["available"] is False

    async def test_phase1_fetches_owner_email_when_missing(self, app, client: AsyncClient):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"email_addresses": [{"id": "e1", "email_address": "Fetched@Example.com"}]},
            )

        config = Settings(identity_secret_key="sk_test")
        app.state.identity_client = IdentityProviderClient(config, transport=httpx.MockTransport(handler))
        token = create_access_token(subject="user_no_email")

        response = await client.post(
            f"{BASE}/phase1",
            json=registration_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 201
        assert response.json()["organization"]["owner_email"] == "fetched@example.com"

    async def test_phase1_tolerates_identity_provider_errors(self, app, client: AsyncClient):
        config = Settings(identity_secret_key="sk_test")
        app.state.identity_client = IdentityProviderClient(
            config, transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        token = create_access_token(subject="user_no_email")

        response = await client.post(
            f"{BASE}/phase1",
            json=registration_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 201
        assert response.json()["organization"]["owner_email"] is None

    async def test_phase1_requires_token(self, client: AsyncClient):
        response = await client.post(f"{BASE}/phase1", json=registration_payload())

        assert response.status_code == 401
        assert response.json()["message"] == "No token provided"

    async def test_phase1_rejects_invalid_token(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/phase1",
            json=registration_payload(),
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    async def test_phase1_validation_errors(self, client: AsyncClient, owner_headers):
        response = await client.post(
            f"{BASE}/phase1",
            json=registration_payload(company_email="not-an-email"),
            headers=owner_headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "error"
        assert body["statusCode"] == 422
        assert body["message"] == "Validation failed"
        assert any(error["field"] == "company_email" for error in body["errors"])

    async def test_phase1_duplicate_email(self, client: AsyncClient, owner_headers, pending_verification_org):
        response = await client.post(
            f"{BASE}/phase1",
            json=registration_payload(company_email=pending_verification_org.company_email),
            headers=owner_headers,
        )

        assert response.status_code == 409


@pytest.mark.api
class TestOnboardingRateLimit:
    """Registration is limited per user, not per client address."""

    async def test_users_behind_one_address_counted_separately(
        self, app, client: AsyncClient, owner_headers, other_headers
    ):
        counter = InMemoryCounterCache()
        app.state.redis = counter

        await client.post(f"{BASE}/phase1", json=registration_payload(), headers=owner_headers)
        await client.post(f"{BASE}/phase1", json=registration_payload(), headers=other_headers)

        assert counter.counts == {
            f"rl_onboarding:user:{OWNER_ID}:onboarding": 1,
            f"rl_onboarding:user:{OTHER_USER_ID}:onboarding": 1,
        }

    async def test_exhausted_user_does_not_block_neighbour(
        self, app, client: AsyncClient, owner_headers, other_headers
    ):
        counter = InMemoryCounterCache()
        counter.counts[f"rl_onboarding:user:{OWNER_ID}:onboarding"] = 10
        app.state.redis = counter

        response = await client.post(f"{BASE}/phase1", json=registration_payload(), headers=owner_headers)
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"

        response = await client.post(f"{BASE}/phase1", json=registration_payload(), headers=other_headers)
        assert response.status_code == 201

    async def test_anonymous_requests_fall_back_to_client_address(self, app, client: AsyncClient):
        counter = InMemoryCounterCache()
        app.state.redis = counter

        response = await client.post(f"{BASE}/phase1", json=registration_payload())

        assert response.status_code == 401
        assert [key for key in counter.counts if ":user:" in key] == []
        assert len(counter.counts) == 1

@pytest.mark.api
class TestVerifyEmailEndpoint:

    async def test_invalid_token(self, client: AsyncClient, pending_verification_org):
        response = await client.post(
            f"{BASE}/verify-email",
            json={"organization_id": pending_verification_org.id, "verification_token": "wrong"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid verification token"

    async def test_unknown_organization(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/verify-email",
            json={"organization_id": "missing", "verification_token": DEFAULT_TOKEN},
        )

        assert response.status_code == 404


@pytest.mark.api
class TestSetOrgnameEndpoint:

    async def test_requires_authentication(self, client: AsyncClient, verified_org):
        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": verified_org.id, "orgname": "acme"},
        )

        assert response.status_code == 401

    async def test_other_user_forbidden(self, client: AsyncClient, other_headers, verified_org):
        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": verified_org.id, "orgname": "acme"},
            headers=other_headers,
        )

        assert response.status_code == 403
        body = response.json()
        assert body["status"] == "error"
        assert body["statusCode"] == 403
        assert body["path"] == f"{BASE}/set-orgname"
        assert "timestamp" in body

    async def test_unverified_rejected(self, client: AsyncClient, owner_headers, pending_verification_org):
        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": pending_verification_org.id, "orgname": "acme"},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Email must be verified before setting orgname"

    async def test_reserved_rejected(self, client: AsyncClient, owner_headers, verified_org):
        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": verified_org.id, "orgname": "admin"},
            headers=owner_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "This orgname is reserved"

    async def test_taken_conflict(self, client: AsyncClient, owner_headers, verified_org, subscribed_org):
        response = await client.post(
            f"{BASE}/set-orgname",
            json={"organization_id": verified_org.id, "orgname": "acme"},
            headers=owner_headers,
        )

        assert response.status_code == 409


@pytest.mark.api
class TestOrganizationQueries:

    async def test_check_orgname_reserved(self, client: AsyncClient):
        response = await client.get(f"{BASE}/check-orgname/admin")

        assert response.status_code == 200
        assert response.json() == {"available": False, "message": "This orgname is reserved"}

    async def test_my_organizations(self, client: AsyncClient, owner_headers, other_headers, verified_org):
        response = await client.get(f"{BASE}/my-organizations", headers=owner_headers)
        assert [org["id"] for org in response.json()] == [verified_org.id]

        response = await client.get(f"{BASE}/my-organizations", headers=other_headers)
        assert response.json() == []

    async def test_by_orgname_public_view(self, client: AsyncClient, subscribed_org):
        response = await client.get(f"{BASE}/by-orgname/acme")

        assert response.status_code == 200
        data = response.json()
        assert data["orgname"] == "acme"
        assert data["has_active_subscription"] is True
        assert "company_email" not in data

    async def test_by_orgname_owner_view(self, client: AsyncClient, owner_headers, subscribed_org):
        response = await client.get(f"{BASE}/by-orgname/acme", headers=owner_headers)

        assert response.json()["company_email"] == subscribed_org.company_email

    async def test_by_orgname_unknown(self, client: AsyncClient):
        response = await client.get(f"{BASE}/by-orgname/nobody")

        assert response.status_code == 404

    async def test_subscription_status(self, client: AsyncClient, subscribed_org, unsubscribed_org):
        response = await client.get(f"{BASE}/subscription-status/acme")
        assert response.json() == {"orgname": "acme", "has_active_subscription": True}

        response = await client.get(f"{BASE}/subscription-status/globex")
        assert response.json()["has_active_subscription"] is False

    async def test_get_requires_owner(self, client: AsyncClient, owner_headers, other_headers, verified_org):
        response = await client.get(f"{BASE}/{verified_org.id}", headers=owner_headers)
        assert response.status_code == 200

        response = await client.get(f"{BASE}/{verified_org.id}", headers=other_headers)
        assert response.status_code == 403


@pytest.mark.api
class TestOrganizationManagement:

    async def test_update(self, client: AsyncClient, owner_headers, subscribed_org):
        response = await client.put(
            f"{BASE}/{subscribed_org.id}",
            json={"company_name": "Acme Holdings", "metadata": {"industry": "Anvils"}},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json()["company_name"] == "Acme Holdings"
        assert response.json()["metadata"]["industry"] == "Anvils"

    async def test_suspend(self, client: AsyncClient, owner_headers, subscribed_org):
        response = await client.post(f"{BASE}/{subscribed_org.id}/suspend", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "suspended"
        assert response.json()["has_active_subscription"] is False

    async def test_delete_frees_orgname(self, client: AsyncClient, owner_headers, other_headers, subscribed_org):
        response = await client.delete(f"{BASE}/{subscribed_org.id}", headers=other_headers)
        assert response.status_code == 403

        response = await client.delete(f"{BASE}/{subscribed_org.id}", headers=owner_headers)
        assert response.status_code == 200

        response = await client.get(f"{BASE}/check-orgname/acme")
        assert response.json()["available"] is True
