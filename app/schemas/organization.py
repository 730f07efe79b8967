"""
Pydantic schemas for Organization.

Verification token and expiry are deliberately absent from every read schema.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, EmailStr, Field, HttpUrl

from app.schemas.common import BaseSchema


class CompanyAddress(BaseSchema):
    street: str = Field(..., min_length=5)
    city: str = Field(..., min_length=2)
    state: str = Field(..., min_length=2)
    country: str = Field(..., min_length=2)
    zip_code: str = Field(..., min_length=3, max_length=10)


class OrganizationMetadata(BaseSchema):
    """Free-form profile shown on the organization landing page."""

    logo: HttpUrl | None = None
    description: str | None = Field(None, max_length=500)
    website: HttpUrl | None = None
    industry: str | None = Field(None, max_length=100)


class SubscriptionRead(BaseSchema):
    plan_id: str | None = None
    status: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    payment_id: str | None = None


# Phase 1
class OrganizationCreate(BaseSchema):
    """Company registration payload."""

    company_name: str = Field(..., min_length=2, max_length=200)
    company_email: EmailStr
    company_address: CompanyAddress


# Phase 2
class VerifyEmailRequest(BaseSchema):
    organization_id: str
    verification_token: str = Field(..., min_length=1)


# Phase 3
class SetOrgnameRequest(BaseSchema):
    """Format rules are enforced by the onboarding service."""

    organization_id: str
    orgname: str = Field(..., max_length=100)


class OrganizationUpdate(BaseSchema):
    """Schema for updating an organization (all fields optional)."""

    company_name: str | None = Field(None, min_length=2, max_length=200)
    company_email: EmailStr | None = None
    company_address: CompanyAddress | None = None
    metadata: OrganizationMetadata | None = None


class OrganizationPublic(BaseSchema):
    """What anyone may see about an organization."""

    id: str
    orgname: str | None
    company_name: str
    status: str
    subdomain_url: str | None = None
    has_active_subscription: bool
    metadata: OrganizationMetadata = Field(
        default_factory=OrganizationMetadata,
        validation_alias=AliasChoices("profile", "metadata"),
    )


class OrganizationRead(OrganizationPublic):
    """Full view returned to the owner."""

    company_email: str
    company_address: CompanyAddress
    owner_id: str
    owner_email: str | None = None
    is_email_verified: bool
    subscription: SubscriptionRead
    created_at: datetime
    updated_at: datetime


class Phase1Response(BaseModel):
    organization: OrganizationRead
    message: str
    verification_token: str | None = Field(
        None,
        description="Only returned outside production, where no email is sent",
    )


class OrgnameAvailability(BaseModel):
    available: bool
    message: str


class SubscriptionStatusResponse(BaseModel):
    orgname: str
    has_active_subscription: bool
