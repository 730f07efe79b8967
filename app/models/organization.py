"""
Organization model for multi-tenancy.

Each organization is a tenant. It is created by the onboarding flow in
``pending_verification``, becomes ``pending_orgname`` once its company email
is verified, and ``active`` once it claims an orgname (its subdomain label).
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.config import settings
from app.models.base import BaseModel


class OrganizationStatus(str, Enum):
    """Organization lifecycle status."""
    PENDING_VERIFICATION = "pending_verification"  # Phase 1 done
    PENDING_ORGNAME = "pending_orgname"            # Email verified
    ACTIVE = "active"                              # Orgname claimed
    SUSPENDED = "suspended"


class SubscriptionStatus(str, Enum):
    """Subscription status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Forward-only lifecycle; suspension only from active
ALLOWED_TRANSITIONS: dict[OrganizationStatus, frozenset[OrganizationStatus]] = {
    OrganizationStatus.PENDING_VERIFICATION: frozenset({OrganizationStatus.PENDING_ORGNAME}),
    OrganizationStatus.PENDING_ORGNAME: frozenset({OrganizationStatus.ACTIVE}),
    OrganizationStatus.ACTIVE: frozenset({OrganizationStatus.SUSPENDED}),
    OrganizationStatus.SUSPENDED: frozenset(),
}


def can_transition(current: OrganizationStatus | str, target: OrganizationStatus | str) -> bool:
    """Whether ``current -> target`` is an allowed lifecycle step."""
    return OrganizationStatus(target) in ALLOWED_TRANSITIONS[OrganizationStatus(current)]


class Organization(BaseModel):
    """
    Organization (tenant) model.

    Provides:
    - Subdomain identity (orgname)
    - Ownership by an identity-provider subject
    - Email verification state
    - Embedded subscription state
    """

    __tablename__ = "organizations"

    # Subdomain label, set once in phase 3. Uniqueness is enforced here;
    # NULLs do not collide.
    orgname: Mapped[str | None] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
        comment="Lowercase subdomain label (e.g., 'acme-corp')"
    )

    # Company info
    company_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Registered company name"
    )

    company_email: Mapped[str] = mapped_column(
        String(320),
        unique=True,
        nullable=False,
        comment="Company email, verified in phase 2"
    )

    company_address: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="street, city, state, country, zip_code"
    )

    # Ownership
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Identity-provider subject of the owner"
    )

    owner_email: Mapped[str | None] = mapped_column(
        String(320),
        nullable=True,
    )

    # Verification
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    verification_token: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        comment="One-time email verification token (never serialized)"
    )

    verification_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(32),
        default=OrganizationStatus.PENDING_VERIFICATION.value,
        nullable=False,
        index=True,
    )

    # Subscription
    subscription_plan_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True,
    )

    subscription_status: Mapped[str] = mapped_column(
        String(32),
        default=SubscriptionStatus.INACTIVE.value,
        nullable=False,
    )

    subscription_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    subscription_payment_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Payment gateway reference for the active subscription"
    )

    # Free-form profile ("metadata" is reserved on declarative classes)
    profile: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        default=dict,
        nullable=False,
        comment="logo, description, website, industry"
    )

    __table_args__ = (
        Index("ix_organizations_owner_status", "owner_id", "status"),
        Index("ix_organizations_subscription_status", "subscription_status"),
    )

    @property
    def has_active_subscription(self) -> bool:
        # Status only; subscription_end_date is not consulted, nothing sets EXPIRED yet
        return (
            self.subscription_status == SubscriptionStatus.ACTIVE.value
            and self.status == OrganizationStatus.ACTIVE.value
        )

    @property
    def subscription(self) -> dict[str, Any]:
        """Embedded subscription columns as one sub-entity."""
        return {
            "plan_id": self.subscription_plan_id,
            "status": self.subscription_status,
            "start_date": self.subscription_start_date,
            "end_date": self.subscription_end_date,
            "payment_id": self.subscription_payment_id,
        }

    @property
    def subdomain_url(self) -> str | None:
        """Host serving this organization, e.g. ``acme.localhost:3000``."""
        if not self.orgname:
            return None
        return f"{self.orgname}.{settings.base_domain}"

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, orgname={self.orgname}, status={self.status})>"
