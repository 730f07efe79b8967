"""
Subscription plan catalog.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


class Plan(BaseModel):
    """
    Subscription plan.

    Reference data: plans are seeded and only toggled active/inactive.
    """

    __tablename__ = "plans"

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Price in major currency units"
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        default="INR",
        nullable=False,
    )

    billing_cycle: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )

    features: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    limits: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="users, storage_gb, api_calls, custom_domain"
    )

    gateway_plan_id: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, name={self.name})>"
