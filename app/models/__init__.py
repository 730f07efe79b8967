"""
Database models package.
"""

from app.core.database import Base
from app.models.base import BaseModel
from app.models.organization import (
    Organization,
    OrganizationStatus,
    SubscriptionStatus,
)
from app.models.plan import BillingCycle, Plan

__all__ = [
    "Base",
    "BaseModel",
    "Organization",
    "OrganizationStatus",
    "SubscriptionStatus",
    "Plan",
    "BillingCycle",
]
