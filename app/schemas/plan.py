"""
Pydantic schemas for Plan.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.common import BaseSchema


class PlanLimits(BaseModel):
    users: int = 10
    storage_gb: int = 5
    api_calls: int = 10_000
    custom_domain: bool = False


class PlanCreate(BaseSchema):
    """Used by the seed script."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str
    price: float = Field(..., ge=0)
    currency: str = Field("INR", min_length=3, max_length=3)
    billing_cycle: Literal["monthly", "yearly", "lifetime"]
    features: list[str] = Field(default_factory=list)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    gateway_plan_id: str | None = None
    is_active: bool = True


class PlanRead(BaseSchema):
    id: str
    name: str
    description: str
    price: float
    currency: str
    billing_cycle: str
    features: list[str]
    limits: PlanLimits
    is_active: bool
    created_at: datetime
    updated_at: datetime
