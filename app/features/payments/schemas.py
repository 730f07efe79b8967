"""
Payment request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import BaseSchema
from app.schemas.organization import OrganizationRead, SubscriptionRead
from app.schemas.plan import PlanRead


class CreateOrderRequest(BaseSchema):
    plan_id: str
    organization_id: str


class OrderResponse(BaseModel):
    order_id: str
    amount: int = Field(..., description="Amount in the smallest currency unit")
    currency: str
    receipt: str
    gateway: str
    plan_name: str
    plan_price: float


class VerifyPaymentRequest(BaseSchema):
    """Checkout callback fields, forwarded by the client after payment."""

    organization_id: str
    plan_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str = ""


class CancelSubscriptionRequest(BaseSchema):
    organization_id: str


class ActivatedSubscription(BaseModel):
    plan_id: str
    plan_name: str
    status: str
    billing_cycle: str
    start_date: datetime
    end_date: datetime


class ActivationResponse(BaseModel):
    organization: OrganizationRead
    subscription: ActivatedSubscription


class SubscriptionDetails(BaseModel):
    organization_id: str
    orgname: str | None
    subscription: SubscriptionRead
    plan: PlanRead | None = None
    is_active: bool


class WebhookAck(BaseModel):
    success: bool = True
    event: str | None = None
