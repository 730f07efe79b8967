"""
Payment and subscription endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limit import rate_limit
from app.features.auth.dependencies import CurrentIdentity
from app.features.organizations.dependencies import OrganizationServiceDep
from app.features.payments.gateway import PaymentGateway
from app.features.payments.schemas import (
    ActivationResponse,
    CancelSubscriptionRequest,
    CreateOrderRequest,
    OrderResponse,
    SubscriptionDetails,
    VerifyPaymentRequest,
    WebhookAck,
)
from app.features.payments.service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_payment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
    organizations: OrganizationServiceDep,
) -> PaymentService:
    return PaymentService(db, gateway, organizations)


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.post(
    "/create-order",
    response_model=OrderResponse,
    dependencies=[Depends(rate_limit("payments", by="user"))],
)
async def create_order(
    data: CreateOrderRequest,
    identity: CurrentIdentity,
    service: PaymentServiceDep,
) -> OrderResponse:
    """Create a gateway order for purchasing a plan."""
    return await service.create_order(data.plan_id, data.organization_id, identity.user_id)


@router.post("/verify", response_model=ActivationResponse)
async def verify_payment(
    data: VerifyPaymentRequest,
    identity: CurrentIdentity,
    service: PaymentServiceDep,
) -> ActivationResponse:
    """Verify the checkout signature and activate the subscription."""
    return await service.activate_subscription(data, identity.user_id)


@router.get("/subscription/{organization_id}", response_model=SubscriptionDetails)
async def get_subscription(
    organization_id: str,
    identity: CurrentIdentity,
    service: PaymentServiceDep,
) -> SubscriptionDetails:
    return await service.get_subscription(organization_id, identity.user_id)


@router.post("/cancel-subscription", response_model=SubscriptionDetails)
async def cancel_subscription(
    data: CancelSubscriptionRequest,
    identity: CurrentIdentity,
    service: PaymentServiceDep,
) -> SubscriptionDetails:
    return await service.cancel_subscription(data.organization_id, identity.user_id)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    service: PaymentServiceDep,
    x_razorpay_signature: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """
    Gateway webhook.

    Authenticated by the HMAC signature over the raw request body.
    """
    body = await request.body()
    return await service.handle_webhook(body, x_razorpay_signature)
