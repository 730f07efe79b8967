"""
Subscription billing business logic.
"""

import calendar
import json
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError
from app.core.metrics import subscriptions_total
from app.features.organizations.repository import OrganizationRepository
from app.features.organizations.service import OrganizationService
from app.features.payments.gateway import PaymentGateway, to_minor_units
from app.features.payments.schemas import (
    ActivatedSubscription,
    ActivationResponse,
    OrderResponse,
    SubscriptionDetails,
    VerifyPaymentRequest,
    WebhookAck,
)
from app.features.plans.service import PlanService
from app.models.base import utcnow
from app.models.organization import Organization, SubscriptionStatus
from app.models.plan import BillingCycle
from app.schemas.organization import OrganizationRead, SubscriptionRead
from app.schemas.plan import PlanRead

logger = structlog.get_logger(__name__)

LIFETIME_YEARS = 100


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def subscription_end_date(start: datetime, billing_cycle: str) -> datetime:
    if billing_cycle == BillingCycle.MONTHLY.value:
        return add_months(start, 1)
    if billing_cycle == BillingCycle.YEARLY.value:
        return add_months(start, 12)
    return add_months(start, 12 * LIFETIME_YEARS)


class PaymentService:
    """Orders, activation and cancellation for organization subscriptions."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: PaymentGateway,
        organizations: OrganizationService,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.organizations = organizations
        self.repository = OrganizationRepository(session)
        self.plans = PlanService(session)

    async def create_order(self, plan_id: str, organization_id: str, caller_id: str) -> OrderResponse:
        organization = await self.organizations.get_owned(organization_id, caller_id)
        plan = await self.plans.get_active(plan_id)

        order = await self.gateway.create_order(plan, organization)

        subscriptions_total.labels(event="order_created", gateway=self.gateway.name).inc()
        logger.info(
            "payment_order_created",
            order_id=order.order_id,
            organization_id=organization_id,
            plan_id=plan_id,
            amount=order.amount,
        )
        return OrderResponse(
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            receipt=order.receipt,
            gateway=self.gateway.name,
            plan_name=plan.name,
            plan_price=float(plan.price),
        )

    async def activate_subscription(self, data: VerifyPaymentRequest, caller_id: str) -> ActivationResponse:
        """
        Verify the checkout signature and activate the plan.

        The plan is taken from the request only after the gateway order
        confirms it was created for this organization, this plan and the
        plan's current price.

        Raises:
            BadRequestError: signature or order does not match
            NotFoundError: plan is unknown or retired
        """
        await self.organizations.get_owned(data.organization_id, caller_id)

        if not self.gateway.verify_payment_signature(
            data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
        ):
            logger.warning(
                "payment_signature_invalid",
                organization_id=data.organization_id,
                order_id=data.razorpay_order_id,
            )
            raise BadRequestError("Invalid payment signature")

        plan = await self.plans.get_active(data.plan_id)

        order = await self.gateway.fetch_order(data.razorpay_order_id)
        if (
            order is None
            or order.notes.get("plan_id") != plan.id
            or order.notes.get("organization_id") != data.organization_id
            or order.amount != to_minor_units(plan.price)
        ):
            logger.warning(
                "payment_order_mismatch",
                organization_id=data.organization_id,
                order_id=data.razorpay_order_id,
                plan_id=plan.id,
                order_amount=order.amount if order else None,
            )
            raise BadRequestError("Payment order does not match the selected plan")

        start_date = utcnow()
        end_date = subscription_end_date(start_date, plan.billing_cycle)

        await self.repository.update_subscription(
            data.organization_id,
            status=SubscriptionStatus.ACTIVE.value,
            plan_id=plan.id,
            start_date=start_date,
            end_date=end_date,
            payment_id=data.razorpay_payment_id,
        )
        await self.session.commit()

        subscriptions_total.labels(event="activated", gateway=self.gateway.name).inc()
        logger.info(
            "subscription_activated",
            organization_id=data.organization_id,
            plan_id=plan.id,
            payment_id=data.razorpay_payment_id,
            end_date=end_date.isoformat(),
        )

        organization = await self.organizations.get_by_id(data.organization_id)
        return ActivationResponse(
            organization=OrganizationRead.model_validate(organization),
            subscription=ActivatedSubscription(
                plan_id=plan.id,
                plan_name=plan.name,
                status=SubscriptionStatus.ACTIVE.value,
                billing_cycle=plan.billing_cycle,
                start_date=start_date,
                end_date=end_date,
            ),
        )

    async def get_subscription(self, organization_id: str, caller_id: str) -> SubscriptionDetails:
        organization = await self.organizations.get_owned(organization_id, caller_id)

        plan = None
        if organization.subscription_plan_id:
            plan = PlanRead.model_validate(await self.plans.get(organization.subscription_plan_id))

        return self._details(organization, plan)

    async def cancel_subscription(self, organization_id: str, caller_id: str) -> SubscriptionDetails:
        await self.organizations.get_owned(organization_id, caller_id)

        await self.repository.update_subscription(
            organization_id,
            status=SubscriptionStatus.CANCELLED.value,
        )
        await self.session.commit()

        subscriptions_total.labels(event="cancelled", gateway=self.gateway.name).inc()
        logger.info("subscription_cancelled", organization_id=organization_id)

        organization = await self.organizations.get_by_id(organization_id)
        return self._details(organization, None)

    async def handle_webhook(self, body: bytes, signature: str | None) -> WebhookAck:
        """
        Process a gateway webhook.

        Subscription state is owned by the checkout callback; webhook
        events are only logged.
        """
        if not self.gateway.verify_webhook_signature(body, signature):
            logger.warning("webhook_signature_invalid")
            raise BadRequestError("Invalid webhook signature")

        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            raise BadRequestError("Invalid webhook payload")
        if not isinstance(payload, dict):
            raise BadRequestError("Invalid webhook payload")

        event = payload.get("event")
        entity = payload
        for key in ("payload", "payment", "entity"):
            entity = entity.get(key) or {}
            if not isinstance(entity, dict):
                raise BadRequestError("Invalid webhook payload")
        payment_id = entity.get("id")

        if event == "payment.captured":
            logger.info("webhook_payment_captured", payment_id=payment_id)
        elif event == "payment.failed":
            logger.warning("webhook_payment_failed", payment_id=payment_id)
        elif event == "subscription.cancelled":
            logger.info("webhook_subscription_cancelled", payment_id=payment_id)
        else:
            logger.info("webhook_event_unhandled", webhook_event=event)

        return WebhookAck(event=event)

    @staticmethod
    def _details(organization: Organization, plan: PlanRead | None) -> SubscriptionDetails:
        return SubscriptionDetails(
            organization_id=organization.id,
            orgname=organization.orgname,
            subscription=SubscriptionRead.model_validate(organization.subscription),
            plan=plan,
            is_active=organization.subscription_status == SubscriptionStatus.ACTIVE.value,
        )
