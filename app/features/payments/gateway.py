"""
Payment gateway abstraction.

Provides a unified interface over Razorpay and a mock gateway for local
development. The backend is chosen once at startup by
``build_payment_gateway``: without Razorpay credentials every payment is
simulated and signatures always verify.
"""

import asyncio
import hashlib
import hmac
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

import razorpay
from razorpay.errors import BadRequestError as RazorpayBadRequestError

from app.config import Settings
from app.core.metrics import payment_gateway_request_duration_seconds, track_time
from app.models.organization import Organization
from app.models.plan import Plan

logger = logging.getLogger(__name__)

# Razorpay rejects receipts longer than this
MAX_RECEIPT_LENGTH = 40


@dataclass(frozen=True)
class OrderInfo:
    order_id: str
    amount: int  # smallest currency unit (paise for INR)
    currency: str
    receipt: str
    notes: dict[str, str] = field(default_factory=dict)


def to_minor_units(price: Decimal | float) -> int:
    """999.00 INR -> 99900 paise."""
    return int((Decimal(str(price)) * 100).to_integral_value())


def build_receipt(organization_id: str, plan_id: str) -> str:
    """Short, unique-enough receipt: ``{ms timestamp}_{org tail}_{plan tail}``."""
    receipt = f"{int(time.time() * 1000)}_{organization_id[-8:]}_{plan_id[-6:]}"
    return receipt[:MAX_RECEIPT_LENGTH]


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str

    @abstractmethod
    async def create_order(self, plan: Plan, organization: Organization) -> OrderInfo:
        """
        Create a payment order for a plan purchase.

        Args:
            plan: Plan being purchased
            organization: Organization the subscription is for

        Returns:
            Order details for the checkout client
        """
        pass

    @abstractmethod
    async def fetch_order(self, order_id: str) -> OrderInfo | None:
        """
        Look up an order created by ``create_order``.

        Returns:
            The order with the notes it was created with, or None if unknown
        """
        pass

    @abstractmethod
    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout callback signature."""
        pass

    @abstractmethod
    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Check the signature over a raw webhook body."""
        pass


class RazorpayGateway(PaymentGateway):
    """Razorpay orders API plus HMAC-SHA256 signature checks."""

    name = "razorpay"

    def __init__(self, key_id: str, key_secret: str, webhook_secret: str | None = None) -> None:
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.client = razorpay.Client(auth=(key_id, key_secret))
        logger.info("Initialized Razorpay payment gateway")

    @track_time(payment_gateway_request_duration_seconds, {"operation": "create_order"})
    async def create_order(self, plan: Plan, organization: Organization) -> OrderInfo:
        receipt = build_receipt(organization.id, plan.id)
        payload = {
            "amount": to_minor_units(plan.price),
            "currency": plan.currency,
            "receipt": receipt,
            "notes": {
                "organization_id": organization.id,
                "plan_id": plan.id,
                "orgname": organization.orgname or "",
                "company_name": organization.company_name,
            },
        }

        # The SDK is synchronous (requests)
        order = await asyncio.to_thread(self.client.order.create, data=payload)

        logger.info(f"Razorpay order created: {order['id']} for organization {organization.id}")
        return OrderInfo(
            order_id=order["id"],
            amount=order["amount"],
            currency=order["currency"],
            receipt=receipt,
            notes=payload["notes"],
        )

    @track_time(payment_gateway_request_duration_seconds, {"operation": "fetch_order"})
    async def fetch_order(self, order_id: str) -> OrderInfo | None:
        try:
            order = await asyncio.to_thread(self.client.order.fetch, order_id)
        except RazorpayBadRequestError as e:
            logger.warning(f"Razorpay order lookup failed for {order_id}: {e}")
            return None

        # Razorpay returns an empty list when an order has no notes
        notes = order.get("notes")
        return OrderInfo(
            order_id=order["id"],
            amount=order["amount"],
            currency=order["currency"],
            receipt=order.get("receipt") or "",
            notes=notes if isinstance(notes, dict) else {},
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}".encode())
        return hmac.compare_digest(expected, signature or "")

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        if not self.webhook_secret:
            logger.error("Webhook received but no webhook secret is configured")
            return False
        if not signature:
            return False
        return hmac.compare_digest(hmac_sha256_hex(self.webhook_secret, body), signature)


class MockPaymentGateway(PaymentGateway):
    """
    Simulated gateway for development.

    Orders get a synthetic id and are remembered in memory so checkout
    verification can match them; every signature verifies.
    """

    name = "mock"

    def __init__(self) -> None:
        self.orders: dict[str, OrderInfo] = {}
        logger.warning("Using mock payment gateway - no real payments will be processed")

    async def create_order(self, plan: Plan, organization: Organization) -> OrderInfo:
        order_id = f"order_mock_{uuid.uuid4().hex[:14]}"
        logger.info(f"Mock order created: {order_id} for organization {organization.id}")
        order = OrderInfo(
            order_id=order_id,
            amount=to_minor_units(plan.price),
            currency=plan.currency,
            receipt=build_receipt(organization.id, plan.id),
            notes={"organization_id": organization.id, "plan_id": plan.id},
        )
        self.orders[order_id] = order
        return order

    async def fetch_order(self, order_id: str) -> OrderInfo | None:
        return self.orders.get(order_id)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return True

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        return True


def build_payment_gateway(config: Settings) -> PaymentGateway:
    """
    Get payment gateway based on configuration.

    Returns:
        RazorpayGateway when key id and secret are set, else MockPaymentGateway
    """
    if config.payments_configured:
        return RazorpayGateway(
            config.razorpay_key_id,
            config.razorpay_key_secret,
            config.razorpay_webhook_secret,
        )
    return MockPaymentGateway()
