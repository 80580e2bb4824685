"""
Payment gateways

Thin adapters that turn a charge/refund request into a GatewayResult.
`simulated` settles immediately in-process; `stripe` creates a
PaymentIntent and either settles synchronously (confirmed with a payment
method) or stays pending until the payment_intent.succeeded webhook.
"""
import logging
import secrets
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import stripe

from app.core.config import settings
from app.core.exceptions import PaymentFailedError, ValidationError
from app.core.utils import dollars_to_cents
from app.models import PaymentGateway

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
PENDING = "pending"
FAILED = "failed"

# Stripe's test token for a declined card, honoured by the simulated gateway too
DECLINE_TOKEN = "tok_chargeDeclined"


@dataclass
class GatewayResult:
    status: str
    gateway_payment_id: Optional[str] = None
    client_secret: Optional[str] = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def pending(self) -> bool:
        return self.status == PENDING


class SimulatedGateway:
    name = PaymentGateway.SIMULATED.value

    def charge(
        self,
        amount: Decimal,
        currency: str,
        order_number: str,
        payment_data: Optional[Dict[str, Any]] = None,
    ) -> GatewayResult:
        payment_data = payment_data or {}
        payment_id = f"pay_{int(time.time() * 1000)}{secrets.token_hex(3)}"

        if payment_data.get("token") == DECLINE_TOKEN:
            return GatewayResult(
                status=FAILED,
                gateway_payment_id=payment_id,
                error="Card declined",
                raw={"id": payment_id, "status": FAILED},
            )

        return GatewayResult(
            status=SUCCEEDED,
            gateway_payment_id=payment_id,
            raw={
                "id": payment_id,
                "status": "completed",
                "amount": str(amount),
                "currency": currency,
                "order_number": order_number,
            },
        )

    def refund(self, gateway_payment_id: str, amount: Decimal, reason: Optional[str] = None) -> str:
        return f"re_{int(time.time() * 1000)}{secrets.token_hex(3)}"


class StripeGateway:
    name = PaymentGateway.STRIPE.value

    def __init__(self, api_key: Optional[str] = None):
        stripe.api_key = api_key or settings.STRIPE_SECRET_KEY

    def charge(
        self,
        amount: Decimal,
        currency: str,
        order_number: str,
        payment_data: Optional[Dict[str, Any]] = None,
    ) -> GatewayResult:
        payment_data = payment_data or {}
        payment_method = payment_data.get("payment_method_id")
        params: Dict[str, Any] = {
            "amount": dollars_to_cents(amount),
            "currency": currency.lower(),
            "metadata": {"order_number": order_number},
        }
        if payment_method:
            params.update(payment_method=payment_method, confirm=True)
        else:
            params["automatic_payment_methods"] = {"enabled": True}

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.CardError as e:
            logger.info("stripe_card_declined order_number=%s code=%s", order_number, e.code)
            return GatewayResult(status=FAILED, error=e.user_message or str(e))
        except stripe.StripeError as e:
            logger.error("stripe_charge_error order_number=%s error=%s", order_number, e)
            raise PaymentFailedError("Payment gateway error", details={"gateway": self.name})

        raw = {"id": intent.id, "status": intent.status, "amount": intent.amount}
        if intent.status == "succeeded":
            return GatewayResult(status=SUCCEEDED, gateway_payment_id=intent.id, raw=raw)
        if intent.status in ("canceled", "requires_payment_method") and payment_method:
            return GatewayResult(
                status=FAILED,
                gateway_payment_id=intent.id,
                error="Payment was not accepted",
                raw=raw,
            )
        return GatewayResult(
            status=PENDING,
            gateway_payment_id=intent.id,
            client_secret=intent.client_secret,
            raw=raw,
        )

    def refund(self, gateway_payment_id: str, amount: Decimal, reason: Optional[str] = None) -> str:
        try:
            refund = stripe.Refund.create(
                payment_intent=gateway_payment_id,
                amount=dollars_to_cents(amount),
                metadata={"reason": reason or ""},
            )
        except stripe.StripeError as e:
            logger.error("stripe_refund_error payment_intent=%s error=%s", gateway_payment_id, e)
            raise PaymentFailedError("Refund failed at gateway", details={"gateway": self.name})

        logger.info("stripe_refund_created refund_id=%s payment_intent=%s", refund.id, gateway_payment_id)
        return refund.id


def get_gateway(name: Optional[str] = None):
    """Gateway by name, defaulting to PAYMENT_GATEWAY."""
    name = name or settings.PAYMENT_GATEWAY
    if name == PaymentGateway.SIMULATED.value:
        return SimulatedGateway()
    if name == PaymentGateway.STRIPE.value:
        return StripeGateway()
    raise ValidationError(
        f"Unsupported payment gateway '{name}'",
        errors=[{"field": "gateway", "message": "must be simulated or stripe"}],
    )
