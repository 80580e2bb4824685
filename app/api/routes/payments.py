"""
Payment routes

POST /process charges an order through the configured gateway.
POST /webhook is public; when STRIPE_WEBHOOK_SECRET is set the
Stripe-Signature header is verified before anything is applied.
"""
import json
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_current_user
from app.api.responses import success_response
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import PaymentFailedError, ValidationError
from app.core.rate_limit import limiter
from app.models.user import User
from app.schemas.order import OrderResponse
from app.schemas.payment import PaymentProcess, PaymentResponse, RefundCreate
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/process")
@limiter.limit(settings.RATE_LIMIT_PAYMENT)
async def process_payment(
    request: Request,
    payload: PaymentProcess,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await OrderService.get_user_order(db, current_user.id, payload.order_id)
    result = await PaymentService.process_payment(
        db, order, payload.payment_method, payload.payment_data,
    )
    # Failed attempts are recorded before the error is raised
    await db.commit()

    if not result.success:
        raise PaymentFailedError(
            result.error or "Payment failed",
            details={"order_number": order.order_number},
        )

    if result.pending:
        return success_response(
            {
                "order": OrderResponse.model_validate(order),
                "payment": PaymentResponse.model_validate(result.payment),
                "client_secret": result.client_secret,
            },
            message="Payment requires confirmation",
        )

    return success_response(
        {
            "order": OrderResponse.model_validate(order),
            "payment": PaymentResponse.model_validate(result.payment),
        },
        message="Payment processed successfully",
    )


@router.post("/webhook")
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Gateway callback. Always acknowledged once the payload is accepted."""
    payload = await request.body()

    if settings.STRIPE_WEBHOOK_SECRET:
        sig_header = request.headers.get("stripe-signature")
        if not sig_header:
            logger.warning("Webhook missing signature header")
            raise ValidationError("Missing signature", code="INVALID_SIGNATURE")
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError as e:
            logger.warning(f"Webhook invalid payload: {e}")
            raise ValidationError("Invalid payload", code="INVALID_PAYLOAD")
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValidationError("Invalid signature", code="INVALID_SIGNATURE")
        event = event.to_dict() if hasattr(event, "to_dict") else dict(event)
    else:
        try:
            event = json.loads(payload or b"{}")
        except ValueError:
            raise ValidationError("Invalid payload", code="INVALID_PAYLOAD")
        if not isinstance(event, dict):
            raise ValidationError("Invalid payload", code="INVALID_PAYLOAD")

    logger.info(f"Webhook received: {event.get('type')} (event_id={event.get('id')})")
    outcome = await PaymentService.process_webhook(db, event)
    return {"received": True, "status": outcome}


@router.post("/{payment_id}/refunds")
async def refund_payment(
    payment_id: int,
    payload: RefundCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    payment = await PaymentService.refund(db, payment_id, amount=payload.amount, reason=payload.reason)
    await db.commit()
    return success_response(PaymentResponse.model_validate(payment), message="Refund processed")


@router.get("/order/{order_id}")
async def order_payments(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payments = await PaymentService.list_for_order(db, current_user.id, order_id)
    return success_response([PaymentResponse.model_validate(p) for p in payments])
