"""
PaymentService - charging, settlement, webhooks and refunds

settle() is the only path that marks an order paid. It flips
payment_status with a guarded UPDATE so that of two concurrent settlements
(client call racing a webhook, or a webhook delivered twice) exactly one
wins and reserves stock; the loser gets AlreadyPaidError.
"""
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AlreadyPaidError,
    NotFoundError,
    PaymentFailedError,
    StateError,
    StockError,
    ValidationError,
)
from app.core.utils import to_money, utcnow
from app.models import (
    Order,
    OrderStatus,
    Payment,
    PaymentRecordStatus,
    PaymentRefund,
    PaymentStatus,
)
from app.services.order_service import OrderService
from app.services.payment_gateway import get_gateway

logger = logging.getLogger(__name__)

SUCCESS_EVENTS = ("payment.succeeded", "payment_intent.succeeded")
FAILURE_EVENTS = ("payment.failed", "payment_intent.payment_failed")
OUT_OF_STOCK_REASON = "out of stock after charge"


class PaymentResult:
    """Result of a payment attempt."""

    def __init__(
        self,
        success: bool,
        order: Optional[Order] = None,
        payment: Optional[Payment] = None,
        client_secret: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.success = success
        self.order = order
        self.payment = payment
        self.client_secret = client_secret
        self.error = error

    @property
    def pending(self) -> bool:
        return self.success and self.client_secret is not None


class PaymentService:

    @staticmethod
    async def process_payment(
        db: AsyncSession,
        order: Order,
        payment_method: str,
        payment_data: Optional[Dict[str, Any]] = None,
        gateway=None,
    ) -> PaymentResult:
        """
        Charge the order total through the configured gateway.

        A declined charge is recorded (failed Payment row, order
        payment_status=failed) and reported through the result; the caller
        commits that state before surfacing PaymentFailedError. A charge
        that succeeds after the stock has gone is refunded, committed and
        then surfaced as StockError.
        """
        start = time.monotonic()
        if order.payment_status == PaymentStatus.PAID.value:
            raise AlreadyPaidError("Order has already been paid", current=order.payment_status)
        if order.status != OrderStatus.PENDING.value:
            raise StateError(
                f"Cannot pay an order in status {order.status}",
                current=order.status,
            )

        # Refuse before charging when stock is already short
        await OrderService.check_stock(db, order)

        gateway = gateway or get_gateway()
        result = gateway.charge(
            to_money(order.total_amount),
            settings.CURRENCY,
            order.order_number,
            payment_data,
        )

        payment = Payment(
            order_id=order.id,
            user_id=order.user_id,
            payment_method=payment_method,
            gateway=gateway.name,
            gateway_payment_id=result.gateway_payment_id,
            amount=order.total_amount,
            currency=settings.CURRENCY,
            gateway_response=result.raw,
            extra={"order_number": order.order_number},
            refunds=[],
        )
        db.add(payment)

        if result.succeeded:
            payment.status = PaymentRecordStatus.COMPLETED.value
            try:
                async with db.begin_nested():
                    await PaymentService.settle(db, order, payment_method, result.gateway_payment_id)
            except StockError:
                # The charge is captured; keep its record and give the money back
                await PaymentService._refund_unfulfilled(db, order, payment, gateway)
                raise
            outcome = PaymentResult(success=True, order=order, payment=payment)
        elif result.pending:
            payment.status = PaymentRecordStatus.PENDING.value
            order.payment_id = result.gateway_payment_id
            order.payment_method = payment_method
            await db.flush()
            outcome = PaymentResult(
                success=True,
                order=order,
                payment=payment,
                client_secret=result.client_secret,
            )
        else:
            payment.status = PaymentRecordStatus.FAILED.value
            order.payment_status = PaymentStatus.FAILED.value
            await db.flush()
            outcome = PaymentResult(success=False, order=order, payment=payment, error=result.error)

        logger.info(
            "payment_processed order_number=%s gateway=%s status=%s amount=%s duration_ms=%.2f",
            order.order_number,
            gateway.name,
            result.status,
            order.total_amount,
            (time.monotonic() - start) * 1000,
        )
        return outcome

    @staticmethod
    async def _refund_unfulfilled(db: AsyncSession, order: Order, payment: Payment, gateway) -> None:
        """
        Stock ran out between the charge and the reservation. The settlement
        savepoint is already rolled back; refund the captured charge and
        commit the payment record so the money is never untracked. When the
        gateway refund itself fails the payment stays completed and is
        flagged with refund_required for an admin refund.
        """
        await db.refresh(order)
        await db.refresh(payment)
        amount = to_money(payment.amount)

        try:
            gateway_refund_id = gateway.refund(payment.gateway_payment_id, amount, OUT_OF_STOCK_REASON)
        except PaymentFailedError:
            payment.extra = {**(payment.extra or {}), "refund_required": True}
            logger.error(
                "payment_refund_required order_number=%s payment_id=%s amount=%s",
                order.order_number, payment.gateway_payment_id, amount,
            )
        else:
            payment.refunds.append(PaymentRefund(
                amount=amount,
                reason=OUT_OF_STOCK_REASON,
                gateway_refund_id=gateway_refund_id,
            ))
            payment.status = PaymentRecordStatus.REFUNDED.value
            logger.warning(
                "payment_refunded_out_of_stock order_number=%s payment_id=%s amount=%s",
                order.order_number, payment.gateway_payment_id, amount,
            )

        order.payment_status = PaymentStatus.FAILED.value
        await db.commit()

    @staticmethod
    async def settle(
        db: AsyncSession,
        order: Order,
        payment_method: Optional[str],
        gateway_payment_id: Optional[str],
    ) -> Order:
        """Mark the order paid exactly once, then reserve its stock."""
        values = {
            "payment_status": PaymentStatus.PAID.value,
            "paid_at": utcnow(),
            "payment_id": gateway_payment_id,
        }
        if payment_method:
            values["payment_method"] = payment_method

        result = await db.execute(
            update(Order)
            .where(Order.id == order.id, Order.payment_status != PaymentStatus.PAID.value)
            .values(**values)
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        if result.first() is None:
            raise AlreadyPaidError("Order has already been paid", current=PaymentStatus.PAID.value)

        await db.refresh(order, attribute_names=list(values))

        if order.status == OrderStatus.PENDING.value:
            await OrderService.reserve(db, order)
        else:
            logger.warning(
                "order_paid_not_pending order_number=%s status=%s",
                order.order_number, order.status,
            )

        logger.info(
            "order_settled order_number=%s payment_id=%s",
            order.order_number, gateway_payment_id,
        )
        return order

    @staticmethod
    async def find_order_by_payment_id(db: AsyncSession, gateway_payment_id: str) -> Optional[Order]:
        result = await db.execute(
            select(Order)
            .outerjoin(Payment, Payment.order_id == Order.id)
            .where(or_(
                Order.payment_id == gateway_payment_id,
                Payment.gateway_payment_id == gateway_payment_id,
            ))
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def _payments_for(db: AsyncSession, order_id: int, gateway_payment_id: str) -> List[Payment]:
        result = await db.execute(
            select(Payment).where(
                Payment.order_id == order_id,
                Payment.gateway_payment_id == gateway_payment_id,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def handle_event(db: AsyncSession, event: Dict[str, Any]) -> str:
        """
        Apply a gateway event. Returns a short status for the webhook response.

        Success for an already paid order is a no-op, so duplicate deliveries
        reserve stock once. Failure never touches stock and never downgrades
        a paid order.
        """
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        gateway_payment_id = obj.get("id")

        if event_type not in SUCCESS_EVENTS + FAILURE_EVENTS:
            logger.info("webhook_ignored type=%s", event_type)
            return "ignored"
        if not gateway_payment_id:
            logger.warning("webhook_missing_payment_id type=%s", event_type)
            return "ignored"

        order = await PaymentService.find_order_by_payment_id(db, gateway_payment_id)
        if order is None:
            logger.warning("webhook_unknown_payment type=%s payment_id=%s", event_type, gateway_payment_id)
            return "ignored"

        payments = await PaymentService._payments_for(db, order.id, gateway_payment_id)

        if event_type in FAILURE_EVENTS:
            if order.payment_status == PaymentStatus.PAID.value:
                logger.warning("webhook_failure_for_paid_order order_number=%s", order.order_number)
                return "ignored"
            order.payment_status = PaymentStatus.FAILED.value
            for payment in payments:
                payment.status = PaymentRecordStatus.FAILED.value
            await db.flush()
            logger.info("webhook_payment_failed order_number=%s payment_id=%s", order.order_number, gateway_payment_id)
            return "payment_failed"

        if order.payment_status == PaymentStatus.PAID.value:
            logger.info("webhook_duplicate order_number=%s payment_id=%s", order.order_number, gateway_payment_id)
            return "already_processed"

        if payments:
            for payment in payments:
                payment.status = PaymentRecordStatus.COMPLETED.value
        else:
            db.add(Payment(
                order_id=order.id,
                user_id=order.user_id,
                payment_method=order.payment_method,
                gateway="stripe" if event_type.startswith("payment_intent") else settings.PAYMENT_GATEWAY,
                gateway_payment_id=gateway_payment_id,
                amount=order.total_amount,
                currency=settings.CURRENCY,
                status=PaymentRecordStatus.COMPLETED.value,
                gateway_response=obj,
                refunds=[],
            ))

        try:
            await PaymentService.settle(db, order, None, gateway_payment_id)
        except AlreadyPaidError:
            return "already_processed"

        logger.info("webhook_payment_succeeded order_number=%s payment_id=%s", order.order_number, gateway_payment_id)
        return "processed"

    @staticmethod
    async def process_webhook(db: AsyncSession, event: Dict[str, Any]) -> str:
        """Run handle_event inside the caller's transaction and commit it."""
        try:
            status = await PaymentService.handle_event(db, event)
        except StockError as e:
            await db.rollback()
            logger.error(
                "webhook_stock_error type=%s details=%s",
                event.get("type"), e.details,
            )
            return "stock_error"
        await db.commit()
        return status

    @staticmethod
    async def refund(
        db: AsyncSession,
        payment_id: int,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
        gateway=None,
    ) -> Payment:
        """
        Append a refund to a completed payment.

        Omitting amount refunds whatever remains. A full refund restores
        stock for orders that have not shipped.
        """
        payment = await db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", details={"payment_id": payment_id})
        if payment.status != PaymentRecordStatus.COMPLETED.value:
            raise StateError(
                f"Cannot refund a {payment.status} payment",
                current=payment.status,
                requested=PaymentRecordStatus.REFUNDED.value,
            )

        remaining = to_money(payment.amount) - payment.refunded_amount
        amount = remaining if amount is None else to_money(amount)
        if amount <= 0 or amount > remaining:
            raise ValidationError(
                f"Refund amount must be between 0.01 and {remaining}",
                errors=[{"field": "amount", "message": f"must be <= {remaining}"}],
            )

        gateway = gateway or get_gateway(payment.gateway)
        gateway_refund_id = gateway.refund(payment.gateway_payment_id, amount, reason)
        payment.refunds.append(PaymentRefund(
            amount=amount,
            reason=reason,
            gateway_refund_id=gateway_refund_id,
        ))

        order = await db.get(Order, payment.order_id)
        if amount == remaining:
            payment.status = PaymentRecordStatus.REFUNDED.value
            order.payment_status = PaymentStatus.REFUNDED.value
            if order.status not in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value):
                await OrderService.restore_stock(db, order)
            if order.status != OrderStatus.CANCELLED.value:
                order.status = OrderStatus.REFUNDED.value
        else:
            order.payment_status = PaymentStatus.PARTIALLY_REFUNDED.value

        await db.flush()
        logger.info(
            "payment_refunded order_number=%s payment_id=%s amount=%s full=%s",
            order.order_number, payment.id, amount, amount == remaining,
        )
        return payment

    @staticmethod
    async def list_for_order(db: AsyncSession, user_id: int, order_id: int) -> List[Payment]:
        order = await OrderService.get_user_order(db, user_id, order_id)
        result = await db.execute(
            select(Payment).where(Payment.order_id == order.id).order_by(Payment.id)
        )
        return list(result.scalars().all())


payment_service = PaymentService()
