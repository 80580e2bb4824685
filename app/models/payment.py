"""
Payment models

One Payment row per settlement attempt. Refunds are appended as
PaymentRefund rows; the original payment row is never replaced.
"""
import enum
from decimal import Decimal

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, Numeric
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.utils import utcnow


class PaymentGateway(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    MERCADOPAGO = "mercadopago"
    TRANSFER = "transfer"
    SIMULATED = "simulated"


class PaymentRecordStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    payment_method = Column(String(50), nullable=False)
    gateway = Column(String(20), nullable=False)
    gateway_payment_id = Column(String(120), index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="USD")
    status = Column(String(20), default=PaymentRecordStatus.PENDING.value, index=True)

    gateway_response = Column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    order = relationship("Order", back_populates="payments")
    refunds = relationship(
        "PaymentRefund",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentRefund.id",
        lazy="selectin",
    )

    @property
    def refunded_amount(self) -> Decimal:
        return sum((Decimal(r.amount) for r in self.refunds), Decimal("0.00"))


class PaymentRefund(Base):
    __tablename__ = "payment_refunds"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String(255))
    gateway_refund_id = Column(String(120))

    created_at = Column(DateTime(timezone=True), default=utcnow)

    payment = relationship("Payment", back_populates="refunds")
