"""
Order models

An order is a detached snapshot of a cart at checkout time: item name,
image, sku, unit price and attributes are copied, and the totals are
frozen. Nothing here references live product fields, so later catalog
edits never change historical orders.
"""
import enum

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON, Numeric, Index
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.utils import utcnow


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(40), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # {"email", "first_name", "last_name", "phone"}
    customer_info = Column(JSON, nullable=False)

    status = Column(String(20), default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False, index=True)

    # Frozen totals
    subtotal = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)

    shipping_address = Column(JSON)
    billing_address = Column(JSON)
    shipping_method = Column(String(30), nullable=False)
    tracking_number = Column(String(100))
    estimated_delivery = Column(DateTime(timezone=True))

    # Payment
    payment_method = Column(String(50), nullable=False)
    payment_id = Column(String(120), index=True)  # gateway payment id
    paid_at = Column(DateTime(timezone=True))

    # True once stock was decremented for this order
    stock_reserved = Column(Boolean, default=False, nullable=False)

    customer_notes = Column(Text)
    admin_notes = Column(Text)
    coupon = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )
    payments = relationship("Payment", back_populates="order", order_by="Payment.id")

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Order(number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot of product at time of order
    product_name = Column(String(100), nullable=False)
    product_image = Column(String, nullable=False, default="")
    sku = Column(String(64), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    attributes = Column(JSON, default=dict)

    # Units actually taken from stock on reservation; restored on cancel
    reserved_quantity = Column(Integer, default=0, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")
