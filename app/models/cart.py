"""
Cart models

One cart per user. Line items keep a unit price snapshot taken when the
product was added. Totals (subtotal, discount, tax, total) are never
stored; see app.services.pricing.
"""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, JSON, Index
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.utils import utcnow


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    # Coupon snapshot, empty when none applied
    coupon_code = Column(String(50), nullable=True)
    coupon_discount = Column(Numeric(12, 2), nullable=True)
    coupon_type = Column(String(20), nullable=True)  # percentage, fixed

    shipping_address = Column(JSON, nullable=True)
    shipping_method = Column(String(30), default="standard")
    shipping_cost = Column(Numeric(12, 2), default=0)
    tax_rate = Column(Numeric(5, 2), default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="cart")
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
        lazy="selectin",
    )

    @property
    def coupon(self):
        if not self.coupon_code:
            return None
        return {
            "code": self.coupon_code,
            "discount": self.coupon_discount,
            "type": self.coupon_type,
        }

    def clear_coupon(self):
        self.coupon_code = None
        self.coupon_discount = None
        self.coupon_type = None


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Integer, default=1, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)  # unit price at add time
    # {"size": ..., "color": ..., "material": ...}
    attributes = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    cart = relationship("Cart", back_populates="items")
    product = relationship("Product", lazy="selectin")

    __table_args__ = (
        Index("ix_cart_items_cart_product", "cart_id", "product_id"),
    )
