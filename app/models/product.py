"""
Product model

Products are archived (status=archived), never hard-deleted, so order
history keeps its product references.

Stock is only ever mutated through OrderService (reserve / cancel /
refund) using conditional UPDATE statements; see app.services.order_service.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, JSON, Numeric, Float,
    ForeignKey, Table, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.utils import utcnow


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=False)
    short_description = Column(String(300))

    # Pricing
    price = Column(Numeric(12, 2), nullable=False)
    compare_price = Column(Numeric(12, 2))
    cost_price = Column(Numeric(12, 2))

    # Inventory
    sku = Column(String(64), unique=True, index=True, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    track_quantity = Column(Boolean, default=True, nullable=False)
    allow_backorder = Column(Boolean, default=False, nullable=False)

    # Categorization
    main_category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    # Media: [{"url": ..., "alt_text": ..., "is_primary": bool}]
    images = Column(JSON, default=list)

    brand = Column(String(100))
    # {"size": [...], "color": [...], "material": [...]}
    attributes = Column(JSON, default=dict)
    seo = Column(JSON, default=dict)

    # Metrics
    views = Column(Integer, default=0)
    sales_count = Column(Integer, default=0)
    average_rating = Column(Float, default=0.0)
    reviews_count = Column(Integer, default=0)

    # State
    status = Column(String(20), default=ProductStatus.DRAFT.value, nullable=False, index=True)
    is_featured = Column(Boolean, default=False, index=True)
    is_published = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    categories = relationship("Category", secondary=product_categories, lazy="selectin")
    main_category = relationship("Category", foreign_keys=[main_category_id], lazy="selectin")
    reviews = relationship("Review", back_populates="product")

    __table_args__ = (
        Index("ix_products_status_published", "status", "is_published"),
        Index("ix_products_price", "price"),
        CheckConstraint("stock >= 0", name="check_stock_non_negative"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, sku='{self.sku}')>"

    @property
    def is_available(self) -> bool:
        """active AND published AND (stock > 0 OR backorder allowed)"""
        return (
            self.status == ProductStatus.ACTIVE.value
            and bool(self.is_published)
            and ((self.stock or 0) > 0 or bool(self.allow_backorder))
        )

    @property
    def primary_image_url(self) -> str:
        images = self.images or []
        for image in images:
            if image.get("is_primary"):
                return image.get("url", "")
        return images[0].get("url", "") if images else ""
