"""
Category model

Flat parent-referencing hierarchy. Categories are soft-deactivated
(is_active=False), never deleted, so product links stay intact.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.utils import utcnow


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(80), unique=True, index=True, nullable=False)
    description = Column(String(500))
    image = Column(String, default="")

    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    featured = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    parent = relationship("Category", remote_side=[id], lazy="selectin")

    __table_args__ = (
        Index("ix_categories_active_order", "is_active", "sort_order"),
    )

    def __repr__(self):
        return f"<Category(id={self.id}, slug='{self.slug}')>"
