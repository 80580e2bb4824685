"""
Product schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.category import CategoryRef

ProductStatusLiteral = Literal["active", "draft", "archived"]


class ProductImage(BaseModel):
    url: str
    alt_text: Optional[str] = None
    is_primary: bool = False


class ProductAttributes(BaseModel):
    size: List[str] = []
    color: List[str] = []
    material: List[str] = []


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: str = Field(..., min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=300)

    price: Decimal = Field(..., ge=0)
    compare_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)

    sku: Optional[str] = Field(None, max_length=64)
    stock: int = Field(0, ge=0)
    track_quantity: bool = True
    allow_backorder: bool = False

    categories: List[int] = []
    main_category_id: Optional[int] = None

    images: List[ProductImage] = []
    brand: Optional[str] = Field(None, max_length=100)
    attributes: ProductAttributes = ProductAttributes()
    seo: Dict[str, Any] = {}

    status: ProductStatusLiteral = "draft"
    is_featured: bool = False
    is_published: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=300)

    price: Optional[Decimal] = Field(None, ge=0)
    compare_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)

    sku: Optional[str] = Field(None, max_length=64)
    stock: Optional[int] = Field(None, ge=0)
    track_quantity: Optional[bool] = None
    allow_backorder: Optional[bool] = None

    categories: Optional[List[int]] = None
    main_category_id: Optional[int] = None

    images: Optional[List[ProductImage]] = None
    brand: Optional[str] = Field(None, max_length=100)
    attributes: Optional[ProductAttributes] = None
    seo: Optional[Dict[str, Any]] = None

    status: Optional[ProductStatusLiteral] = None
    is_featured: Optional[bool] = None
    is_published: Optional[bool] = None


class ProductSummary(BaseModel):
    """Compact product shape used inside carts and search results."""
    id: int
    name: str
    slug: str
    sku: str
    price: float
    stock: int = 0
    primary_image_url: str = ""
    is_available: bool = False

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str
    short_description: Optional[str] = None

    price: float
    compare_price: Optional[float] = None

    sku: str
    stock: int = 0
    track_quantity: bool = True
    allow_backorder: bool = False

    categories: List[CategoryRef] = []
    main_category: Optional[CategoryRef] = None

    images: List[ProductImage] = []
    brand: Optional[str] = None
    attributes: Dict[str, Any] = {}
    seo: Dict[str, Any] = {}

    views: int = 0
    sales_count: int = 0
    average_rating: float = 0.0
    reviews_count: int = 0

    status: str
    is_featured: bool = False
    is_published: bool = False
    is_available: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Handle NULL values from database
    @field_validator("views", "sales_count", "reviews_count", "stock", mode="before")
    @classmethod
    def default_int(cls, v):
        return v if v is not None else 0

    @field_validator("average_rating", mode="before")
    @classmethod
    def default_float(cls, v):
        return v if v is not None else 0.0

    @field_validator("images", mode="before")
    @classmethod
    def default_list(cls, v):
        return v if v is not None else []

    @field_validator("attributes", "seo", mode="before")
    @classmethod
    def default_dict(cls, v):
        return v if v is not None else {}

    class Config:
        from_attributes = True
