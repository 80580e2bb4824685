"""
Product catalog routes

Listing, featured and search are public and only ever show published
products. Writes need admin or moderator; DELETE archives.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_catalog_editor, get_current_admin
from app.api.responses import success_response
from app.core.database import get_db
from app.models.user import User
from app.schemas.common import Pagination
from app.schemas.product import ProductCreate, ProductResponse, ProductSummary, ProductUpdate
from app.services.catalog_service import ProductService

router = APIRouter()

SortField = Literal["created_at", "price", "name", "average_rating", "sales_count", "views"]


@router.get("/")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    sort: SortField = "created_at",
    order: Literal["asc", "desc"] = "desc",
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    featured: Optional[bool] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    product_status: Literal["active", "draft", "archived"] = Query("active", alias="status"),
    db: AsyncSession = Depends(get_db)
):
    products, total = await ProductService.list_products(
        db,
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        featured=featured,
        in_stock=in_stock,
        status=product_status,
    )
    return success_response(
        [ProductResponse.model_validate(p) for p in products],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/featured")
async def featured_products(db: AsyncSession = Depends(get_db)):
    products = await ProductService.featured(db)
    return success_response([ProductResponse.model_validate(p) for p in products])


@router.get("/search/{query}")
async def search_products(
    query: str,
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db)
):
    products = await ProductService.search(db, query, limit=limit)
    return success_response([ProductSummary.model_validate(p) for p in products])


@router.get("/{slug}")
async def get_product(slug: str, db: AsyncSession = Depends(get_db)):
    """Product detail; each read counts as a view."""
    product = await ProductService.get_by_slug(db, slug)
    await db.commit()
    return success_response(ProductResponse.model_validate(product))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    editor: User = Depends(get_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    product = await ProductService.create(db, data.model_dump())
    await db.commit()
    return success_response(ProductResponse.model_validate(product), message="Product created successfully")


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdate,
    editor: User = Depends(get_catalog_editor),
    db: AsyncSession = Depends(get_db)
):
    product = await ProductService.update(db, product_id, data.model_dump(exclude_unset=True))
    await db.commit()
    return success_response(ProductResponse.model_validate(product), message="Product updated successfully")


@router.delete("/{product_id}")
async def archive_product(
    product_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await ProductService.archive(db, product_id)
    await db.commit()
    return success_response(message="Product archived successfully")
