"""
Category routes

Public reads of active categories; admin create/update/deactivate.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.api.responses import success_response
from app.core.database import get_db
from app.models.user import User
from app.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from app.services.catalog_service import CategoryService

router = APIRouter()


@router.get("/")
async def list_categories(db: AsyncSession = Depends(get_db)):
    categories = await CategoryService.list_active(db)
    return success_response([CategoryResponse.model_validate(c) for c in categories])


@router.get("/{slug}")
async def get_category(slug: str, db: AsyncSession = Depends(get_db)):
    category = await CategoryService.get_by_slug(db, slug)
    return success_response(CategoryResponse.model_validate(category))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    category = await CategoryService.create(db, data.model_dump())
    await db.commit()
    return success_response(CategoryResponse.model_validate(category), message="Category created successfully")


@router.put("/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    category = await CategoryService.update(db, category_id, data.model_dump(exclude_unset=True))
    await db.commit()
    return success_response(CategoryResponse.model_validate(category), message="Category updated successfully")


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: the category is deactivated, products keep their links."""
    await CategoryService.deactivate(db, category_id)
    await db.commit()
    return success_response(message="Category deactivated successfully")
