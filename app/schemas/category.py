"""
Category schemas
"""
from typing import Optional

from pydantic import BaseModel, Field


class CategoryRef(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = ""
    parent_id: Optional[int] = None
    is_active: bool = True
    sort_order: int = 0
    featured: bool = False


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    featured: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    parent: Optional[CategoryRef] = None
    is_active: bool = True
    sort_order: int = 0
    featured: bool = False

    class Config:
        from_attributes = True
