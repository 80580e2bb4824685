"""
Authentication routes

Register/login are rate limited (RATE_LIMIT_AUTH) against brute force.
Bearer tokens only; see app.api.deps.get_current_user.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.responses import success_response
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models.user import User
from app.schemas.user import AuthResponse, UserCreate, UserLogin, UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def register(
    request: Request,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new customer account and return a token."""
    user, token = await UserService.register(db, user_data.model_dump())
    await db.commit()
    return success_response(
        AuthResponse(token=token, user=UserResponse.model_validate(user)),
        message="User registered successfully",
    )


@router.post("/login")
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    user, token = await UserService.authenticate(db, credentials.email, credentials.password)
    await db.commit()
    return success_response(
        AuthResponse(token=token, user=UserResponse.model_validate(user)),
        message="Login successful",
    )


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return success_response(UserResponse.model_validate(current_user))


@router.put("/profile")
async def update_profile(
    update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await UserService.update_profile(db, current_user, update.model_dump(exclude_unset=True))
    await db.commit()
    return success_response(UserResponse.model_validate(user), message="Profile updated successfully")
