"""
UserService - registration, login and profile updates
"""
import logging
from typing import Any, Dict, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthError, DuplicateKeyError
from app.core.security import create_access_token, get_password_hash, verify_password
from app.core.utils import utcnow
from app.models import User, UserRole

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone")


class UserService:

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str):
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token({"sub": user.id, "role": user.role})

    @staticmethod
    async def register(db: AsyncSession, data: Dict[str, Any]) -> Tuple[User, str]:
        email = data["email"].lower()
        if await UserService.get_by_email(db, email) is not None:
            raise DuplicateKeyError("Email already registered", field="email")

        user = User(
            email=email,
            hashed_password=get_password_hash(data["password"]),
            first_name=data["first_name"],
            last_name=data["last_name"],
            phone=data.get("phone"),
            role=UserRole.CUSTOMER.value,
            is_active=True,
        )
        db.add(user)
        await db.flush()

        logger.info("user_registered user_id=%s", user.id)
        return user, UserService.issue_token(user)

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> Tuple[User, str]:
        user = await UserService.get_by_email(db, email)
        # Same message for unknown email and wrong password
        if user is None or not verify_password(password, user.hashed_password):
            logger.info("login_failed email_known=%s", user is not None)
            raise AuthError("Invalid email or password", code="INVALID_CREDENTIALS")
        if not user.is_active:
            raise AuthError("Account is inactive", code="ACCOUNT_INACTIVE")

        user.last_login_at = utcnow()
        await db.flush()
        logger.info("login_succeeded user_id=%s", user.id)
        return user, UserService.issue_token(user)

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: Dict[str, Any]) -> User:
        for key in PROFILE_FIELDS:
            if data.get(key) is not None:
                setattr(user, key, data[key])
        if data.get("password"):
            user.hashed_password = get_password_hash(data["password"])
            logger.info("password_changed user_id=%s", user.id)
        await db.flush()
        return user


user_service = UserService()
