"""
API dependencies
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthError, PermissionDeniedError
from app.core.security import ACCESS_TOKEN_TYPE, decode_token
from app.models.user import User, UserRole

security = HTTPBearer(auto_error=False)


async def _user_from_token(db: AsyncSession, token: str) -> Optional[User]:
    payload = decode_token(token)
    if not payload or payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    return await db.get(User, user_id)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    if not credentials:
        raise AuthError("Not authenticated", code="TOKEN_MISSING")

    user = await _user_from_token(db, credentials.credentials)
    if not user:
        raise AuthError("Invalid or expired token", code="TOKEN_INVALID")
    if not user.is_active:
        raise AuthError("Account is disabled", code="ACCOUNT_INACTIVE")
    return user


def require_role(*roles: str):
    """Dependency factory: authenticated user holding one of roles."""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                "Insufficient permissions",
                details={"required": sorted(allowed)},
            )
        return user

    return checker


get_current_admin = require_role(UserRole.ADMIN)
get_catalog_editor = require_role(UserRole.ADMIN, UserRole.MODERATOR)

