"""
Passwords and bearer tokens

Passwords are bcrypt hashes. Access tokens are HS256 JWTs:
    {"sub": "<user id>", "role": ..., "type": "access", "jti", "iat", "exp"}
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings

ACCESS_TOKEN_TYPE = "access"


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False for a wrong password and for a stored value that is not a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)

    payload = dict(claims)
    if "sub" in payload:
        # jose only accepts string subjects
        payload["sub"] = str(payload["sub"])
    payload.update(
        type=ACCESS_TOKEN_TYPE,
        jti=uuid.uuid4().hex,
        iat=issued_at,
        exp=issued_at + lifetime,
    )
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid, unexpired token signed with SECRET_KEY; otherwise None."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
