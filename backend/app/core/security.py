"""
Password hashing, JWT access tokens and the authenticated caller.

Routes never hand ORM users to the service layer. The current user is reduced
to a `Caller` (user id + role), which each lifecycle operation receives and
checks explicitly.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import AuthenticationError, ForbiddenError
from app.db.session import get_db
from app.models.user import User, UserRole

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_act_for(self, owner_id: int) -> bool:
        return self.is_admin or self.user_id == owner_id


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {**data, "iat": now, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried in the token's `sub` claim."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, decode_access_token(token))
    if user is None:
        raise AuthenticationError("Invalid or expired token")
    if not user.is_active:
        raise ForbiddenError("Account is deactivated", kind="inactive_account")
    return user


async def get_current_caller(user: User = Depends(get_current_user)) -> Caller:
    return Caller(user_id=user.id, role=user.role)


async def require_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")
    return caller
