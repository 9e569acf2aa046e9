"""
Authentication service handling account creation and login.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, ConflictError, ForbiddenError
from app.core.logging import get_logger
from app.core.security import hash_password, verify_password, create_access_token
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate, role: str = UserRole.USER) -> User:
    """
    Create an account with a hashed password.
    Raises a 409 conflict if the email or username already exists.
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("signup_failed", reason="email_exists", email=user_data.email)
        raise ConflictError("Email already registered", kind="duplicate_account")

    result = await db.execute(select(User).where(User.username == user_data.username))
    if result.scalar_one_or_none():
        logger.warning("signup_failed", reason="username_exists", username=user_data.username)
        raise ConflictError("Username already taken", kind="duplicate_account")

    user = User(
        email=user_data.email,
        username=user_data.username,
        hashed_password=hash_password(user_data.password),
        role=role,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_signed_up", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Check credentials and return a JWT access token.
    Raises 401 if the credentials are invalid, 403 for deactivated accounts.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated", kind="inactive_account")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return token
