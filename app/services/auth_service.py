import logging
from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserRole
from app.core.exceptions import AuthenticationError, ConflictError, PermissionDeniedError
from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
)
from app.schemas.auth import RegisterRequest
from app.config import settings


logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for user login, registration and passwords."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate_user(self, username: str, password: str) -> User:
        """
        Authenticate a user by username and password.

        Raises:
            AuthenticationError: unknown username or wrong password
            PermissionDeniedError: the account has been deactivated
        """
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for username '{username}'")
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            raise PermissionDeniedError("Your account has been deactivated")

        return user

    async def create_token(self, user: User) -> Tuple[str, int]:
        """
        Issue an access token and record the login time.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        additional_claims = {
            "username": user.username,
            "role": user.role,
        }
        access_token = create_access_token(
            subject=user.id,
            additional_claims=additional_claims
        )
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()

        logger.info(f"User logged in: {user.username}")
        return access_token, expires_in

    async def register_user(self, data: RegisterRequest) -> User:
        """Create a user with the configured default role."""
        existing = await self.db.execute(
            select(User.id).where(
                or_(User.username == data.username, User.email == data.email.lower())
            )
        )
        if existing.first() is not None:
            raise ConflictError("Username or email already exists")

        user = User(
            username=data.username,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            full_name=data.full_name,
            phone=data.phone,
            role=UserRole(settings.DEFAULT_REGISTRATION_ROLE).value,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to register user '{data.username}': {e}")
            raise

        logger.info(f"User registered: {user.username} ({user.role})")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = get_password_hash(new_password)
        await self.db.commit()
        logger.info(f"Password changed for {user.username}")
