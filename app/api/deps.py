from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.exceptions import AuthenticationError, PermissionDeniedError
from app.core.security import decode_access_token
from app.core.permissions import check_role
from app.models.user import User, UserRole


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme. auto_error is off so a missing header is
# reported through the application's own 401 envelope.
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access denied. No token provided.")

    user_id = decode_access_token(credentials.credentials)

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise AuthenticationError("Invalid token.")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"Token subject {user_id} does not match any user")
        raise AuthenticationError("Invalid token.")

    if not user.is_active:
        raise PermissionDeniedError("Your account has been deactivated")

    return user


def require_role(role: UserRole):
    """
    Dependency factory to require a minimum role.

    Usage:
        @router.post("/", dependencies=[Depends(require_role(UserRole.CA))])
        async def create_header():
            ...
    """
    async def role_dependency(
        current_user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        check_role(current_user, role)
        return current_user

    return role_dependency


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
CAUser = Annotated[User, Depends(require_role(UserRole.CA))]
DB = Annotated[AsyncSession, Depends(get_db)]
