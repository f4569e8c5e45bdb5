from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


class LoginRequest(BaseModel):
    """Login request schema."""
    username: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1, description="User password")


class RegisterRequest(BaseCreateSchema):
    """Self-registration. The role is assigned by the server."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password")
    full_name: str = Field(..., min_length=1, max_length=150)
    phone: Optional[str] = Field(None, max_length=20)


class ChangePasswordRequest(BaseCreateSchema):
    """Accepts both snake_case and the camelCase keys used by the web client."""
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=6, alias="newPassword")


class UserResponse(BaseResponseSchema):
    """User profile without credentials."""
    id: UUID
    username: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class LoginResponse(BaseModel):
    """Token response schema."""
    success: bool = True
    message: str
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")
    user: UserResponse


class ProfileResponse(BaseModel):
    success: bool = True
    user: UserResponse
