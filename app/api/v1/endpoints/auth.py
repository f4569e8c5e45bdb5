from fastapi import APIRouter, status

from app.api.deps import DB, CurrentUser
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    ChangePasswordRequest,
    LoginResponse,
    ProfileResponse,
    UserResponse,
)
from app.schemas.base import ApiResponse, MessageResponse
from app.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, db: DB):
    """
    Authenticate by username and password and return a bearer token.
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(data.username, data.password)
    token, expires_in = await auth_service.create_token(user)

    return LoginResponse(
        message="Login successful",
        token=token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(data: RegisterRequest, db: DB):
    user = await AuthService(db).register_user(data)
    return ApiResponse(
        message="User registered successfully",
        data=UserResponse.model_validate(user),
    )


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: CurrentUser):
    """Get current authenticated user's profile."""
    return ProfileResponse(user=UserResponse.model_validate(current_user))


@router.get("/me", response_model=ProfileResponse)
async def get_current_user_info(current_user: CurrentUser):
    return ProfileResponse(user=UserResponse.model_validate(current_user))


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser):
    """
    Tokens are stateless; the client discards its token.
    """
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse)
@router.put("/change-password", response_model=MessageResponse, include_in_schema=False)
async def change_password(data: ChangePasswordRequest, current_user: CurrentUser, db: DB):
    await AuthService(db).change_password(current_user, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully")
