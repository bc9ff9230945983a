"""Auth router - current identity."""

from fastapi import APIRouter, Depends

from app.core.security import get_current_user, AuthenticatedUser
from app.schemas.auth import CurrentUserResponse
from app.schemas.base import ApiResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=ApiResponse[CurrentUserResponse])
async def get_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Return the authenticated user and their account role."""
    return ApiResponse(
        message="Current user",
        data=CurrentUserResponse(
            uid=current_user.uid,
            email=current_user.email,
            email_verified=current_user.email_verified,
            db_user_id=str(current_user.db_user_id) if current_user.db_user_id else None,
            full_name=current_user.full_name,
            role=current_user.role,
        ),
    )
