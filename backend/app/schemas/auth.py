"""Auth schemas."""

from typing import Optional

from app.models.enums import UserRole
from app.schemas.base import BaseSchema


class CurrentUserResponse(BaseSchema):
    """Current authenticated user info."""

    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    db_user_id: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[UserRole] = None
