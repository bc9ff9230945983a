"""Firebase JWT verification and role-based access dependencies."""

from typing import Any, Optional
from uuid import UUID

import firebase_admin
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth, credentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db
from app.models.enums import UserRole
from app.models.user import User

security = HTTPBearer(auto_error=False)


def init_firebase() -> None:
    """Initialize the Firebase Admin SDK once."""
    if firebase_admin._apps:
        return
    settings = get_settings()
    if settings.google_application_credentials:
        cred = credentials.Certificate(settings.google_application_credentials)
        firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
        firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})


class AuthenticatedUser:
    """Represents an authenticated user from Firebase JWT."""

    def __init__(
        self,
        uid: str,
        email: Optional[str] = None,
        email_verified: bool = False,
        claims: Optional[dict[str, Any]] = None,
    ):
        self.uid = uid
        self.email = email
        self.email_verified = email_verified
        self.claims = claims or {}
        self.db_user_id: Optional[UUID] = None
        self.role: Optional[UserRole] = None
        self.full_name: Optional[str] = None


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_firebase_token(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """Verify the Firebase ID token from the Authorization header or auth cookie.

    This dependency NEVER mints JWTs - it only verifies tokens issued by Firebase.
    """
    token = bearer.credentials if bearer else request.cookies.get(get_settings().auth_cookie_name)
    if not token:
        raise _unauthenticated("Not authenticated")

    init_firebase()
    try:
        decoded_token = auth.verify_id_token(token)
    except auth.ExpiredIdTokenError:
        raise _unauthenticated("Token has expired")
    except auth.InvalidIdTokenError:
        raise _unauthenticated("Invalid authentication token")
    except Exception as e:
        raise _unauthenticated(f"Token verification failed: {str(e)}")

    return AuthenticatedUser(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        email_verified=decoded_token.get("email_verified", False),
        claims=decoded_token,
    )


async def get_current_user(
    auth_user: AuthenticatedUser = Depends(verify_firebase_token),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    """Get current user with database context (user id and role)."""
    result = await db.execute(
        select(User).where(User.firebase_uid == auth_user.uid)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No account is registered for this identity",
        )

    auth_user.db_user_id = user.id
    auth_user.role = user.role
    auth_user.full_name = user.full_name
    return auth_user


def require_roles(*roles: UserRole):
    """Dependency factory: the current user must hold one of ``roles``."""

    def dependency(
        current_user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if current_user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {allowed}",
            )
        return current_user

    return dependency


require_tenant = require_roles(UserRole.TENANT)
require_owner = require_roles(UserRole.OWNER)
require_party_roles = require_roles(UserRole.TENANT, UserRole.OWNER)
require_any_role = require_roles(UserRole.TENANT, UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN)
require_admin = require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)
