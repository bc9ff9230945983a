"""Read-only lookups of users and properties.

The lease workflow snapshots what it needs at decision time; later changes to
a user or a listing never rewrite an existing lease.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.enums import PropertyStatus, UserRole
from app.models.property import Property
from app.models.user import User


@dataclass(frozen=True)
class UserSnapshot:
    id: UUID
    role: UserRole
    name: Optional[str]
    email: str


@dataclass(frozen=True)
class PropertySnapshot:
    id: UUID
    owner_id: UUID
    status: PropertyStatus
    price_cents: int
    title: str


class IdentityDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_user(self, user_id: UUID) -> UserSnapshot:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return UserSnapshot(id=user.id, role=user.role, name=user.full_name, email=user.email)


class PropertyCatalog:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_property(self, property_id: UUID) -> PropertySnapshot:
        """Soft-deleted listings resolve as not found."""
        result = await self.db.execute(
            select(Property).where(
                Property.id == property_id,
                Property.is_deleted.is_(False),
            )
        )
        prop = result.scalar_one_or_none()
        if not prop:
            raise NotFoundError("Property not found", details={"property_id": str(property_id)})
        return PropertySnapshot(
            id=prop.id,
            owner_id=prop.owner_id,
            status=prop.status,
            price_cents=prop.price_cents,
            title=prop.title,
        )
