"""Audit logging service."""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog
from app.models.enums import AuditAction


class AuditService:
    """Service for creating audit log entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: AuditAction,
        resource_type: str,
        resource_id: UUID,
        user_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Create an audit log entry."""
        entry = AuditLog(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def log_lease_event(
        self,
        action: AuditAction,
        lease_id: UUID,
        user_id: Optional[UUID],
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        return await self.log(
            action=action,
            resource_type="lease",
            resource_id=lease_id,
            user_id=user_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def log_lease_signed(
        self,
        lease_id: UUID,
        user_id: UUID,
        party: str,
        signature_type: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Log a lease signature."""
        return await self.log_lease_event(
            AuditAction.LEASE_SIGNED,
            lease_id,
            user_id,
            details={"party": party, "signature_type": signature_type},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def log_deposit_returned(
        self,
        lease_id: UUID,
        user_id: UUID,
        returned_amount_cents: int,
        deductions_cents: int,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        """Log security deposit return."""
        return await self.log_lease_event(
            AuditAction.DEPOSIT_RETURNED,
            lease_id,
            user_id,
            details={
                "returned_amount_cents": returned_amount_cents,
                "deductions_cents": deductions_cents,
            },
            ip_address=ip_address,
        )
