"""SQLAlchemy models for Leasehold."""

from app.models.user import User
from app.models.property import Property
from app.models.lease import (
    Lease,
    LeaseStatusChange,
    LeaseMessage,
    LeaseChangeRequest,
    LeaseSignature,
    LeaseInspection,
    InspectionDamage,
    LeaseNotice,
    DepositTransaction,
    LeaseDocument,
)
from app.models.audit import AuditLog

__all__ = [
    "User",
    "Property",
    "Lease",
    "LeaseStatusChange",
    "LeaseMessage",
    "LeaseChangeRequest",
    "LeaseSignature",
    "LeaseInspection",
    "InspectionDamage",
    "LeaseNotice",
    "DepositTransaction",
    "LeaseDocument",
    "AuditLog",
]
