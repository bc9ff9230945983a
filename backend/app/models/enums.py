"""Enumeration types for the Leasehold domain model."""

from enum import Enum


class UserRole(str, Enum):
    """Global account role."""
    TENANT = "tenant"
    OWNER = "owner"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class PropertyStatus(str, Enum):
    """Listing status of a property."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    RENTED = "rented"
    ARCHIVED = "archived"


class LeaseStatus(str, Enum):
    """Status of a lease."""
    PENDING_REQUEST = "pending_request"        # Tenant applied
    UNDER_REVIEW = "under_review"              # Landlord reviewing application
    APPROVED = "approved"                      # Application approved
    REJECTED = "rejected"                      # Application rejected
    DRAFT = "draft"                            # Lease draft created
    SENT_TO_TENANT = "sent_to_tenant"          # Sent for tenant review
    CHANGES_REQUESTED = "changes_requested"    # Tenant requested changes
    SENT_TO_LANDLORD = "sent_to_landlord"      # Tenant accepted, awaiting landlord signature
    SIGNED_BY_LANDLORD = "signed_by_landlord"  # Landlord signed
    FULLY_EXECUTED = "fully_executed"          # Both parties signed, lease locked
    ACTIVE = "active"                          # Move-in completed
    RENEWAL_PENDING = "renewal_pending"        # Renewal period
    NOTICE_GIVEN = "notice_given"              # Notice period started
    MOVE_OUT_SCHEDULED = "move_out_scheduled"  # Move-out inspection scheduled
    CANCELLED = "cancelled"                    # Cancelled before execution
    EXPIRED = "expired"                        # Lease term ended
    TERMINATED = "terminated"                  # Early termination


class ApplicationStatus(str, Enum):
    """Screening status of a tenant application."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class RentFrequency(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PartyRole(str, Enum):
    """Role of an actor in the context of one lease."""
    LANDLORD = "landlord"
    TENANT = "tenant"
    OTHER = "other"
    SYSTEM = "system"


class SignatureType(str, Enum):
    """How a lease signature was captured."""
    DRAW = "draw"
    TYPE = "type"
    UPLOAD = "upload"


class InspectionKind(str, Enum):
    MOVE_IN = "move_in"
    MOVE_OUT = "move_out"
    PERIODIC = "periodic"


class PropertyCondition(str, Enum):
    """Condition recorded at move-out."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"


class DamageResponsibility(str, Enum):
    TENANT = "tenant"
    LANDLORD = "landlord"
    SHARED = "shared"


class NoticeType(str, Enum):
    RENEWAL = "renewal"
    TERMINATION = "termination"
    RENT_INCREASE = "rent_increase"
    OTHER = "other"


class RenewalStatus(str, Enum):
    NOT_DUE = "not_due"
    PENDING = "pending"
    OFFERED = "offered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class DepositStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    HELD = "held"
    RETURNED = "returned"
    PARTIALLY_RETURNED = "partially_returned"
    PENDING_REFUND = "pending_refund"


class DepositTransactionType(str, Enum):
    DEPOSIT = "deposit"
    RETURN = "return"
    DEDUCTION = "deduction"


class DocumentType(str, Enum):
    LEASE = "lease"
    ADDENDUM = "addendum"
    NOTICE = "notice"
    INSPECTION = "inspection"
    OTHER = "other"


class AuditAction(str, Enum):
    """Actions tracked in audit log."""
    LEASE_CREATED = "lease_created"
    LEASE_SIGNED = "lease_signed"
    LEASE_CANCELLED = "lease_cancelled"
    LEASE_DELETED = "lease_deleted"
    LEASE_RESTORED = "lease_restored"
    LEASE_PURGED = "lease_purged"
    DEPOSIT_RECORDED = "deposit_recorded"
    DEPOSIT_RETURNED = "deposit_returned"
    RENEWAL_ACCEPTED = "renewal_accepted"
