"""Lease aggregate models.

The lease row holds the scalar terms and workflow state. Every growing
sequence (history, messages, change requests, notices, ledger, documents,
inspections) lives in its own child table keyed by ``lease_id`` and is loaded
with the lease.
"""

import uuid
from datetime import datetime, date
from typing import TYPE_CHECKING, Optional, Any

from sqlalchemy import (
    JSON, String, DateTime, Date, ForeignKey, Enum as SQLEnum, Text, BigInteger, Integer,
    Boolean, CheckConstraint, UniqueConstraint, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.enums import (
    LeaseStatus, ApplicationStatus, RentFrequency, RenewalStatus, DepositStatus,
    SignatureType, InspectionKind, PropertyCondition, DamageResponsibility, NoticeType,
    DepositTransactionType, DocumentType, PartyRole,
)

if TYPE_CHECKING:
    from app.models.property import Property
    from app.models.user import User

JSONType = JSON().with_variant(JSONB, "postgresql")


class Lease(Base):
    """A rental agreement between a landlord and a tenant for a property."""

    __tablename__ = "leases"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Parties (immutable after creation)
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
    )

    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus),
        default=LeaseStatus.PENDING_REQUEST,
        nullable=False,
        index=True,
    )

    # Application screening
    application_status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus), default=ApplicationStatus.PENDING, nullable=False,
    )
    application_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    application_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    application_reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    screening_results: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    # Terms
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    # Money (ALL INTEGER CENTS - BIGINT)
    rent_amount_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    rent_frequency: Mapped[RentFrequency] = mapped_column(
        SQLEnum(RentFrequency), default=RentFrequency.MONTHLY, nullable=False,
    )
    security_deposit_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    late_fee_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    grace_period_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    utilities: Mapped[dict[str, Any]] = mapped_column(
        JSONType, default=lambda: {"included_in_rent": [], "paid_by_tenant": []}, nullable=False,
    )
    maintenance_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    custom_clauses: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)

    # Payment settings
    payment_due_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payment_methods: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    auto_pay_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Move metadata
    move_in_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    move_out_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    keys_handed_over: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    keys_returned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    forwarding_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Renewal
    renewal_status: Mapped[RenewalStatus] = mapped_column(
        SQLEnum(RenewalStatus), default=RenewalStatus.NOT_DUE, nullable=False, index=True,
    )
    renewal_offered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    renewal_response_due_by: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    renewal_new_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    renewal_new_rent_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    renewal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Deposit
    deposit_status: Mapped[DepositStatus] = mapped_column(
        SQLEnum(DepositStatus), default=DepositStatus.PENDING, nullable=False,
    )

    # Signing finality
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    listing: Mapped["Property"] = relationship("Property", lazy="selectin")
    landlord: Mapped["User"] = relationship("User", foreign_keys=[landlord_id], lazy="selectin")
    tenant: Mapped["User"] = relationship("User", foreign_keys=[tenant_id], lazy="selectin")

    status_history: Mapped[list["LeaseStatusChange"]] = relationship(
        "LeaseStatusChange", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseStatusChange.sequence",
    )
    messages: Mapped[list["LeaseMessage"]] = relationship(
        "LeaseMessage", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseMessage.sequence",
    )
    change_requests: Mapped[list["LeaseChangeRequest"]] = relationship(
        "LeaseChangeRequest", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseChangeRequest.sequence",
    )
    signatures: Mapped[list["LeaseSignature"]] = relationship(
        "LeaseSignature", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseSignature.signed_at",
    )
    inspections: Mapped[list["LeaseInspection"]] = relationship(
        "LeaseInspection", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseInspection.created_at",
    )
    notices: Mapped[list["LeaseNotice"]] = relationship(
        "LeaseNotice", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseNotice.sequence",
    )
    deposit_transactions: Mapped[list["DepositTransaction"]] = relationship(
        "DepositTransaction", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="DepositTransaction.sequence",
    )
    documents: Mapped[list["LeaseDocument"]] = relationship(
        "LeaseDocument", back_populates="lease", cascade="all, delete-orphan",
        lazy="selectin", order_by="LeaseDocument.uploaded_at",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("rent_amount_cents >= 0", name="ck_lease_rent_non_negative"),
        CheckConstraint(
            "security_deposit_cents IS NULL OR security_deposit_cents >= 0",
            name="ck_lease_deposit_non_negative",
        ),
    )

    # === Derived views ===

    def signature_for(self, party: PartyRole) -> Optional["LeaseSignature"]:
        for signature in self.signatures:
            if signature.party == party:
                return signature
        return None

    @property
    def is_signed_by_landlord(self) -> bool:
        return self.signature_for(PartyRole.LANDLORD) is not None

    @property
    def is_signed_by_tenant(self) -> bool:
        return self.signature_for(PartyRole.TENANT) is not None

    @property
    def is_fully_signed(self) -> bool:
        return self.is_signed_by_landlord and self.is_signed_by_tenant

    def inspection_for(self, kind: InspectionKind) -> Optional["LeaseInspection"]:
        for inspection in self.inspections:
            if inspection.kind == kind:
                return inspection
        return None

    @property
    def periodic_inspections(self) -> list["LeaseInspection"]:
        return [i for i in self.inspections if i.kind == InspectionKind.PERIODIC]

    @property
    def open_change_requests(self) -> list["LeaseChangeRequest"]:
        return [c for c in self.change_requests if not c.resolved]

    @property
    def duration_days(self) -> int:
        if not self.start_date or not self.end_date:
            return 0
        return abs((self.end_date - self.start_date).days)


class LeaseStatusChange(Base):
    """Append-only status history entry."""

    __tablename__ = "lease_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    # Insertion order within a lease; breaks ties between equal timestamps
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[LeaseStatus] = mapped_column(SQLEnum(LeaseStatus), nullable=False)
    # NULL means the change was derived by the system
    changed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="status_history")


class LeaseMessage(Base):
    """Free-form message between the two parties."""

    __tablename__ = "lease_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    from_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    read_by: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="messages")


class LeaseChangeRequest(Base):
    """Tenant change request; resolved in place, never removed."""

    __tablename__ = "lease_change_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    changes: Mapped[str] = mapped_column(Text, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="change_requests")


class LeaseSignature(Base):
    """Write-once signature slot. One row per (lease, party)."""

    __tablename__ = "lease_signatures"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    party: Mapped[PartyRole] = mapped_column(SQLEnum(PartyRole), nullable=False)
    signed_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
    )
    signed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    signature_type: Mapped[SignatureType] = mapped_column(SQLEnum(SignatureType), nullable=False)
    signature_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    signature_public_id: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    typed_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="signatures")

    __table_args__ = (
        UniqueConstraint("lease_id", "party", name="uq_lease_signature_party"),
    )


class LeaseInspection(Base):
    """Move-in, move-out or periodic inspection record."""

    __tablename__ = "lease_inspections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    kind: Mapped[InspectionKind] = mapped_column(SQLEnum(InspectionKind), nullable=False)

    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    conducted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    conducted_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    report: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photos: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Move-in sign-off
    signed_by_landlord: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_by_tenant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Move-out
    condition: Mapped[Optional[PropertyCondition]] = mapped_column(
        SQLEnum(PropertyCondition), nullable=True,
    )

    # Periodic
    next_inspection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="inspections")
    damages: Mapped[list["InspectionDamage"]] = relationship(
        "InspectionDamage", back_populates="inspection", cascade="all, delete-orphan",
        lazy="selectin", order_by="InspectionDamage.sequence",
    )

    @property
    def is_complete(self) -> bool:
        return self.signed_by_landlord and self.signed_by_tenant


class InspectionDamage(Base):
    """Itemised damage recorded at move-out."""

    __tablename__ = "lease_inspection_damages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    inspection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lease_inspections.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_cost_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    photos: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    responsibility: Mapped[DamageResponsibility] = mapped_column(
        SQLEnum(DamageResponsibility), nullable=False,
    )

    inspection: Mapped["LeaseInspection"] = relationship("LeaseInspection", back_populates="damages")


class LeaseNotice(Base):
    """Renewal, termination or other formal notice."""

    __tablename__ = "lease_notices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notice_type: Mapped[NoticeType] = mapped_column(SQLEnum(NoticeType), nullable=False)
    # NULL means the notice was created by the system
    given_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    given_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="notices")


class DepositTransaction(Base):
    """Append-only security deposit ledger entry."""

    __tablename__ = "lease_deposit_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_type: Mapped[DepositTransactionType] = mapped_column(
        SQLEnum(DepositTransactionType), nullable=False,
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proof: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="deposit_transactions")

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_deposit_tx_amount_non_negative"),
    )


class LeaseDocument(Base):
    """Document attached to a lease (addenda from renewals, notices)."""

    __tablename__ = "lease_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    document_type: Mapped[DocumentType] = mapped_column(SQLEnum(DocumentType), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    uploaded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    lease: Mapped["Lease"] = relationship("Lease", back_populates="documents")
