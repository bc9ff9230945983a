"""Lease schemas."""

from datetime import date, datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.base import BaseSchema, IDMixin, TimestampMixin
from app.models.enums import (
    ApplicationStatus,
    DamageResponsibility,
    DepositStatus,
    DepositTransactionType,
    DocumentType,
    InspectionKind,
    LeaseStatus,
    NoticeType,
    PartyRole,
    PropertyCondition,
    RenewalStatus,
    RentFrequency,
    SignatureType,
)


# === Requests ===


class Utilities(BaseSchema):
    included_in_rent: list[str] = Field(default_factory=list)
    paid_by_tenant: list[str] = Field(default_factory=list)


class LeaseTerms(BaseSchema):
    """Draft terms. Only the fields sent are applied.

    Money in CENTS (integers only).
    """

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount_cents: Optional[int] = Field(None, ge=0)
    rent_frequency: Optional[RentFrequency] = None
    security_deposit_cents: Optional[int] = Field(None, ge=0)
    late_fee_cents: Optional[int] = Field(None, ge=0)
    grace_period_days: Optional[int] = Field(None, ge=0, le=60)
    utilities: Optional[Utilities] = None
    maintenance_terms: Optional[str] = None
    terms: Optional[dict[str, Any]] = None
    custom_clauses: Optional[list[str]] = None
    payment_due_day: Optional[int] = Field(None, ge=1, le=28)
    payment_methods: Optional[list[str]] = None
    auto_pay_enabled: Optional[bool] = None
    move_in_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_dates(self):
        """End date must be after start date."""
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields explicitly sent by the client."""
        return self.model_dump(exclude_unset=True)


class LeaseApplicationCreate(BaseSchema):
    """Tenant application for a property."""

    property_id: UUID
    message: Optional[str] = Field(None, max_length=2000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class LeaseDraftCreate(BaseSchema):
    """Landlord drafts a lease directly for a tenant."""

    property_id: UUID
    tenant_id: UUID
    terms: LeaseTerms = Field(default_factory=LeaseTerms)


class ScreeningResults(BaseSchema):
    credit_score: Optional[int] = Field(None, ge=300, le=850)
    income_verified: Optional[bool] = None
    employment_verified: Optional[bool] = None
    references_checked: Optional[bool] = None
    criminal_background: Optional[str] = None
    overall_score: Optional[int] = Field(None, ge=0, le=100)


class ApplicationReview(BaseSchema):
    action: Literal["start_review", "approve", "reject"]
    screening: Optional[ScreeningResults] = None
    reason: Optional[str] = None


class DraftSave(BaseSchema):
    terms: LeaseTerms = Field(default_factory=LeaseTerms)
    resolution_notes: Optional[str] = None
    message: Optional[str] = None


class LeaseUpdate(LeaseTerms):
    """Update terms in place; tenants may only send ``message``."""

    message: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"message"})


class MessageOnly(BaseSchema):
    message: Optional[str] = None


class TenantReview(BaseSchema):
    action: Literal["approve", "request_changes"]
    changes: list[str] = Field(default_factory=list)
    message: Optional[str] = None


class ChangeRequestCreate(BaseSchema):
    changes: list[str] = Field(..., min_length=1)
    message: Optional[str] = None


class ChangeRequestResolve(BaseSchema):
    notes: Optional[str] = None


class SignLeaseRequest(BaseSchema):
    """E-signature. ``signature_data`` is a base64 data URL."""

    signature_data: Optional[str] = None
    mode: SignatureType = SignatureType.DRAW
    typed_text: Optional[str] = Field(None, max_length=255)


class InspectionSchedule(BaseSchema):
    kind: InspectionKind
    scheduled_at: datetime
    notes: Optional[str] = None


class DamageItem(BaseSchema):
    description: str = Field(..., min_length=1)
    estimated_cost_cents: Optional[int] = Field(None, ge=0)
    photos: list[str] = Field(default_factory=list)
    responsibility: DamageResponsibility


class InspectionConduct(BaseSchema):
    kind: InspectionKind
    report: Optional[str] = None
    photos: list[str] = Field(default_factory=list)
    condition: Optional[PropertyCondition] = None
    damages: list[DamageItem] = Field(default_factory=list)


class PeriodicInspectionCreate(BaseSchema):
    inspected_at: datetime
    findings: Optional[str] = None
    photos: list[str] = Field(default_factory=list)
    next_inspection_date: Optional[date] = None


class NoticeCreate(BaseSchema):
    notice_type: NoticeType
    effective_date: Optional[date] = None
    reason: Optional[str] = None
    new_rent_cents: Optional[int] = Field(None, ge=0)
    new_end_date: Optional[date] = None


class RenewalResponse(BaseSchema):
    action: Literal["accept", "decline"]
    new_rent_cents: Optional[int] = Field(None, ge=0)
    new_end_date: Optional[date] = None
    notes: Optional[str] = None


class DepositPayment(BaseSchema):
    amount_cents: int = Field(..., gt=0)
    proof: Optional[str] = Field(None, max_length=1000)


class Deduction(BaseSchema):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)


class DepositReturn(BaseSchema):
    returned_amount_cents: int = Field(..., ge=0)
    deductions: list[Deduction] = Field(default_factory=list)


class MessageCreate(BaseSchema):
    text: str = Field(..., min_length=1, max_length=5000)
    attachments: list[dict[str, Any]] = Field(default_factory=list)


class CancelRequest(BaseSchema):
    reason: Optional[str] = None


# === Responses ===


class PartySummary(BaseSchema, IDMixin):
    email: str
    full_name: Optional[str] = None


class PropertySummary(BaseSchema, IDMixin):
    title: str
    address: Optional[str] = None
    city: Optional[str] = None


class StatusChangeResponse(BaseSchema, IDMixin):
    status: LeaseStatus
    changed_by_id: Optional[UUID] = None
    reason: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    changed_at: datetime


class MessageResponse(BaseSchema, IDMixin):
    from_id: Optional[UUID] = None
    text: str
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    sent_at: datetime
    read_by: list[str] = Field(default_factory=list)


class ChangeRequestResponse(BaseSchema, IDMixin):
    requested_by_id: UUID
    changes: str
    requested_at: datetime
    resolved: bool
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None


class SignatureResponse(BaseSchema, IDMixin):
    party: PartyRole
    signed_by_id: UUID
    signed_at: datetime
    signature_type: SignatureType
    signature_url: Optional[str] = None
    typed_text: Optional[str] = None


class DamageResponse(BaseSchema, IDMixin):
    description: str
    estimated_cost_cents: Optional[int] = None
    photos: list[str] = Field(default_factory=list)
    responsibility: DamageResponsibility


class InspectionResponse(BaseSchema, IDMixin):
    kind: InspectionKind
    scheduled_at: Optional[datetime] = None
    conducted_at: Optional[datetime] = None
    conducted_by_id: Optional[UUID] = None
    report: Optional[str] = None
    photos: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    signed_by_landlord: bool
    signed_by_tenant: bool
    signed_at: Optional[datetime] = None
    condition: Optional[PropertyCondition] = None
    next_inspection_date: Optional[date] = None
    damages: list[DamageResponse] = Field(default_factory=list)
    is_complete: bool


class NoticeResponse(BaseSchema, IDMixin):
    notice_type: NoticeType
    given_by_id: Optional[UUID] = None
    given_at: datetime
    effective_date: Optional[date] = None
    reason: Optional[str] = None
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None


class DepositTransactionResponse(BaseSchema, IDMixin):
    amount_cents: int
    transaction_type: DepositTransactionType
    occurred_at: datetime
    description: Optional[str] = None
    proof: Optional[str] = None


class DocumentResponse(BaseSchema, IDMixin):
    document_type: DocumentType
    name: str
    url: Optional[str] = None
    uploaded_by_id: Optional[UUID] = None
    uploaded_at: datetime
    version: int
    is_active: bool
    details: dict[str, Any] = Field(default_factory=dict)


class LeaseResponse(BaseSchema, IDMixin, TimestampMixin):
    """Full lease snapshot."""

    landlord_id: UUID
    tenant_id: UUID
    property_id: UUID
    created_by_id: UUID
    title: Optional[str] = None
    description: Optional[str] = None
    status: LeaseStatus

    application_status: ApplicationStatus
    application_submitted_at: Optional[datetime] = None
    application_reviewed_at: Optional[datetime] = None
    screening_results: Optional[dict[str, Any]] = None

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount_cents: int
    rent_frequency: RentFrequency
    security_deposit_cents: Optional[int] = None
    late_fee_cents: Optional[int] = None
    grace_period_days: Optional[int] = None
    utilities: dict[str, Any] = Field(default_factory=dict)
    maintenance_terms: Optional[str] = None
    terms: dict[str, Any] = Field(default_factory=dict)
    custom_clauses: list[str] = Field(default_factory=list)
    payment_due_day: Optional[int] = None
    payment_methods: list[str] = Field(default_factory=list)
    auto_pay_enabled: bool = False

    move_in_date: Optional[date] = None
    move_out_date: Optional[date] = None
    keys_handed_over: bool = False
    keys_returned: bool = False
    forwarding_address: Optional[str] = None

    renewal_status: RenewalStatus
    renewal_offered_at: Optional[datetime] = None
    renewal_response_due_by: Optional[datetime] = None
    renewal_new_end_date: Optional[date] = None
    renewal_new_rent_cents: Optional[int] = None
    renewal_notes: Optional[str] = None

    deposit_status: DepositStatus
    is_locked: bool
    locked_at: Optional[datetime] = None
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    version: int

    is_signed_by_landlord: bool
    is_signed_by_tenant: bool
    is_fully_signed: bool
    duration_days: int

    listing: Optional[PropertySummary] = None
    landlord: Optional[PartySummary] = None
    tenant: Optional[PartySummary] = None

    status_history: list[StatusChangeResponse] = Field(default_factory=list)
    messages: list[MessageResponse] = Field(default_factory=list)
    change_requests: list[ChangeRequestResponse] = Field(default_factory=list)
    signatures: list[SignatureResponse] = Field(default_factory=list)
    inspections: list[InspectionResponse] = Field(default_factory=list)
    notices: list[NoticeResponse] = Field(default_factory=list)
    deposit_transactions: list[DepositTransactionResponse] = Field(default_factory=list)
    documents: list[DocumentResponse] = Field(default_factory=list)


class RequiredActionResponse(BaseSchema):
    action: str
    priority: str


class LeaseListItem(BaseSchema, IDMixin):
    """Narrow projection for list views."""

    title: Optional[str] = None
    status: LeaseStatus
    property_id: UUID
    listing: Optional[PropertySummary] = None
    landlord_id: UUID
    tenant_id: UUID
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount_cents: int
    deposit_status: DepositStatus
    renewal_status: RenewalStatus
    is_locked: bool
    updated_at: Optional[datetime] = None
    my_role: PartyRole
    required_action: Optional[RequiredActionResponse] = None


class SignLeaseResponse(BaseSchema):
    status: LeaseStatus
    is_fully_signed: bool
    signature_url: Optional[str] = None


class StatusBucket(BaseSchema):
    count: int
    total_rent_cents: int


class LeaseStats(BaseSchema):
    total: int
    by_status: dict[str, StatusBucket]
    as_landlord: int
    as_tenant: int
    expiring_soon: int


class MarkedRead(BaseSchema):
    marked: int
