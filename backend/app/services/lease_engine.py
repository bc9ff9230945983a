"""Lease workflow engine.

Every operation follows the same shape: load the lease fresh (row lock,
derivations applied), resolve the caller's party on it, validate, perform any
upload, mutate and flush once. Nothing is mutated before validation passes.
Event notifications and deposit refunds are queued on the session and start
only after it commits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import run_after_commit
from app.core.errors import (
    AlreadyLockedError,
    AlreadySignedError,
    AmountMismatchError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OutOfOrderError,
    PreconditionFailedError,
    UnauthorizedError,
    UpstreamFailureError,
    ValidationError,
)
from app.models.enums import (
    ApplicationStatus,
    AuditAction,
    DamageResponsibility,
    DepositStatus,
    DepositTransactionType,
    DocumentType,
    InspectionKind,
    LeaseStatus,
    NoticeType,
    PartyRole,
    PropertyCondition,
    PropertyStatus,
    RenewalStatus,
    SignatureType,
    UserRole,
)
from app.models.lease import (
    DepositTransaction,
    InspectionDamage,
    Lease,
    LeaseChangeRequest,
    LeaseDocument,
    LeaseInspection,
    LeaseNotice,
    LeaseSignature,
)
from app.services.audit import AuditService
from app.services.directory import IdentityDirectory, PropertyCatalog
from app.services.events import LeaseEventPublisher
from app.services.lease_derive import derive_all
from app.services.lease_repository import LeaseRepository
from app.services.lease_rules import (
    ADMIN_ROLES,
    BLOCKING_APPLICATION_STATUSES,
    DELETABLE_STATUSES,
    EDITABLE_STATUSES,
    EXECUTED_STATUSES,
    Actor,
    LeasePolicy,
    append_message,
    apply_transition,
    check_transition,
    record_status,
    resolve_actor,
)
from app.services.payments import PaymentBridge
from app.services.pdf_generator import get_pdf_generator
from app.services.storage import StorageService, UploadFailed, decode_data_url

logger = logging.getLogger(__name__)

# Lease attributes a landlord may set while drafting
TERM_FIELDS = frozenset({
    "title",
    "description",
    "start_date",
    "end_date",
    "rent_amount_cents",
    "rent_frequency",
    "security_deposit_cents",
    "late_fee_cents",
    "grace_period_days",
    "utilities",
    "maintenance_terms",
    "terms",
    "custom_clauses",
    "payment_due_day",
    "payment_methods",
    "auto_pay_enabled",
    "move_in_date",
})

# Attributes that define the executed agreement
LOCKED_FIELDS = frozenset({"rent_amount_cents", "start_date", "end_date", "security_deposit_cents"})

NON_NEGATIVE_MONEY = ("rent_amount_cents", "security_deposit_cents", "late_fee_cents")

PERIODIC_INSPECTION_STATUSES = frozenset({
    LeaseStatus.ACTIVE, LeaseStatus.RENEWAL_PENDING, LeaseStatus.NOTICE_GIVEN,
})

NOTICE_STATUSES = frozenset({LeaseStatus.ACTIVE, LeaseStatus.RENEWAL_PENDING})

OCCUPIED_STATUSES = frozenset({
    LeaseStatus.ACTIVE, LeaseStatus.RENEWAL_PENDING, LeaseStatus.NOTICE_GIVEN,
    LeaseStatus.MOVE_OUT_SCHEDULED,
})

DEPOSIT_PAYABLE_STATUSES = OCCUPIED_STATUSES | {
    LeaseStatus.SENT_TO_TENANT, LeaseStatus.SENT_TO_LANDLORD, LeaseStatus.SIGNED_BY_LANDLORD,
    LeaseStatus.FULLY_EXECUTED,
}

EXPIRING_SOON_STATUSES = OCCUPIED_STATUSES


@dataclass(frozen=True)
class Caller:
    """The authenticated user behind a request."""

    user_id: UUID
    role: UserRole
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class SignResult:
    lease: Lease
    status: LeaseStatus
    is_fully_signed: bool
    signature_url: Optional[str]


@dataclass(frozen=True)
class DeductionInput:
    amount_cents: int
    reason: str


@dataclass(frozen=True)
class DamageInput:
    description: str
    responsibility: DamageResponsibility
    estimated_cost_cents: Optional[int] = None
    photos: tuple = ()


def _require_party(actor: Actor, *parties: PartyRole, action: str = "perform this action") -> None:
    if not actor.is_party:
        raise UnauthorizedError("You are not a party to this lease")
    if parties and actor.party not in parties:
        allowed = " or ".join(p.value for p in parties)
        raise ForbiddenError(f"Only the {allowed} can {action}")


def _raise_if_blocked(lease: Lease, target: LeaseStatus, actor: Actor, now: datetime, policy: LeasePolicy) -> None:
    error = check_transition(lease, target, actor, now, policy)
    if error is not None:
        raise error


def _validate_terms(lease: Lease, changes: dict[str, Any]) -> None:
    unknown = set(changes) - TERM_FIELDS
    if unknown:
        raise ValidationError(f"Unknown lease fields: {', '.join(sorted(unknown))}")
    for field_name in NON_NEGATIVE_MONEY:
        value = changes.get(field_name)
        if value is not None and value < 0:
            raise ValidationError(f"{field_name} cannot be negative")
    due_day = changes.get("payment_due_day")
    if due_day is not None and not 1 <= due_day <= 28:
        raise ValidationError("payment_due_day must be between 1 and 28")
    start = changes.get("start_date", lease.start_date)
    end = changes.get("end_date", lease.end_date)
    if start and end and end <= start:
        raise ValidationError("Lease end date must be after the start date")


def _apply_terms(lease: Lease, changes: dict[str, Any]) -> None:
    for field_name, value in changes.items():
        if field_name == "terms":
            lease.terms = {**(lease.terms or {}), **(value or {})}
        elif field_name == "utilities":
            lease.utilities = {**(lease.utilities or {}), **(value or {})}
        else:
            setattr(lease, field_name, value)


class LeaseEngine:
    """Owns the lease aggregate and every operation on it."""

    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageService] = None,
        payments: Optional[PaymentBridge] = None,
        events: Optional[LeaseEventPublisher] = None,
        policy: Optional[LeasePolicy] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.storage = storage
        self.payments = payments
        self.events = events
        self.policy = policy or LeasePolicy.from_settings(get_settings())
        self.clock = clock
        self.repo = LeaseRepository(db, self.policy)
        self.directory = IdentityDirectory(db)
        self.catalog = PropertyCatalog(db)
        self.audit = AuditService(db)

    # === Plumbing ===

    async def _load(
        self,
        lease_id: UUID,
        caller: Caller,
        now: datetime,
        *,
        include_deleted: bool = False,
    ) -> tuple[Lease, Actor]:
        lease = await self.repo.get(lease_id, now, include_deleted=include_deleted, for_update=True)
        return lease, resolve_actor(lease, caller.user_id, caller.role)

    async def _save(self, lease: Lease, now: datetime) -> None:
        lease.updated_at = now
        await self.repo.flush(lease, now)

    def _notify(self, event_type: str, lease: Lease, caller: Optional[Caller], payload: Optional[dict] = None) -> None:
        """Queue a lease event; it is sent only if this session commits."""
        if self.events is None:
            return
        actor_id = str(caller.user_id) if caller else None
        event = self.events.build_event(event_type, lease, actor_id, payload)
        events = self.events
        run_after_commit(self.db, lambda: events.send(event))

    async def _audit(self, action: AuditAction, lease_id: UUID, caller: Caller, details: Optional[dict] = None) -> None:
        await self.audit.log_lease_event(
            action,
            lease_id,
            caller.user_id,
            details=details,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
        )

    async def _has_blocking_lease(self, property_id: UUID, tenant_id: UUID) -> bool:
        result = await self.db.execute(
            select(Lease.id).where(
                Lease.property_id == property_id,
                Lease.tenant_id == tenant_id,
                Lease.is_deleted.is_(False),
                Lease.status.in_(list(BLOCKING_APPLICATION_STATUSES)),
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    # === Application & drafting ===

    async def create_application(
        self,
        caller: Caller,
        property_id: UUID,
        message: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Lease:
        """A tenant applies to rent an active property."""
        now = self.clock()
        if caller.role != UserRole.TENANT:
            raise ForbiddenError("Only tenants can apply for a lease")
        listing = await self.catalog.resolve_property(property_id)
        if listing.status != PropertyStatus.ACTIVE:
            raise PreconditionFailedError("This property is not available for rent")
        if listing.owner_id == caller.user_id:
            raise ValidationError("You cannot apply to your own property")
        if start_date and end_date and end_date <= start_date:
            raise ValidationError("Lease end date must be after the start date")
        if await self._has_blocking_lease(property_id, caller.user_id):
            raise PreconditionFailedError("You already have an open application or lease for this property")

        lease = Lease(
            landlord_id=listing.owner_id,
            tenant_id=caller.user_id,
            property_id=listing.id,
            created_by_id=caller.user_id,
            title=f"Lease for {listing.title}",
            rent_amount_cents=listing.price_cents,
            start_date=start_date,
            end_date=end_date,
            application_status=ApplicationStatus.PENDING,
            application_submitted_at=now,
            deposit_status=DepositStatus.PENDING,
            renewal_status=RenewalStatus.NOT_DUE,
            is_locked=False,
            is_deleted=False,
            created_at=now,
        )
        actor = Actor(user_id=caller.user_id, party=PartyRole.TENANT, role=caller.role)
        record_status(lease, LeaseStatus.PENDING_REQUEST, actor, now, reason="Application submitted")
        if message:
            append_message(lease, caller.user_id, message, now)

        self.repo.add(lease)
        await self._save(lease, now)
        await self._audit(AuditAction.LEASE_CREATED, lease.id, caller, {"flow": "application"})
        logger.info(f"[LEASE] Application {lease.id} submitted for property {property_id}")

        lease = await self.repo.get(lease.id, now)
        self._notify("LEASE_APPLICATION_SUBMITTED", lease, caller)
        return lease

    async def create_draft(
        self,
        caller: Caller,
        property_id: UUID,
        tenant_id: UUID,
        terms: Optional[dict[str, Any]] = None,
    ) -> Lease:
        """A landlord drafts a lease directly for a known tenant."""
        now = self.clock()
        terms = dict(terms or {})
        listing = await self.catalog.resolve_property(property_id)
        if listing.owner_id != caller.user_id:
            raise ForbiddenError("You can only create leases for your own properties")
        if listing.status != PropertyStatus.ACTIVE:
            raise PreconditionFailedError("This property is not available for rent")
        tenant = await self.directory.resolve_user(tenant_id)
        if tenant.role != UserRole.TENANT:
            raise ValidationError("The lease tenant must be a tenant account")
        if await self._has_blocking_lease(property_id, tenant_id):
            raise PreconditionFailedError("This tenant already has an open lease for this property")

        lease = Lease(
            landlord_id=caller.user_id,
            tenant_id=tenant.id,
            property_id=listing.id,
            created_by_id=caller.user_id,
            title=f"Lease for {listing.title}",
            rent_amount_cents=listing.price_cents,
            application_status=ApplicationStatus.APPROVED,
            application_reviewed_at=now,
            application_reviewed_by_id=caller.user_id,
            deposit_status=DepositStatus.PENDING,
            renewal_status=RenewalStatus.NOT_DUE,
            utilities={"included_in_rent": [], "paid_by_tenant": []},
            terms={},
            is_locked=False,
            is_deleted=False,
            created_at=now,
        )
        _validate_terms(lease, terms)
        _apply_terms(lease, terms)
        actor = Actor(user_id=caller.user_id, party=PartyRole.LANDLORD, role=caller.role)
        record_status(lease, LeaseStatus.DRAFT, actor, now, reason="Lease draft created")

        self.repo.add(lease)
        await self._save(lease, now)
        await self._audit(AuditAction.LEASE_CREATED, lease.id, caller, {"flow": "draft"})
        logger.info(f"[LEASE] Draft {lease.id} created for property {property_id}")
        return await self.repo.get(lease.id, now)

    async def review_application(
        self,
        caller: Caller,
        lease_id: UUID,
        action: str,
        screening: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> Lease:
        """Landlord starts reviewing, approves or rejects an application."""
        now = self.clock()
        outcomes = {
            "start_review": (LeaseStatus.UNDER_REVIEW, ApplicationStatus.UNDER_REVIEW),
            "approve": (LeaseStatus.APPROVED, ApplicationStatus.APPROVED),
            "reject": (LeaseStatus.REJECTED, ApplicationStatus.REJECTED),
        }
        if action not in outcomes:
            raise ValidationError(f"Unknown review action: {action}")
        target, application_status = outcomes[action]

        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(lease, target, actor, now, self.policy, reason=reason)
        lease.application_status = application_status
        if target != LeaseStatus.UNDER_REVIEW:
            lease.application_reviewed_at = now
            lease.application_reviewed_by_id = caller.user_id
        if screening:
            lease.screening_results = {**(lease.screening_results or {}), **screening}
        if target == LeaseStatus.REJECTED:
            append_message(lease, caller.user_id, reason or "Your application was not approved", now)

        await self._save(lease, now)
        self._notify(f"LEASE_APPLICATION_{application_status.value.upper()}", lease, caller)
        return lease

    async def save_draft(
        self,
        caller: Caller,
        lease_id: UUID,
        terms: Optional[dict[str, Any]] = None,
        resolution_notes: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Lease:
        """Create or revise the draft.

        From ``approved`` or ``changes_requested`` this moves the lease to
        ``draft``; the latter resolves every open change request first.
        """
        now = self.clock()
        terms = dict(terms or {})
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor, PartyRole.LANDLORD, action="edit the lease draft")
        if lease.is_locked:
            raise PreconditionFailedError("Lease is signed and locked; terms cannot change")
        if lease.status not in EDITABLE_STATUSES:
            raise PreconditionFailedError(f"Lease cannot be edited while '{lease.status.value}'")
        if lease.status == LeaseStatus.APPROVED:
            _raise_if_blocked(lease, LeaseStatus.DRAFT, actor, now, self.policy)
        _validate_terms(lease, terms)

        if lease.status == LeaseStatus.CHANGES_REQUESTED:
            for change in lease.open_change_requests:
                change.resolved = True
                change.resolved_at = now
                change.resolution_notes = resolution_notes
        _apply_terms(lease, terms)
        if lease.status != LeaseStatus.DRAFT:
            apply_transition(lease, LeaseStatus.DRAFT, actor, now, self.policy, reason="Lease draft updated")
        if message:
            append_message(lease, caller.user_id, message, now)

        await self._save(lease, now)
        return lease

    async def update_terms(
        self,
        caller: Caller,
        lease_id: UUID,
        fields: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> Lease:
        """Edit terms in place. Tenants may only attach a message."""
        now = self.clock()
        fields = dict(fields or {})
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        if fields:
            if lease.is_locked:
                raise PreconditionFailedError(
                    "Lease is signed and locked; terms cannot change",
                    details={"fields": sorted(set(fields) & LOCKED_FIELDS) or sorted(fields)},
                )
            _require_party(actor, PartyRole.LANDLORD, action="change lease terms")
            if lease.status not in EDITABLE_STATUSES:
                raise PreconditionFailedError(f"Lease terms cannot be edited while '{lease.status.value}'")
            _validate_terms(lease, fields)
        elif not message:
            raise ValidationError("Nothing to update")

        _apply_terms(lease, fields)
        if message:
            append_message(lease, caller.user_id, message, now)
        await self._save(lease, now)
        return lease

    # === Tenant review ===

    async def send_to_tenant(self, caller: Caller, lease_id: UUID, message: Optional[str] = None) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(lease, LeaseStatus.SENT_TO_TENANT, actor, now, self.policy, reason="Sent to tenant for review")
        append_message(lease, caller.user_id, message or "Lease sent for your review", now)
        await self._save(lease, now)
        self._notify("LEASE_SENT_TO_TENANT", lease, caller)
        return lease

    async def request_changes(
        self,
        caller: Caller,
        lease_id: UUID,
        changes: Iterable[str],
        message: Optional[str] = None,
    ) -> Lease:
        """Tenant asks for changes; each item becomes an open change request."""
        now = self.clock()
        items = [c.strip() for c in changes if c and c.strip()]
        if not items:
            raise ValidationError("At least one requested change is required")
        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(
            lease, LeaseStatus.CHANGES_REQUESTED, actor, now, self.policy,
            reason="Tenant requested changes", metadata={"count": len(items)},
        )
        for text in items:
            lease.change_requests.append(
                LeaseChangeRequest(
                    requested_by_id=caller.user_id,
                    changes=text,
                    requested_at=now,
                    resolved=False,
                    sequence=len(lease.change_requests),
                )
            )
        append_message(lease, caller.user_id, message or "Changes requested: " + "; ".join(items), now)
        await self._save(lease, now)
        self._notify("LEASE_CHANGES_REQUESTED", lease, caller)
        return lease

    async def send_to_landlord(self, caller: Caller, lease_id: UUID, message: Optional[str] = None) -> Lease:
        """Tenant accepts the terms and hands the lease to the landlord to sign."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(
            lease, LeaseStatus.SENT_TO_LANDLORD, actor, now, self.policy,
            reason="Tenant accepted terms; awaiting landlord signature",
        )
        append_message(lease, caller.user_id, message or "Lease accepted and sent for landlord signature", now)
        await self._save(lease, now)
        self._notify("LEASE_SENT_TO_LANDLORD", lease, caller)
        return lease

    async def tenant_review(
        self,
        caller: Caller,
        lease_id: UUID,
        action: str,
        changes: Optional[Iterable[str]] = None,
        message: Optional[str] = None,
    ) -> Lease:
        if action == "approve":
            return await self.send_to_landlord(caller, lease_id, message)
        if action == "request_changes":
            return await self.request_changes(caller, lease_id, changes or [], message)
        raise ValidationError(f"Unknown review action: {action}")

    async def resolve_change_request(
        self,
        caller: Caller,
        lease_id: UUID,
        change_id: UUID,
        notes: Optional[str] = None,
    ) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor, PartyRole.LANDLORD, action="resolve change requests")
        change = next((c for c in lease.change_requests if c.id == change_id), None)
        if change is None:
            raise NotFoundError("Change request not found", details={"change_id": str(change_id)})
        if change.resolved:
            raise PreconditionFailedError("Change request is already resolved")
        change.resolved = True
        change.resolved_at = now
        change.resolution_notes = notes
        await self._save(lease, now)
        return lease

    # === Signing ===

    async def sign(
        self,
        caller: Caller,
        lease_id: UUID,
        signature_data: Optional[str],
        mode: str,
        typed_text: Optional[str] = None,
    ) -> SignResult:
        """Sign the lease: landlord first, then tenant. The tenant signature locks it."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)

        if not actor.is_party:
            raise UnauthorizedError("Only the landlord or tenant of this lease can sign it")
        if lease.is_locked:
            raise AlreadyLockedError("Lease is already fully signed and locked")
        if lease.signature_for(actor.party) is not None:
            raise AlreadySignedError(f"The {actor.party.value} has already signed this lease")
        if actor.is_tenant and not lease.is_signed_by_landlord:
            raise OutOfOrderError("The landlord must sign the lease first")

        expected, target = (
            (LeaseStatus.SENT_TO_LANDLORD, LeaseStatus.SIGNED_BY_LANDLORD)
            if actor.is_landlord
            else (LeaseStatus.SIGNED_BY_LANDLORD, LeaseStatus.FULLY_EXECUTED)
        )
        if lease.status != expected:
            raise InvalidTransitionError(
                f"Lease cannot be signed by the {actor.party.value} while '{lease.status.value}'",
                details={"from": lease.status.value, "expected": expected.value},
            )

        try:
            signature_type = SignatureType(mode)
        except ValueError:
            raise ValidationError(f"Unsupported signature mode: {mode}")
        typed_text = typed_text.strip() if typed_text else None
        if not signature_data and not (signature_type == SignatureType.TYPE and typed_text):
            raise ValidationError("Signature data is required")
        blob = None
        if signature_data:
            try:
                blob = decode_data_url(signature_data)
            except ValueError as e:
                raise ValidationError(str(e))
        _raise_if_blocked(lease, target, actor, now, self.policy)

        signature_url = public_id = None
        if blob is not None:
            if self.storage is None:
                raise UpstreamFailureError("Signature storage is not configured")
            try:
                stored = await self.storage.store(
                    blob.data, f"leases/{lease.id}/signatures", f"{actor.party.value}-signature", blob.mime_type,
                )
            except ValueError as e:
                raise ValidationError(str(e))
            except UploadFailed as e:
                raise UpstreamFailureError("Signature upload failed; the lease was not changed") from e
            signature_url, public_id = stored.url, stored.public_id

        apply_transition(lease, target, actor, now, self.policy, reason=f"Signed by {actor.party.value}")
        lease.signatures.append(
            LeaseSignature(
                party=actor.party,
                signed_by_id=caller.user_id,
                signed_at=now,
                signature_type=signature_type,
                signature_url=signature_url,
                signature_public_id=public_id,
                typed_text=typed_text,
                ip_address=caller.ip_address,
                user_agent=caller.user_agent,
            )
        )
        append_message(lease, caller.user_id, f"{actor.party.value.title()} signed the lease", now)
        if target == LeaseStatus.FULLY_EXECUTED:
            lease.is_locked = True
            lease.locked_at = now

        try:
            await self._save(lease, now)
        except (AlreadySignedError, ConflictError) as e:
            if public_id:
                await self.storage.discard(public_id)
            if isinstance(e, ConflictError):
                await self._raise_if_signed_meanwhile(lease_id, actor.party, now, e)
            raise
        await self.audit.log_lease_signed(
            lease.id, caller.user_id, actor.party.value, signature_type.value,
            ip_address=caller.ip_address, user_agent=caller.user_agent,
        )
        logger.info(f"[LEASE] {lease.id} signed by {actor.party.value}")
        self._notify("LEASE_SIGNED", lease, caller, {"party": actor.party.value})
        return SignResult(
            lease=lease,
            status=lease.status,
            is_fully_signed=lease.is_fully_signed,
            signature_url=signature_url,
        )

    async def _raise_if_signed_meanwhile(
        self, lease_id: UUID, party: PartyRole, now: datetime, conflict: ConflictError,
    ) -> None:
        """A stale write during signing means another request committed first.

        When that request filled the same slot, report it as AlreadySigned.
        """
        await self.db.rollback()
        current = await self.repo.get(lease_id, now)
        if current.signature_for(party) is not None:
            raise AlreadySignedError(f"The {party.value} has already signed this lease") from conflict

    # === Inspections ===

    async def schedule_inspection(
        self,
        caller: Caller,
        lease_id: UUID,
        kind: InspectionKind,
        scheduled_at: datetime,
        notes: Optional[str] = None,
    ) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)

        if kind == InspectionKind.MOVE_IN:
            if lease.status != LeaseStatus.FULLY_EXECUTED:
                raise PreconditionFailedError("Move-in inspection can only be scheduled on a fully executed lease")
        elif kind == InspectionKind.MOVE_OUT:
            if lease.status not in (LeaseStatus.NOTICE_GIVEN, LeaseStatus.MOVE_OUT_SCHEDULED):
                raise PreconditionFailedError("Move-out inspection requires notice to have been given")
        else:
            raise ValidationError("Periodic inspections are recorded, not scheduled")

        inspection = lease.inspection_for(kind)
        if inspection is not None and inspection.conducted_at is not None and kind == InspectionKind.MOVE_OUT:
            raise PreconditionFailedError("Move-out inspection has already been conducted")
        if inspection is not None and inspection.is_complete:
            raise PreconditionFailedError("Move-in inspection is already complete")

        if inspection is None:
            inspection = LeaseInspection(
                kind=kind, photos=[], damages=[], signed_by_landlord=False, signed_by_tenant=False, created_at=now,
            )
            lease.inspections.append(inspection)
        inspection.scheduled_at = scheduled_at
        if notes is not None:
            inspection.notes = notes

        label = kind.value.replace("_", "-")
        if kind == InspectionKind.MOVE_OUT and lease.status == LeaseStatus.NOTICE_GIVEN:
            apply_transition(
                lease, LeaseStatus.MOVE_OUT_SCHEDULED, actor, now, self.policy,
                reason="Move-out inspection scheduled",
                metadata={"scheduled_at": scheduled_at.isoformat()},
            )
        append_message(lease, caller.user_id, f"{label.capitalize()} inspection scheduled for {scheduled_at:%Y-%m-%d %H:%M}", now)

        await self._save(lease, now)
        self._notify("LEASE_INSPECTION_SCHEDULED", lease, caller, {"kind": kind.value})
        return lease

    async def conduct_inspection(
        self,
        caller: Caller,
        lease_id: UUID,
        kind: InspectionKind,
        report: Optional[str] = None,
        photos: Optional[list[str]] = None,
        condition: Optional[PropertyCondition] = None,
        damages: Optional[list[DamageInput]] = None,
    ) -> Lease:
        """Record a move-in sign-off or the move-out inspection."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        if kind == InspectionKind.MOVE_IN:
            await self._conduct_move_in(lease, actor, caller, now, report, photos)
        elif kind == InspectionKind.MOVE_OUT:
            self._conduct_move_out(lease, actor, caller, now, report, photos, condition, damages or [])
        else:
            raise ValidationError("Use the periodic inspection endpoint for periodic inspections")

        await self._save(lease, now)
        self._notify("LEASE_INSPECTION_CONDUCTED", lease, caller, {"kind": kind.value})
        return lease

    async def _conduct_move_in(
        self,
        lease: Lease,
        actor: Actor,
        caller: Caller,
        now: datetime,
        report: Optional[str],
        photos: Optional[list[str]],
    ) -> None:
        if lease.status != LeaseStatus.FULLY_EXECUTED:
            raise PreconditionFailedError("Move-in inspection requires a fully executed lease")
        inspection = lease.inspection_for(InspectionKind.MOVE_IN)
        if inspection is None or inspection.scheduled_at is None:
            raise PreconditionFailedError("Move-in inspection must be scheduled first")
        flag = "signed_by_landlord" if actor.is_landlord else "signed_by_tenant"
        if getattr(inspection, flag):
            raise AlreadySignedError(f"The {actor.party.value} has already signed off the move-in inspection")

        if inspection.conducted_at is None:
            inspection.conducted_at = now
            inspection.conducted_by_id = caller.user_id
        if report:
            inspection.report = report
        if photos:
            inspection.photos = [*(inspection.photos or []), *photos]
        setattr(inspection, flag, True)

        if inspection.is_complete:
            inspection.signed_at = now
            lease.move_in_date = now.date()
            lease.keys_handed_over = True
            if lease.deposit_status == DepositStatus.PAID:
                lease.deposit_status = DepositStatus.HELD
            apply_transition(
                lease, LeaseStatus.ACTIVE, actor, now, self.policy,
                reason="Move-in inspection completed",
            )
            append_message(lease, caller.user_id, "Move-in inspection completed; the lease is now active", now)

    def _conduct_move_out(
        self,
        lease: Lease,
        actor: Actor,
        caller: Caller,
        now: datetime,
        report: Optional[str],
        photos: Optional[list[str]],
        condition: Optional[PropertyCondition],
        damages: list[DamageInput],
    ) -> None:
        if lease.status != LeaseStatus.MOVE_OUT_SCHEDULED:
            raise PreconditionFailedError("Move-out inspection must be scheduled first")
        inspection = lease.inspection_for(InspectionKind.MOVE_OUT)
        if inspection is None or inspection.scheduled_at is None:
            raise PreconditionFailedError("Move-out inspection must be scheduled first")
        if inspection.conducted_at is not None:
            raise PreconditionFailedError("Move-out inspection has already been conducted")
        if condition is None:
            raise ValidationError("Property condition is required for a move-out inspection")
        for damage in damages:
            if not damage.description:
                raise ValidationError("Each damage item needs a description")
            if damage.estimated_cost_cents is not None and damage.estimated_cost_cents < 0:
                raise ValidationError("Damage cost cannot be negative")

        inspection.conducted_at = now
        inspection.conducted_by_id = caller.user_id
        inspection.report = report
        inspection.photos = list(photos or [])
        inspection.condition = condition
        for damage in damages:
            inspection.damages.append(
                InspectionDamage(
                    description=damage.description,
                    estimated_cost_cents=damage.estimated_cost_cents,
                    photos=list(damage.photos),
                    responsibility=damage.responsibility,
                    sequence=len(inspection.damages),
                )
            )
        lease.move_out_date = now.date()
        lease.keys_returned = True
        if lease.deposit_status == DepositStatus.PAID:
            lease.deposit_status = DepositStatus.HELD

        before_end = lease.end_date is not None and now.date() < lease.end_date
        target = LeaseStatus.TERMINATED if before_end else LeaseStatus.EXPIRED
        apply_transition(
            lease, target, actor, now, self.policy,
            reason="Move-out inspection conducted",
            metadata={"condition": condition.value, "damages": len(damages)},
        )

    async def add_periodic_inspection(
        self,
        caller: Caller,
        lease_id: UUID,
        inspected_at: datetime,
        findings: Optional[str] = None,
        photos: Optional[list[str]] = None,
        next_inspection_date: Optional[date] = None,
    ) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        if lease.status not in PERIODIC_INSPECTION_STATUSES:
            raise PreconditionFailedError("Periodic inspections can only be recorded on an occupied lease")
        if next_inspection_date and next_inspection_date <= inspected_at.date():
            raise ValidationError("Next inspection date must be after this inspection")
        lease.inspections.append(
            LeaseInspection(
                kind=InspectionKind.PERIODIC,
                scheduled_at=inspected_at,
                conducted_at=inspected_at,
                conducted_by_id=caller.user_id,
                report=findings,
                photos=list(photos or []),
                damages=[],
                signed_by_landlord=False,
                signed_by_tenant=False,
                next_inspection_date=next_inspection_date,
                created_at=now,
            )
        )
        await self._save(lease, now)
        return lease

    # === Notices & renewal ===

    async def give_notice(
        self,
        caller: Caller,
        lease_id: UUID,
        notice_type: NoticeType,
        effective_date: Optional[date] = None,
        reason: Optional[str] = None,
        new_rent_cents: Optional[int] = None,
        new_end_date: Optional[date] = None,
    ) -> Lease:
        """Termination moves the lease to notice_given; renewal records an offer."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        if lease.status not in NOTICE_STATUSES:
            raise PreconditionFailedError(f"Notices cannot be given while '{lease.status.value}'")

        if notice_type == NoticeType.TERMINATION:
            if effective_date is None:
                raise ValidationError("A termination notice needs an effective date")
            _raise_if_blocked(lease, LeaseStatus.NOTICE_GIVEN, actor, now, self.policy)
        elif notice_type == NoticeType.RENEWAL:
            if lease.renewal_status == RenewalStatus.OFFERED:
                raise PreconditionFailedError("A renewal offer is already awaiting a response")
            if new_rent_cents is not None and new_rent_cents < 0:
                raise ValidationError("Renewal rent cannot be negative")
            if new_end_date is not None and lease.end_date and new_end_date <= lease.end_date:
                raise ValidationError("Renewal end date must be after the current end date")
            effective_date = effective_date or lease.end_date

        lease.notices.append(
            LeaseNotice(
                notice_type=notice_type,
                given_by_id=caller.user_id,
                given_at=now,
                effective_date=effective_date,
                reason=reason,
                acknowledged=False,
                sequence=len(lease.notices),
            )
        )

        if notice_type == NoticeType.TERMINATION:
            apply_transition(
                lease, LeaseStatus.NOTICE_GIVEN, actor, now, self.policy,
                reason=reason or "Termination notice given",
                metadata={"effective_date": effective_date.isoformat()},
            )
        elif notice_type == NoticeType.RENEWAL:
            lease.renewal_status = RenewalStatus.OFFERED
            lease.renewal_offered_at = now
            lease.renewal_response_due_by = now + timedelta(days=self.policy.renewal_response_days)
            lease.renewal_new_end_date = new_end_date
            lease.renewal_new_rent_cents = new_rent_cents
            lease.renewal_notes = reason

        append_message(lease, caller.user_id, f"{notice_type.value.replace('_', ' ').capitalize()} notice given", now)
        await self._save(lease, now)
        self._notify("LEASE_NOTICE_GIVEN", lease, caller, {"notice_type": notice_type.value})
        return lease

    async def open_renewal(self, caller: Caller, lease_id: UUID) -> Lease:
        """Landlord opens the renewal period once inside the renewal window."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(lease, LeaseStatus.RENEWAL_PENDING, actor, now, self.policy, reason="Renewal period opened")
        if lease.renewal_status in (RenewalStatus.NOT_DUE, RenewalStatus.ACCEPTED, RenewalStatus.EXPIRED):
            lease.renewal_status = RenewalStatus.PENDING
        await self._save(lease, now)
        return lease

    async def respond_to_renewal(
        self,
        caller: Caller,
        lease_id: UUID,
        action: str,
        new_rent_cents: Optional[int] = None,
        new_end_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Lease:
        """Tenant accepts or declines an offered renewal.

        Acceptance is the only way rent and end date change on a locked lease;
        it is recorded as an addendum document.
        """
        now = self.clock()
        if action not in ("accept", "decline"):
            raise ValidationError(f"Unknown renewal response: {action}")
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor, PartyRole.TENANT, action="respond to a renewal offer")
        if lease.renewal_status != RenewalStatus.OFFERED:
            raise PreconditionFailedError("There is no open renewal offer on this lease")
        if lease.status not in NOTICE_STATUSES:
            raise PreconditionFailedError(f"Renewal cannot be answered while '{lease.status.value}'")

        if action == "decline":
            _raise_if_blocked(lease, LeaseStatus.NOTICE_GIVEN, actor, now, self.policy)
            lease.renewal_status = RenewalStatus.DECLINED
            if notes:
                lease.renewal_notes = notes
            apply_transition(
                lease, LeaseStatus.NOTICE_GIVEN, actor, now, self.policy,
                reason=notes or "Renewal declined",
            )
            append_message(lease, caller.user_id, "Renewal offer declined", now)
        else:
            end_date = new_end_date or lease.renewal_new_end_date
            rent_cents = new_rent_cents if new_rent_cents is not None else lease.renewal_new_rent_cents
            if rent_cents is None:
                rent_cents = lease.rent_amount_cents
            if end_date is None:
                raise ValidationError("A new end date is required to accept the renewal")
            if lease.end_date and end_date <= lease.end_date:
                raise ValidationError("Renewal end date must be after the current end date")
            if rent_cents < 0:
                raise ValidationError("Renewal rent cannot be negative")

            previous_end, previous_rent = lease.end_date, lease.rent_amount_cents
            addenda = [d for d in lease.documents if d.document_type == DocumentType.ADDENDUM]
            lease.end_date = end_date
            lease.rent_amount_cents = rent_cents
            lease.documents.append(
                LeaseDocument(
                    document_type=DocumentType.ADDENDUM,
                    name=f"Renewal addendum {len(addenda) + 1}",
                    uploaded_by_id=caller.user_id,
                    uploaded_at=now,
                    version=len(addenda) + 1,
                    is_active=True,
                    details={
                        "previous_end_date": previous_end.isoformat() if previous_end else None,
                        "new_end_date": end_date.isoformat(),
                        "previous_rent_cents": previous_rent,
                        "new_rent_cents": rent_cents,
                        "notes": notes,
                    },
                )
            )
            for notice in lease.notices:
                if notice.notice_type == NoticeType.RENEWAL and not notice.acknowledged:
                    notice.acknowledged = True
                    notice.acknowledged_at = now
            lease.renewal_status = RenewalStatus.ACCEPTED
            lease.renewal_new_end_date = end_date
            lease.renewal_new_rent_cents = rent_cents
            if lease.status == LeaseStatus.RENEWAL_PENDING:
                apply_transition(lease, LeaseStatus.ACTIVE, actor, now, self.policy, reason="Renewal accepted")
            append_message(lease, caller.user_id, "Renewal offer accepted", now)

        await self._save(lease, now)
        if action == "accept":
            await self._audit(AuditAction.RENEWAL_ACCEPTED, lease.id, caller, {
                "new_end_date": lease.end_date.isoformat(),
                "new_rent_cents": lease.rent_amount_cents,
            })
        self._notify("LEASE_RENEWAL_ACCEPTED" if action == "accept" else "LEASE_RENEWAL_DECLINED", lease, caller)
        return lease

    async def acknowledge_notice(self, caller: Caller, lease_id: UUID, notice_id: UUID) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        notice = next((n for n in lease.notices if n.id == notice_id), None)
        if notice is None:
            raise NotFoundError("Notice not found", details={"notice_id": str(notice_id)})
        if notice.given_by_id == caller.user_id:
            raise ForbiddenError("A notice must be acknowledged by the other party")
        if notice.acknowledged:
            raise PreconditionFailedError("Notice is already acknowledged")
        notice.acknowledged = True
        notice.acknowledged_at = now
        await self._save(lease, now)
        return lease

    # === Deposit ===

    async def record_deposit_payment(
        self,
        caller: Caller,
        lease_id: UUID,
        amount_cents: int,
        proof: Optional[str] = None,
    ) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor, PartyRole.LANDLORD, action="record the deposit payment")
        if lease.status not in DEPOSIT_PAYABLE_STATUSES:
            raise PreconditionFailedError(f"Deposit cannot be recorded while '{lease.status.value}'")
        if lease.security_deposit_cents is None:
            raise PreconditionFailedError("This lease has no security deposit set")
        if lease.deposit_status != DepositStatus.PENDING:
            raise PreconditionFailedError(f"Deposit is already '{lease.deposit_status.value}'")
        if amount_cents != lease.security_deposit_cents:
            raise AmountMismatchError(
                "Deposit payment must equal the security deposit",
                details={"expected_cents": lease.security_deposit_cents, "received_cents": amount_cents},
            )

        lease.deposit_transactions.append(
            DepositTransaction(
                amount_cents=amount_cents,
                transaction_type=DepositTransactionType.DEPOSIT,
                occurred_at=now,
                description="Security deposit received",
                proof=proof,
                sequence=len(lease.deposit_transactions),
            )
        )
        # Already moved in: the deposit goes straight into holding
        occupied = lease.status in OCCUPIED_STATUSES
        lease.deposit_status = DepositStatus.HELD if occupied else DepositStatus.PAID

        await self._save(lease, now)
        await self._audit(AuditAction.DEPOSIT_RECORDED, lease.id, caller, {"amount_cents": amount_cents})
        return lease

    async def process_deposit_return(
        self,
        caller: Caller,
        lease_id: UUID,
        returned_amount_cents: int,
        deductions: Optional[list[DeductionInput]] = None,
    ) -> Lease:
        """Return the held deposit less deductions.

        The returned amount must match deposit minus deductions within the
        configured tolerance. After one successful call the deposit is never
        ``held`` again, so a second call is rejected.
        """
        now = self.clock()
        deductions = list(deductions or [])
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor, PartyRole.LANDLORD, action="return the deposit")
        if lease.status not in (LeaseStatus.EXPIRED, LeaseStatus.TERMINATED):
            raise PreconditionFailedError("Deposit can only be returned once the lease has ended")
        if lease.deposit_status != DepositStatus.HELD:
            raise PreconditionFailedError(f"Deposit is '{lease.deposit_status.value}', not held")

        deposit_cents = lease.security_deposit_cents or 0
        if returned_amount_cents < 0:
            raise ValidationError("Returned amount cannot be negative")
        for deduction in deductions:
            if deduction.amount_cents <= 0:
                raise ValidationError("Deduction amounts must be positive")
            if not deduction.reason:
                raise ValidationError("Each deduction needs a reason")
        total_deductions = sum(d.amount_cents for d in deductions)
        if total_deductions > deposit_cents:
            raise ValidationError("Deductions exceed the security deposit")
        expected_cents = deposit_cents - total_deductions
        if abs(returned_amount_cents - expected_cents) > self.policy.deposit_return_tolerance_cents:
            raise AmountMismatchError(
                f"Returned amount does not match the expected return of {expected_cents} cents",
                details={"expected_cents": expected_cents, "returned_cents": returned_amount_cents},
            )

        for deduction in deductions:
            lease.deposit_transactions.append(
                DepositTransaction(
                    amount_cents=deduction.amount_cents,
                    transaction_type=DepositTransactionType.DEDUCTION,
                    occurred_at=now,
                    description=deduction.reason,
                    sequence=len(lease.deposit_transactions),
                )
            )
        lease.deposit_transactions.append(
            DepositTransaction(
                amount_cents=returned_amount_cents,
                transaction_type=DepositTransactionType.RETURN,
                occurred_at=now,
                description="Security deposit returned",
                sequence=len(lease.deposit_transactions),
            )
        )
        if returned_amount_cents >= deposit_cents:
            lease.deposit_status = DepositStatus.RETURNED
        else:
            # Includes a zero return: the deposit is settled and never held again
            lease.deposit_status = DepositStatus.PARTIALLY_RETURNED

        await self._save(lease, now)
        await self.audit.log_deposit_returned(
            lease.id, caller.user_id, returned_amount_cents, total_deductions, ip_address=caller.ip_address,
        )
        self._notify("LEASE_DEPOSIT_RETURNED", lease, caller, {"returned_cents": returned_amount_cents})
        return lease

    # === Messages ===

    async def post_message(
        self,
        caller: Caller,
        lease_id: UUID,
        text: str,
        attachments: Optional[list[dict[str, Any]]] = None,
    ) -> Lease:
        now = self.clock()
        if not text or not text.strip():
            raise ValidationError("Message text is required")
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        append_message(lease, caller.user_id, text.strip(), now, attachments)
        await self._save(lease, now)
        self._notify("LEASE_MESSAGE_POSTED", lease, caller)
        return lease

    async def mark_messages_read(self, caller: Caller, lease_id: UUID) -> int:
        """Mark every message as read by the caller; returns how many changed."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        reader = str(caller.user_id)
        marked = 0
        for message in lease.messages:
            if reader not in (message.read_by or []):
                message.read_by = [*(message.read_by or []), reader]
                marked += 1
        await self.repo.flush(lease, now)
        return marked

    # === Cancellation & housekeeping ===

    async def cancel(self, caller: Caller, lease_id: UUID, reason: Optional[str] = None) -> Lease:
        """Cancel before execution. A paid deposit is queued for refund."""
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        apply_transition(
            lease, LeaseStatus.CANCELLED, actor, now, self.policy,
            reason=reason or f"Cancelled by {actor.party.value}",
        )
        refund_cents = None
        if lease.deposit_status == DepositStatus.PAID:
            refund_cents = lease.security_deposit_cents or 0
            lease.deposit_status = DepositStatus.PENDING_REFUND
            lease.deposit_transactions.append(
                DepositTransaction(
                    amount_cents=refund_cents,
                    transaction_type=DepositTransactionType.RETURN,
                    occurred_at=now,
                    description="Refund requested: lease cancelled",
                    sequence=len(lease.deposit_transactions),
                )
            )
        append_message(lease, caller.user_id, f"Lease cancelled{': ' + reason if reason else ''}", now)

        await self._save(lease, now)
        await self._audit(AuditAction.LEASE_CANCELLED, lease.id, caller, {"reason": reason})
        if refund_cents is not None and self.payments is not None:
            payments, refund_lease_id = self.payments, lease.id
            run_after_commit(
                self.db, lambda: payments.request_refund(refund_lease_id, refund_cents, "Lease cancelled"),
            )
        logger.info(f"[LEASE] {lease.id} cancelled by {actor.party.value}")
        self._notify("LEASE_CANCELLED", lease, caller)
        return lease

    async def soft_delete(self, caller: Caller, lease_id: UUID) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now)
        _require_party(actor)
        if lease.status not in DELETABLE_STATUSES:
            raise PreconditionFailedError(
                f"Only draft, cancelled, expired or rejected leases can be deleted (lease is '{lease.status.value}')"
            )
        lease.is_deleted = True
        lease.deleted_at = now
        await self._save(lease, now)
        await self._audit(AuditAction.LEASE_DELETED, lease.id, caller)
        return lease

    async def restore(self, caller: Caller, lease_id: UUID) -> Lease:
        now = self.clock()
        lease, actor = await self._load(lease_id, caller, now, include_deleted=True)
        _require_party(actor)
        if not lease.is_deleted:
            raise PreconditionFailedError("Lease is not deleted")
        lease.is_deleted = False
        lease.deleted_at = None
        await self._save(lease, now)
        await self._audit(AuditAction.LEASE_RESTORED, lease.id, caller)
        return lease

    async def purge(self, caller: Caller, lease_id: UUID) -> None:
        """Permanently delete a lease and all its child rows. Admins only."""
        now = self.clock()
        if not caller.is_admin:
            raise ForbiddenError("Only administrators can permanently delete leases")
        lease = await self.repo.get(lease_id, now, include_deleted=True, for_update=True)
        await self._audit(AuditAction.LEASE_PURGED, lease.id, caller, {"status": lease.status.value})
        await self.repo.delete(lease)
        logger.info(f"[LEASE] {lease_id} purged by {caller.user_id}")

    # === Queries ===

    async def get_by_id(self, caller: Caller, lease_id: UUID) -> Lease:
        now = self.clock()
        lease = await self.repo.get(lease_id, now)
        party = resolve_actor(lease, caller.user_id, caller.role)
        if not party.is_party and not caller.is_admin:
            raise UnauthorizedError("You do not have access to this lease")
        await self.repo.flush(lease, now)
        return lease

    async def _leases_for(self, caller: Caller, deleted: bool) -> list[Lease]:
        result = await self.db.execute(
            select(Lease)
            .where(
                Lease.is_deleted.is_(deleted),
                or_(Lease.landlord_id == caller.user_id, Lease.tenant_id == caller.user_id),
            )
            .order_by(Lease.updated_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_user(
        self,
        caller: Caller,
        role: Optional[PartyRole] = None,
        status: Optional[LeaseStatus] = None,
    ) -> list[Lease]:
        """Leases the caller is a party to, optionally narrowed by party and status."""
        now = self.clock()
        leases = await self._leases_for(caller, deleted=False)
        changed = [lease for lease in leases if derive_all(lease, now, self.policy)]
        if changed:
            await self.repo.flush(None, now)
        if role == PartyRole.LANDLORD:
            leases = [lease for lease in leases if lease.landlord_id == caller.user_id]
        elif role == PartyRole.TENANT:
            leases = [lease for lease in leases if lease.tenant_id == caller.user_id]
        if status is not None:
            leases = [lease for lease in leases if lease.status == status]
        return leases

    async def list_trash(self, caller: Caller) -> list[Lease]:
        return await self._leases_for(caller, deleted=True)

    async def get_stats(self, caller: Caller) -> dict[str, Any]:
        """Counts and rent totals by status, as landlord and as tenant."""
        now = self.clock()
        leases = await self.list_for_user(caller)
        by_status: dict[str, dict[str, int]] = {}
        for lease in leases:
            bucket = by_status.setdefault(lease.status.value, {"count": 0, "total_rent_cents": 0})
            bucket["count"] += 1
            bucket["total_rent_cents"] += lease.rent_amount_cents or 0

        horizon = now.date() + timedelta(days=self.policy.expiring_soon_days)
        expiring_soon = [
            lease for lease in leases
            if lease.status in EXPIRING_SOON_STATUSES
            and lease.end_date is not None
            and now.date() <= lease.end_date <= horizon
        ]
        return {
            "total": len(leases),
            "by_status": by_status,
            "as_landlord": sum(1 for lease in leases if lease.landlord_id == caller.user_id),
            "as_tenant": sum(1 for lease in leases if lease.tenant_id == caller.user_id),
            "expiring_soon": len(expiring_soon),
        }

    async def render_document(self, caller: Caller, lease_id: UUID) -> bytes:
        """PDF of the executed lease."""
        lease = await self.get_by_id(caller, lease_id)
        if lease.status not in EXECUTED_STATUSES:
            raise PreconditionFailedError("Only fully executed leases can be rendered")
        return get_pdf_generator().generate_lease_document(lease)

    async def sweep(self) -> int:
        return await self.repo.sweep(self.clock())
