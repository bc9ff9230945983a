"""Lease state machine.

One explicit transition table, consulted by ``check_transition`` (returns the
error a transition would raise, without touching the lease) and
``apply_transition`` (raises it, or moves the lease and appends exactly one
history entry). Guards see the lease as it is at the moment of the call.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from uuid import UUID

from app.core.config import Settings
from app.core.errors import (
    InvalidTransitionError,
    LeaseError,
    PreconditionFailedError,
    UnauthorizedError,
)
from app.models.enums import InspectionKind, LeaseStatus, PartyRole, RenewalStatus, UserRole
from app.models.lease import Lease, LeaseMessage, LeaseStatusChange

S = LeaseStatus

TERMINAL_STATUSES = frozenset({S.REJECTED, S.CANCELLED, S.EXPIRED, S.TERMINATED})

# fully_executed and everything after it
EXECUTED_STATUSES = frozenset({
    S.FULLY_EXECUTED, S.ACTIVE, S.RENEWAL_PENDING, S.NOTICE_GIVEN, S.MOVE_OUT_SCHEDULED,
    S.EXPIRED, S.TERMINATED,
})

CANCELLABLE_STATUSES = frozenset({
    S.PENDING_REQUEST, S.UNDER_REVIEW, S.APPROVED, S.DRAFT, S.SENT_TO_TENANT,
    S.CHANGES_REQUESTED, S.SENT_TO_LANDLORD, S.SIGNED_BY_LANDLORD,
})

DELETABLE_STATUSES = frozenset({S.DRAFT, S.CANCELLED, S.EXPIRED, S.REJECTED})

EDITABLE_STATUSES = frozenset({S.APPROVED, S.DRAFT, S.CHANGES_REQUESTED})

# Statuses that block a tenant from applying again to the same property
BLOCKING_APPLICATION_STATUSES = frozenset(set(LeaseStatus) - TERMINAL_STATUSES)

ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


@dataclass(frozen=True)
class LeasePolicy:
    """Configurable workflow conventions."""

    renewal_window_days: int = 60
    renewal_response_days: int = 30
    deposit_return_tolerance_cents: int = 100
    expiring_soon_days: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "LeasePolicy":
        return cls(
            renewal_window_days=settings.renewal_window_days,
            renewal_response_days=settings.renewal_response_days,
            deposit_return_tolerance_cents=settings.deposit_return_tolerance_cents,
            expiring_soon_days=settings.expiring_soon_days,
        )


@dataclass(frozen=True)
class Actor:
    """The requesting user, resolved once per request against one lease."""

    user_id: Optional[UUID]
    party: PartyRole
    role: Optional[UserRole] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(user_id=None, party=PartyRole.SYSTEM)

    @property
    def is_landlord(self) -> bool:
        return self.party == PartyRole.LANDLORD

    @property
    def is_tenant(self) -> bool:
        return self.party == PartyRole.TENANT

    @property
    def is_party(self) -> bool:
        return self.party in (PartyRole.LANDLORD, PartyRole.TENANT)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def resolve_party(lease: Lease, user_id: UUID) -> PartyRole:
    if lease.landlord_id == user_id:
        return PartyRole.LANDLORD
    if lease.tenant_id == user_id:
        return PartyRole.TENANT
    return PartyRole.OTHER


def resolve_actor(lease: Lease, user_id: UUID, role: Optional[UserRole] = None) -> Actor:
    return Actor(user_id=user_id, party=resolve_party(lease, user_id), role=role)


# === Guards ===
# A guard returns None when satisfied, otherwise the reason it is not.

Guard = Callable[[Lease, Actor, datetime, LeasePolicy], Optional[str]]


def _draft_is_complete(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if not lease.start_date or not lease.end_date:
        return "Lease start and end dates must be set before sending"
    if lease.end_date <= lease.start_date:
        return "Lease end date must be after the start date"
    if not lease.rent_amount_cents or lease.rent_amount_cents <= 0:
        return "Valid rent amount must be set before sending"
    if lease.security_deposit_cents is None:
        return "Security deposit must be set before sending"
    return None


def _no_open_change_requests(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if lease.open_change_requests:
        return f"{len(lease.open_change_requests)} change request(s) must be resolved first"
    return None


def _tenant_not_signed(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if lease.is_signed_by_tenant:
        return "Tenant has already signed this lease"
    return None


def _landlord_can_sign(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if lease.is_signed_by_landlord:
        return "Landlord has already signed this lease"
    return None


def _tenant_can_sign(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if not lease.is_signed_by_landlord:
        return "Landlord must sign first"
    if lease.is_signed_by_tenant:
        return "Tenant has already signed this lease"
    return None


def _move_in_complete(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    inspection = lease.inspection_for(InspectionKind.MOVE_IN)
    if inspection is not None and inspection.is_complete:
        return None
    if actor.party == PartyRole.SYSTEM and lease.move_in_date and lease.move_in_date <= now.date():
        return None
    return "Move-in inspection must be signed by both parties"


def _within_renewal_window(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if not lease.end_date:
        return "Lease has no end date"
    window_opens = lease.end_date - timedelta(days=policy.renewal_window_days)
    if now.date() < window_opens:
        return f"Renewal window opens on {window_opens.isoformat()}"
    return None


def _renewal_accepted(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if lease.renewal_status != RenewalStatus.ACCEPTED:
        return "Renewal offer has not been accepted"
    return None


def _move_out_scheduled(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    inspection = lease.inspection_for(InspectionKind.MOVE_OUT)
    if inspection is None or inspection.scheduled_at is None:
        return "Move-out inspection must be scheduled"
    return None


def _move_out_conducted(before_end_date: bool) -> Guard:
    def guard(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
        inspection = lease.inspection_for(InspectionKind.MOVE_OUT)
        if inspection is None or inspection.conducted_at is None:
            return "Move-out inspection must be conducted"
        if lease.end_date is None:
            return None
        before_end = now.date() < lease.end_date
        if before_end != before_end_date:
            return "Lease end date does not match this outcome"
        return None
    return guard


def _past_end_date(lease: Lease, actor: Actor, now: datetime, policy: LeasePolicy) -> Optional[str]:
    if not lease.end_date or now.date() <= lease.end_date:
        return "Lease end date has not passed"
    return None


@dataclass(frozen=True)
class Transition:
    parties: frozenset
    guard: Optional[Guard] = None


LANDLORD = frozenset({PartyRole.LANDLORD})
TENANT = frozenset({PartyRole.TENANT})
EITHER = frozenset({PartyRole.LANDLORD, PartyRole.TENANT})
SYSTEM = frozenset({PartyRole.SYSTEM})

TRANSITIONS: dict[tuple[LeaseStatus, LeaseStatus], Transition] = {
    # Application
    (S.PENDING_REQUEST, S.UNDER_REVIEW): Transition(LANDLORD),
    (S.PENDING_REQUEST, S.APPROVED): Transition(LANDLORD),
    (S.PENDING_REQUEST, S.REJECTED): Transition(LANDLORD),
    (S.UNDER_REVIEW, S.APPROVED): Transition(LANDLORD),
    (S.UNDER_REVIEW, S.REJECTED): Transition(LANDLORD),
    # Drafting and review
    (S.APPROVED, S.DRAFT): Transition(LANDLORD),
    (S.CHANGES_REQUESTED, S.DRAFT): Transition(LANDLORD, _no_open_change_requests),
    (S.DRAFT, S.SENT_TO_TENANT): Transition(LANDLORD, _draft_is_complete),
    (S.SENT_TO_TENANT, S.CHANGES_REQUESTED): Transition(TENANT),
    (S.SENT_TO_TENANT, S.SENT_TO_LANDLORD): Transition(TENANT, _tenant_not_signed),
    # Signing
    (S.SENT_TO_LANDLORD, S.SIGNED_BY_LANDLORD): Transition(LANDLORD, _landlord_can_sign),
    (S.SIGNED_BY_LANDLORD, S.FULLY_EXECUTED): Transition(TENANT, _tenant_can_sign),
    # Occupancy
    (S.FULLY_EXECUTED, S.ACTIVE): Transition(EITHER | SYSTEM, _move_in_complete),
    (S.ACTIVE, S.RENEWAL_PENDING): Transition(LANDLORD | SYSTEM, _within_renewal_window),
    (S.ACTIVE, S.NOTICE_GIVEN): Transition(EITHER),
    (S.RENEWAL_PENDING, S.ACTIVE): Transition(TENANT, _renewal_accepted),
    (S.RENEWAL_PENDING, S.NOTICE_GIVEN): Transition(EITHER),
    (S.NOTICE_GIVEN, S.MOVE_OUT_SCHEDULED): Transition(EITHER, _move_out_scheduled),
    (S.MOVE_OUT_SCHEDULED, S.TERMINATED): Transition(EITHER, _move_out_conducted(True)),
    (S.MOVE_OUT_SCHEDULED, S.EXPIRED): Transition(EITHER, _move_out_conducted(False)),
    # Lazy expiry
    (S.ACTIVE, S.EXPIRED): Transition(SYSTEM, _past_end_date),
    (S.FULLY_EXECUTED, S.EXPIRED): Transition(SYSTEM, _past_end_date),
}

# Cancellation is open to either party from every status before execution
for _status in CANCELLABLE_STATUSES:
    TRANSITIONS[(_status, S.CANCELLED)] = Transition(EITHER)


def allowed_targets(status: LeaseStatus) -> list[LeaseStatus]:
    return [target for (source, target) in TRANSITIONS if source == status]


def check_transition(
    lease: Lease,
    target: LeaseStatus,
    actor: Actor,
    now: datetime,
    policy: LeasePolicy,
) -> Optional[LeaseError]:
    """Return the error moving ``lease`` to ``target`` would produce, or None."""
    current = lease.status
    rule = TRANSITIONS.get((current, target))
    if rule is None:
        return InvalidTransitionError(
            f"Cannot move lease from '{current.value}' to '{target.value}'",
            details={"from": current.value, "to": target.value},
        )
    if actor.party not in rule.parties:
        if actor.party == PartyRole.OTHER:
            return UnauthorizedError("You are not a party to this lease")
        return InvalidTransitionError(
            f"The {actor.party.value} cannot move this lease from '{current.value}' to '{target.value}'",
            details={"from": current.value, "to": target.value},
        )
    if rule.guard is not None:
        reason = rule.guard(lease, actor, now, policy)
        if reason:
            return PreconditionFailedError(reason)
    return None


def apply_transition(
    lease: Lease,
    target: LeaseStatus,
    actor: Actor,
    now: datetime,
    policy: LeasePolicy,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> LeaseStatusChange:
    error = check_transition(lease, target, actor, now, policy)
    if error is not None:
        raise error
    return record_status(lease, target, actor, now, reason=reason, metadata=metadata)


def record_status(
    lease: Lease,
    status: LeaseStatus,
    actor: Actor,
    now: datetime,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> LeaseStatusChange:
    """Set the status and append its history entry. No rule checks."""
    lease.status = status
    entry = LeaseStatusChange(
        status=status,
        changed_by_id=actor.user_id,
        reason=reason,
        details=dict(metadata or {}),
        changed_at=now,
        sequence=len(lease.status_history),
    )
    lease.status_history.append(entry)
    lease.updated_at = now
    return entry


def append_message(
    lease: Lease,
    sender_id: Optional[UUID],
    text: str,
    now: datetime,
    attachments: Optional[list[dict[str, Any]]] = None,
) -> LeaseMessage:
    message = LeaseMessage(
        from_id=sender_id,
        text=text,
        attachments=list(attachments or []),
        sent_at=now,
        read_by=[str(sender_id)] if sender_id else [],
        sequence=len(lease.messages),
    )
    lease.messages.append(message)
    return message


@dataclass(frozen=True)
class RequiredAction:
    action: str
    priority: str


_REQUIRED_ACTIONS: dict[tuple[LeaseStatus, PartyRole], RequiredAction] = {
    (S.PENDING_REQUEST, PartyRole.LANDLORD): RequiredAction("review_application", "high"),
    (S.UNDER_REVIEW, PartyRole.LANDLORD): RequiredAction("review_application", "high"),
    (S.APPROVED, PartyRole.LANDLORD): RequiredAction("create_lease_draft", "medium"),
    (S.DRAFT, PartyRole.LANDLORD): RequiredAction("send_to_tenant", "medium"),
    (S.SENT_TO_TENANT, PartyRole.TENANT): RequiredAction("review_lease", "high"),
    (S.CHANGES_REQUESTED, PartyRole.LANDLORD): RequiredAction("update_lease", "medium"),
    (S.SENT_TO_LANDLORD, PartyRole.LANDLORD): RequiredAction("sign_lease", "high"),
    (S.SIGNED_BY_LANDLORD, PartyRole.TENANT): RequiredAction("sign_lease", "high"),
    (S.FULLY_EXECUTED, PartyRole.LANDLORD): RequiredAction("complete_move_in", "medium"),
    (S.FULLY_EXECUTED, PartyRole.TENANT): RequiredAction("complete_move_in", "medium"),
    (S.RENEWAL_PENDING, PartyRole.TENANT): RequiredAction("respond_to_renewal", "medium"),
    (S.RENEWAL_PENDING, PartyRole.LANDLORD): RequiredAction("send_renewal", "low"),
    (S.NOTICE_GIVEN, PartyRole.LANDLORD): RequiredAction("schedule_move_out", "medium"),
    (S.NOTICE_GIVEN, PartyRole.TENANT): RequiredAction("schedule_move_out", "medium"),
    (S.MOVE_OUT_SCHEDULED, PartyRole.LANDLORD): RequiredAction("conduct_move_out", "medium"),
}


def required_action(lease: Lease, party: PartyRole) -> Optional[RequiredAction]:
    """What, if anything, the given party should do next on this lease."""
    return _REQUIRED_ACTIONS.get((lease.status, party))
