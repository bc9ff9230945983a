"""Lazy lease derivations.

State corrections that depend only on the clock. They run explicitly on every
load and before every write, never from persistence hooks. Each one is
idempotent: a second run on the same lease at the same time changes nothing.
"""

import logging
from datetime import datetime, timedelta

from app.models.enums import DepositStatus, LeaseStatus, NoticeType, RenewalStatus
from app.models.lease import Lease, LeaseNotice
from app.services.lease_rules import Actor, LeasePolicy, apply_transition, check_transition

logger = logging.getLogger(__name__)


def derive_expiry(lease: Lease, now: datetime, policy: LeasePolicy) -> bool:
    """active / fully_executed past its end date → expired."""
    if lease.status not in (LeaseStatus.ACTIVE, LeaseStatus.FULLY_EXECUTED):
        return False
    actor = Actor.system()
    if check_transition(lease, LeaseStatus.EXPIRED, actor, now, policy) is not None:
        return False
    apply_transition(
        lease, LeaseStatus.EXPIRED, actor, now, policy,
        reason="Lease term ended",
        metadata={"end_date": lease.end_date.isoformat()},
    )
    # Expired before move-in: the paid deposit is now held pending return
    if lease.deposit_status == DepositStatus.PAID:
        lease.deposit_status = DepositStatus.HELD
    logger.info(f"[LEASE] {lease.id} expired (end date {lease.end_date})")
    return True


def derive_activation(lease: Lease, now: datetime, policy: LeasePolicy) -> bool:
    """fully_executed with a move-in date already reached → active."""
    if lease.status != LeaseStatus.FULLY_EXECUTED or lease.move_in_date is None:
        return False
    actor = Actor.system()
    if check_transition(lease, LeaseStatus.ACTIVE, actor, now, policy) is not None:
        return False
    apply_transition(
        lease, LeaseStatus.ACTIVE, actor, now, policy,
        reason="Move-in date reached",
        metadata={"move_in_date": lease.move_in_date.isoformat()},
    )
    if lease.deposit_status == DepositStatus.PAID:
        lease.deposit_status = DepositStatus.HELD
    logger.info(f"[LEASE] {lease.id} activated on move-in date")
    return True


def derive_renewal_offer_expiry(lease: Lease, now: datetime, policy: LeasePolicy) -> bool:
    """An offered renewal nobody answered in time → renewal expired."""
    if lease.renewal_status != RenewalStatus.OFFERED or lease.renewal_response_due_by is None:
        return False
    if now <= lease.renewal_response_due_by:
        return False
    lease.renewal_status = RenewalStatus.EXPIRED
    return True


def derive_renewal_notice(lease: Lease, now: datetime, policy: LeasePolicy) -> bool:
    """Active lease inside the renewal window with no renewal notice → add one.

    A notice counts for the current term only when it takes effect on the
    current end date, so a renewed lease gets a fresh notice next window.
    """
    if lease.status != LeaseStatus.ACTIVE or lease.end_date is None:
        return False
    if any(
        n.notice_type == NoticeType.RENEWAL and n.effective_date == lease.end_date
        for n in lease.notices
    ):
        return False
    window_opens = lease.end_date - timedelta(days=policy.renewal_window_days)
    if now.date() < window_opens:
        return False
    lease.notices.append(
        LeaseNotice(
            notice_type=NoticeType.RENEWAL,
            given_by_id=None,
            given_at=now,
            effective_date=lease.end_date,
            reason="Lease renewal notice",
            acknowledged=False,
            sequence=len(lease.notices),
        )
    )
    if lease.renewal_status in (RenewalStatus.NOT_DUE, RenewalStatus.ACCEPTED):
        lease.renewal_status = RenewalStatus.PENDING
    return True


DERIVATIONS = (
    derive_expiry,
    derive_activation,
    derive_renewal_offer_expiry,
    derive_renewal_notice,
)


def derive_all(lease: Lease, now: datetime, policy: LeasePolicy) -> bool:
    """Run every derivation in order; True when anything changed.

    Expiry runs first so a lease past its end date is never activated.
    """
    changed = False
    for derive in DERIVATIONS:
        changed = derive(lease, now, policy) or changed
    return changed
