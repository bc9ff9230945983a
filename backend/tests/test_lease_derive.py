"""
Leasehold - Lazy Derivation Tests
Clock-driven corrections applied on load and before every write.
"""

from datetime import date, datetime, timedelta
from uuid import uuid4

from app.models.enums import DepositStatus, LeaseStatus, NoticeType, RenewalStatus
from app.models.lease import Lease
from app.services.lease_derive import (
    derive_activation,
    derive_all,
    derive_expiry,
    derive_renewal_notice,
    derive_renewal_offer_expiry,
)
from app.services.lease_rules import LeasePolicy

POLICY = LeasePolicy()


def make_lease(status: LeaseStatus, **fields) -> Lease:
    values = dict(
        id=uuid4(),
        landlord_id=uuid4(),
        tenant_id=uuid4(),
        property_id=uuid4(),
        status=status,
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        rent_amount_cents=150000,
        security_deposit_cents=100000,
        renewal_status=RenewalStatus.NOT_DUE,
        deposit_status=DepositStatus.PENDING,
        is_locked=True,
        is_deleted=False,
    )
    values.update(fields)
    return Lease(**values)


def test_active_lease_expires_after_end_date():
    lease = make_lease(LeaseStatus.ACTIVE)

    assert not derive_expiry(lease, datetime(2026, 12, 31, 23, 59), POLICY)
    assert derive_expiry(lease, datetime(2027, 1, 1, 0, 1), POLICY)

    assert lease.status == LeaseStatus.EXPIRED
    entry = lease.status_history[-1]
    assert entry.changed_by_id is None
    assert entry.details == {"end_date": "2026-12-31"}


def test_expiry_holds_a_paid_deposit():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED, deposit_status=DepositStatus.PAID)
    assert derive_expiry(lease, datetime(2027, 2, 1), POLICY)
    assert lease.deposit_status == DepositStatus.HELD


def test_terminal_and_pre_execution_leases_never_expire():
    for status in (LeaseStatus.DRAFT, LeaseStatus.CANCELLED, LeaseStatus.NOTICE_GIVEN):
        lease = make_lease(status)
        assert not derive_expiry(lease, datetime(2030, 1, 1), POLICY)
        assert lease.status == status


def test_activation_on_move_in_date():
    lease = make_lease(
        LeaseStatus.FULLY_EXECUTED,
        move_in_date=date(2026, 2, 1),
        deposit_status=DepositStatus.PAID,
    )
    assert not derive_activation(lease, datetime(2026, 1, 31, 23, 0), POLICY)
    assert derive_activation(lease, datetime(2026, 2, 1, 0, 0), POLICY)
    assert lease.status == LeaseStatus.ACTIVE
    assert lease.deposit_status == DepositStatus.HELD


def test_no_activation_without_move_in_date():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED)
    assert not derive_activation(lease, datetime(2026, 6, 1), POLICY)


def test_unanswered_renewal_offer_expires():
    offered = datetime(2026, 11, 10)
    lease = make_lease(
        LeaseStatus.RENEWAL_PENDING,
        renewal_status=RenewalStatus.OFFERED,
        renewal_response_due_by=offered + timedelta(days=30),
    )
    assert not derive_renewal_offer_expiry(lease, offered + timedelta(days=30), POLICY)
    assert derive_renewal_offer_expiry(lease, offered + timedelta(days=31), POLICY)
    assert lease.renewal_status == RenewalStatus.EXPIRED
    # Lease status is untouched; the landlord decides what happens next
    assert lease.status == LeaseStatus.RENEWAL_PENDING


def test_renewal_notice_added_once_inside_window():
    lease = make_lease(LeaseStatus.ACTIVE)
    inside = datetime(2026, 11, 5)

    assert not derive_renewal_notice(lease, datetime(2026, 10, 1), POLICY)
    assert derive_renewal_notice(lease, inside, POLICY)
    assert not derive_renewal_notice(lease, inside, POLICY)

    assert len(lease.notices) == 1
    notice = lease.notices[0]
    assert notice.notice_type == NoticeType.RENEWAL
    assert notice.given_by_id is None
    assert notice.effective_date == date(2026, 12, 31)
    assert lease.renewal_status == RenewalStatus.PENDING


def test_renewed_term_gets_a_fresh_notice():
    lease = make_lease(LeaseStatus.ACTIVE)
    derive_renewal_notice(lease, datetime(2026, 11, 5), POLICY)

    lease.end_date = date(2027, 12, 31)
    lease.renewal_status = RenewalStatus.ACCEPTED
    assert not derive_renewal_notice(lease, datetime(2027, 1, 15), POLICY)
    assert derive_renewal_notice(lease, datetime(2027, 11, 15), POLICY)
    assert len(lease.notices) == 2


def test_derive_all_is_idempotent():
    lease = make_lease(LeaseStatus.ACTIVE)
    now = datetime(2027, 3, 1)

    assert derive_all(lease, now, POLICY)
    snapshot = (lease.status, len(lease.status_history), len(lease.notices), lease.renewal_status)

    assert not derive_all(lease, now, POLICY)
    assert (lease.status, len(lease.status_history), len(lease.notices), lease.renewal_status) == snapshot


def test_expiry_wins_over_activation():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED, move_in_date=date(2026, 1, 1))
    derive_all(lease, datetime(2027, 1, 5), POLICY)
    assert lease.status == LeaseStatus.EXPIRED
    assert [entry.status for entry in lease.status_history] == [LeaseStatus.EXPIRED]
