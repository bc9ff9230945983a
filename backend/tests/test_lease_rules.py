"""
Leasehold - State Machine Tests
Transition table, party checks, guards and required actions on in-memory leases.
"""

from datetime import date, datetime
from uuid import uuid4

import pytest

from app.core.errors import InvalidTransitionError, PreconditionFailedError, UnauthorizedError
from app.models.enums import (
    DepositStatus,
    InspectionKind,
    LeaseStatus,
    PartyRole,
    RenewalStatus,
    SignatureType,
    UserRole,
)
from app.models.lease import Lease, LeaseChangeRequest, LeaseInspection, LeaseSignature
from app.services.lease_rules import (
    TERMINAL_STATUSES,
    Actor,
    LeasePolicy,
    allowed_targets,
    apply_transition,
    check_transition,
    required_action,
    resolve_actor,
    resolve_party,
)

LANDLORD_ID = uuid4()
TENANT_ID = uuid4()
NOW = datetime(2026, 3, 1, 12, 0)
POLICY = LeasePolicy()

landlord = Actor(user_id=LANDLORD_ID, party=PartyRole.LANDLORD)
tenant = Actor(user_id=TENANT_ID, party=PartyRole.TENANT)
stranger = Actor(user_id=uuid4(), party=PartyRole.OTHER)


def make_lease(status: LeaseStatus, **fields) -> Lease:
    values = dict(
        id=uuid4(),
        landlord_id=LANDLORD_ID,
        tenant_id=TENANT_ID,
        property_id=uuid4(),
        created_by_id=LANDLORD_ID,
        status=status,
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        rent_amount_cents=150000,
        security_deposit_cents=100000,
        renewal_status=RenewalStatus.NOT_DUE,
        deposit_status=DepositStatus.PENDING,
        is_locked=False,
        is_deleted=False,
    )
    values.update(fields)
    return Lease(**values)


def sign(lease: Lease, party: PartyRole) -> None:
    lease.signatures.append(
        LeaseSignature(
            party=party,
            signed_by_id=LANDLORD_ID if party == PartyRole.LANDLORD else TENANT_ID,
            signed_at=NOW,
            signature_type=SignatureType.TYPE,
            typed_text="signed",
        )
    )


# =============================================================================
# Parties
# =============================================================================

def test_resolve_party():
    lease = make_lease(LeaseStatus.DRAFT)
    assert resolve_party(lease, LANDLORD_ID) == PartyRole.LANDLORD
    assert resolve_party(lease, TENANT_ID) == PartyRole.TENANT
    assert resolve_party(lease, uuid4()) == PartyRole.OTHER


def test_resolve_actor_keeps_account_role():
    actor = resolve_actor(make_lease(LeaseStatus.DRAFT), uuid4(), UserRole.ADMIN)
    assert actor.party == PartyRole.OTHER
    assert actor.is_admin
    assert not actor.is_party


# =============================================================================
# Transition table
# =============================================================================

def test_terminal_statuses_have_no_outgoing_transitions():
    for status in TERMINAL_STATUSES:
        assert allowed_targets(status) == []


def test_draft_targets():
    targets = allowed_targets(LeaseStatus.DRAFT)
    assert LeaseStatus.SENT_TO_TENANT in targets
    assert LeaseStatus.CANCELLED in targets
    assert LeaseStatus.ACTIVE not in targets


def test_executed_lease_cannot_be_cancelled():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED)
    error = check_transition(lease, LeaseStatus.CANCELLED, landlord, NOW, POLICY)
    assert isinstance(error, InvalidTransitionError)


def test_unknown_transition_is_invalid():
    lease = make_lease(LeaseStatus.CANCELLED)
    error = check_transition(lease, LeaseStatus.DRAFT, landlord, NOW, POLICY)
    assert isinstance(error, InvalidTransitionError)
    assert error.details == {"from": "cancelled", "to": "draft"}


def test_wrong_party_is_invalid_transition():
    lease = make_lease(LeaseStatus.DRAFT)
    error = check_transition(lease, LeaseStatus.SENT_TO_TENANT, tenant, NOW, POLICY)
    assert isinstance(error, InvalidTransitionError)


def test_non_party_is_unauthorized():
    lease = make_lease(LeaseStatus.DRAFT)
    error = check_transition(lease, LeaseStatus.CANCELLED, stranger, NOW, POLICY)
    assert isinstance(error, UnauthorizedError)


def test_incomplete_draft_cannot_be_sent():
    lease = make_lease(LeaseStatus.DRAFT, start_date=None)
    error = check_transition(lease, LeaseStatus.SENT_TO_TENANT, landlord, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)
    assert "start and end dates" in error.message


def test_draft_without_deposit_cannot_be_sent():
    lease = make_lease(LeaseStatus.DRAFT, security_deposit_cents=None)
    error = check_transition(lease, LeaseStatus.SENT_TO_TENANT, landlord, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)


def test_check_transition_does_not_mutate():
    lease = make_lease(LeaseStatus.DRAFT)
    assert check_transition(lease, LeaseStatus.SENT_TO_TENANT, landlord, NOW, POLICY) is None
    assert lease.status == LeaseStatus.DRAFT
    assert lease.status_history == []


def test_apply_transition_appends_one_history_entry():
    lease = make_lease(LeaseStatus.DRAFT)
    entry = apply_transition(lease, LeaseStatus.SENT_TO_TENANT, landlord, NOW, POLICY, reason="Ready")

    assert lease.status == LeaseStatus.SENT_TO_TENANT
    assert lease.status_history == [entry]
    assert entry.changed_by_id == LANDLORD_ID
    assert entry.reason == "Ready"
    assert entry.changed_at == NOW


def test_failed_apply_leaves_lease_untouched():
    lease = make_lease(LeaseStatus.DRAFT, end_date=None)
    with pytest.raises(PreconditionFailedError):
        apply_transition(lease, LeaseStatus.SENT_TO_TENANT, landlord, NOW, POLICY)
    assert lease.status == LeaseStatus.DRAFT
    assert lease.status_history == []


# =============================================================================
# Signing order
# =============================================================================

def test_tenant_cannot_execute_before_landlord_signature():
    lease = make_lease(LeaseStatus.SIGNED_BY_LANDLORD)
    error = check_transition(lease, LeaseStatus.FULLY_EXECUTED, tenant, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)

    sign(lease, PartyRole.LANDLORD)
    assert check_transition(lease, LeaseStatus.FULLY_EXECUTED, tenant, NOW, POLICY) is None


def test_landlord_cannot_sign_twice():
    lease = make_lease(LeaseStatus.SENT_TO_LANDLORD)
    sign(lease, PartyRole.LANDLORD)
    error = check_transition(lease, LeaseStatus.SIGNED_BY_LANDLORD, landlord, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)


def test_open_change_requests_block_redraft():
    lease = make_lease(LeaseStatus.CHANGES_REQUESTED)
    lease.change_requests.append(
        LeaseChangeRequest(requested_by_id=TENANT_ID, changes="Allow pets", requested_at=NOW, resolved=False)
    )
    error = check_transition(lease, LeaseStatus.DRAFT, landlord, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)

    lease.change_requests[0].resolved = True
    assert check_transition(lease, LeaseStatus.DRAFT, landlord, NOW, POLICY) is None


# =============================================================================
# Occupancy guards
# =============================================================================

def test_activation_requires_completed_move_in():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED)
    error = check_transition(lease, LeaseStatus.ACTIVE, landlord, NOW, POLICY)
    assert isinstance(error, PreconditionFailedError)

    lease.inspections.append(
        LeaseInspection(kind=InspectionKind.MOVE_IN, signed_by_landlord=True, signed_by_tenant=True, photos=[])
    )
    assert check_transition(lease, LeaseStatus.ACTIVE, landlord, NOW, POLICY) is None


def test_system_activates_on_move_in_date():
    lease = make_lease(LeaseStatus.FULLY_EXECUTED, move_in_date=date(2026, 3, 1))
    assert check_transition(lease, LeaseStatus.ACTIVE, Actor.system(), NOW, POLICY) is None

    lease.move_in_date = date(2026, 3, 2)
    assert check_transition(lease, LeaseStatus.ACTIVE, Actor.system(), NOW, POLICY) is not None


def test_renewal_window():
    lease = make_lease(LeaseStatus.ACTIVE)
    before_window = datetime(2026, 10, 31, 23, 0)
    inside_window = datetime(2026, 11, 1, 8, 0)

    error = check_transition(lease, LeaseStatus.RENEWAL_PENDING, landlord, before_window, POLICY)
    assert isinstance(error, PreconditionFailedError)
    assert "2026-11-01" in error.message
    assert check_transition(lease, LeaseStatus.RENEWAL_PENDING, landlord, inside_window, POLICY) is None


def test_renewal_window_follows_policy():
    lease = make_lease(LeaseStatus.ACTIVE)
    policy = LeasePolicy(renewal_window_days=90)
    assert check_transition(lease, LeaseStatus.RENEWAL_PENDING, landlord, datetime(2026, 10, 2), policy) is None


def test_only_system_expires_a_lease():
    lease = make_lease(LeaseStatus.ACTIVE)
    after_end = datetime(2027, 1, 1)
    assert isinstance(check_transition(lease, LeaseStatus.EXPIRED, landlord, after_end, POLICY), InvalidTransitionError)
    assert check_transition(lease, LeaseStatus.EXPIRED, Actor.system(), after_end, POLICY) is None
    assert check_transition(lease, LeaseStatus.EXPIRED, Actor.system(), NOW, POLICY) is not None


# =============================================================================
# Required actions
# =============================================================================

@pytest.mark.parametrize(
    "status,party,action",
    [
        (LeaseStatus.PENDING_REQUEST, PartyRole.LANDLORD, "review_application"),
        (LeaseStatus.SENT_TO_TENANT, PartyRole.TENANT, "review_lease"),
        (LeaseStatus.SIGNED_BY_LANDLORD, PartyRole.TENANT, "sign_lease"),
        (LeaseStatus.MOVE_OUT_SCHEDULED, PartyRole.LANDLORD, "conduct_move_out"),
    ],
)
def test_required_action(status, party, action):
    assert required_action(make_lease(status), party).action == action


def test_no_required_action_when_waiting_on_the_other_party():
    assert required_action(make_lease(LeaseStatus.SENT_TO_TENANT), PartyRole.LANDLORD) is None
    assert required_action(make_lease(LeaseStatus.CANCELLED), PartyRole.TENANT) is None
