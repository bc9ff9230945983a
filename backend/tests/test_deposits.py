"""
Leasehold - Security Deposit Tests
Recording the deposit, move-out, and returning it against deductions.
"""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from app.core.errors import AmountMismatchError, ForbiddenError, PreconditionFailedError, ValidationError
from app.models import AuditLog
from app.models.enums import (
    AuditAction,
    DamageResponsibility,
    DepositStatus,
    DepositTransactionType,
    InspectionKind,
    LeaseStatus,
    NoticeType,
    PropertyCondition,
)
from app.services.lease_engine import DamageInput, DeductionInput


async def moved_out(flow, clock, when: datetime, **terms):
    """Active lease, termination notice, move-out inspection conducted at ``when``."""
    lease = await flow.active(**terms)
    engine = flow.engine
    await engine.give_notice(
        flow.tenant, lease.id, NoticeType.TERMINATION, effective_date=when.date(), reason="Relocating",
    )
    await engine.schedule_inspection(flow.landlord, lease.id, InspectionKind.MOVE_OUT, when)
    clock.now = when
    return await engine.conduct_inspection(
        flow.landlord, lease.id, InspectionKind.MOVE_OUT,
        report="Scuffed hallway wall",
        condition=PropertyCondition.GOOD,
        damages=[DamageInput("Hallway wall needs repainting", DamageResponsibility.TENANT, 20000)],
    )


# =============================================================================
# Recording
# =============================================================================

@pytest.mark.anyio
async def test_deposit_recorded_before_move_in_is_paid(flow):
    lease = await flow.executed()

    lease = await flow.engine.record_deposit_payment(flow.landlord, lease.id, 100000, proof="bank-ref-42")

    assert lease.deposit_status == DepositStatus.PAID
    transaction = lease.deposit_transactions[0]
    assert transaction.transaction_type == DepositTransactionType.DEPOSIT
    assert transaction.amount_cents == 100000
    assert transaction.proof == "bank-ref-42"


@pytest.mark.anyio
async def test_deposit_recorded_after_move_in_is_held(flow):
    lease = await flow.active(deposit=False)

    lease = await flow.engine.record_deposit_payment(flow.landlord, lease.id, 100000)
    assert lease.deposit_status == DepositStatus.HELD


@pytest.mark.anyio
async def test_deposit_must_match_agreed_amount(flow):
    lease = await flow.executed()

    with pytest.raises(AmountMismatchError) as exc:
        await flow.engine.record_deposit_payment(flow.landlord, lease.id, 90000)
    assert exc.value.details == {"expected_cents": 100000, "received_cents": 90000}


@pytest.mark.anyio
async def test_deposit_recorded_once(flow):
    lease = await flow.executed()
    await flow.engine.record_deposit_payment(flow.landlord, lease.id, 100000)

    with pytest.raises(PreconditionFailedError):
        await flow.engine.record_deposit_payment(flow.landlord, lease.id, 100000)


@pytest.mark.anyio
async def test_only_landlord_records_deposit(flow):
    lease = await flow.executed()

    with pytest.raises(ForbiddenError):
        await flow.engine.record_deposit_payment(flow.tenant, lease.id, 100000)


@pytest.mark.anyio
async def test_no_deposit_on_a_draft(flow):
    lease = await flow.draft()

    with pytest.raises(PreconditionFailedError):
        await flow.engine.record_deposit_payment(flow.landlord, lease.id, 100000)


# =============================================================================
# Move-out
# =============================================================================

@pytest.mark.anyio
async def test_early_move_out_terminates(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    assert lease.status == LeaseStatus.TERMINATED
    assert lease.move_out_date == date(2026, 6, 30)
    assert lease.keys_returned
    inspection = lease.inspection_for(InspectionKind.MOVE_OUT)
    assert inspection.condition == PropertyCondition.GOOD
    assert [d.estimated_cost_cents for d in inspection.damages] == [20000]
    assert lease.status_history[-1].details == {"condition": "good", "damages": 1}


@pytest.mark.anyio
async def test_move_out_at_term_end_expires(flow, clock):
    lease = await moved_out(flow, clock, datetime(2027, 1, 3, 10, 0))
    assert lease.status == LeaseStatus.EXPIRED


@pytest.mark.anyio
async def test_move_out_requires_condition(flow, clock):
    lease = await flow.active()
    engine = flow.engine
    await engine.give_notice(flow.landlord, lease.id, NoticeType.TERMINATION, effective_date=date(2026, 6, 30))
    await engine.schedule_inspection(flow.landlord, lease.id, InspectionKind.MOVE_OUT, datetime(2026, 6, 30))

    with pytest.raises(ValidationError):
        await engine.conduct_inspection(flow.landlord, lease.id, InspectionKind.MOVE_OUT)


@pytest.mark.anyio
async def test_move_out_cannot_be_scheduled_without_notice(flow):
    lease = await flow.active()

    with pytest.raises(PreconditionFailedError):
        await flow.engine.schedule_inspection(flow.landlord, lease.id, InspectionKind.MOVE_OUT, datetime(2026, 6, 30))


# =============================================================================
# Return
# =============================================================================

@pytest.mark.anyio
async def test_partial_return_with_deductions(db, flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    lease = await flow.engine.process_deposit_return(
        flow.landlord, lease.id, 80000, [DeductionInput(20000, "Repaint hallway")],
    )

    assert lease.deposit_status == DepositStatus.PARTIALLY_RETURNED
    assert [(t.transaction_type, t.amount_cents) for t in lease.deposit_transactions] == [
        (DepositTransactionType.DEPOSIT, 100000),
        (DepositTransactionType.DEDUCTION, 20000),
        (DepositTransactionType.RETURN, 80000),
    ]
    assert lease.deposit_transactions[1].description == "Repaint hallway"

    result = await db.execute(select(AuditLog).where(AuditLog.action == AuditAction.DEPOSIT_RETURNED))
    assert result.scalar_one().details == {"returned_amount_cents": 80000, "deductions_cents": 20000}


@pytest.mark.anyio
async def test_full_return(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    lease = await flow.engine.process_deposit_return(flow.landlord, lease.id, 100000)
    assert lease.deposit_status == DepositStatus.RETURNED


@pytest.mark.anyio
async def test_return_must_match_deposit_less_deductions(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    with pytest.raises(AmountMismatchError) as exc:
        await flow.engine.process_deposit_return(
            flow.landlord, lease.id, 70000, [DeductionInput(20000, "Repaint hallway")],
        )
    assert exc.value.details["expected_cents"] == 80000

    reloaded = await flow.engine.get_by_id(flow.landlord, lease.id)
    assert reloaded.deposit_status == DepositStatus.HELD
    assert len(reloaded.deposit_transactions) == 1


@pytest.mark.anyio
async def test_return_within_tolerance(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    lease = await flow.engine.process_deposit_return(
        flow.landlord, lease.id, 80100, [DeductionInput(20000, "Repaint hallway")],
    )
    assert lease.deposit_status == DepositStatus.PARTIALLY_RETURNED


@pytest.mark.anyio
async def test_deposit_returned_only_once(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))
    await flow.engine.process_deposit_return(flow.landlord, lease.id, 100000)

    with pytest.raises(PreconditionFailedError):
        await flow.engine.process_deposit_return(flow.landlord, lease.id, 100000)


@pytest.mark.anyio
async def test_zero_return_when_deductions_take_everything(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    lease = await flow.engine.process_deposit_return(
        flow.landlord, lease.id, 0, [DeductionInput(100000, "Full repaint and new carpet")],
    )

    assert lease.deposit_status == DepositStatus.PARTIALLY_RETURNED
    assert [(t.transaction_type, t.amount_cents) for t in lease.deposit_transactions] == [
        (DepositTransactionType.DEPOSIT, 100000),
        (DepositTransactionType.DEDUCTION, 100000),
        (DepositTransactionType.RETURN, 0),
    ]
    with pytest.raises(PreconditionFailedError):
        await flow.engine.process_deposit_return(flow.landlord, lease.id, 0)


@pytest.mark.anyio
async def test_deductions_cannot_exceed_deposit(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    with pytest.raises(ValidationError):
        await flow.engine.process_deposit_return(
            flow.landlord, lease.id, 0, [DeductionInput(100001, "Full renovation")],
        )


@pytest.mark.anyio
async def test_no_return_while_occupied(flow):
    lease = await flow.active()

    with pytest.raises(PreconditionFailedError):
        await flow.engine.process_deposit_return(flow.landlord, lease.id, 100000)


@pytest.mark.anyio
async def test_tenant_cannot_return_deposit(flow, clock):
    lease = await moved_out(flow, clock, datetime(2026, 6, 30, 10, 0))

    with pytest.raises(ForbiddenError):
        await flow.engine.process_deposit_return(flow.tenant, lease.id, 100000)
