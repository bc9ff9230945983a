"""Leases router.

Thin HTTP surface over ``LeaseEngine``. Engine failures carry their own
``kind`` and status and are rendered by the exception handlers in
``app.core.errors``.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import (
    AuthenticatedUser,
    require_admin,
    require_any_role,
    require_owner,
    require_tenant,
)
from app.models.enums import LeaseStatus, PartyRole
from app.models.lease import Lease
from app.schemas.base import ApiResponse
from app.schemas.lease import (
    ApplicationReview,
    CancelRequest,
    ChangeRequestCreate,
    ChangeRequestResolve,
    DepositPayment,
    DepositReturn,
    DraftSave,
    InspectionConduct,
    InspectionSchedule,
    LeaseApplicationCreate,
    LeaseDraftCreate,
    LeaseListItem,
    LeaseResponse,
    LeaseStats,
    LeaseUpdate,
    MarkedRead,
    MessageCreate,
    MessageOnly,
    NoticeCreate,
    PeriodicInspectionCreate,
    PropertySummary,
    RenewalResponse,
    RequiredActionResponse,
    SignLeaseRequest,
    SignLeaseResponse,
    TenantReview,
)
from app.services.events import get_event_publisher
from app.services.lease_engine import Caller, DamageInput, DeductionInput, LeaseEngine
from app.services.lease_rules import required_action, resolve_party
from app.services.payments import get_payment_bridge
from app.services.storage import get_storage_service

router = APIRouter(prefix="/leases", tags=["leases"])


def get_lease_engine(db: AsyncSession = Depends(get_db)) -> LeaseEngine:
    return LeaseEngine(
        db,
        storage=get_storage_service(),
        payments=get_payment_bridge(),
        events=get_event_publisher(),
    )


def _caller_dependency(gate):
    def dependency(
        request: Request,
        current_user: AuthenticatedUser = Depends(gate),
    ) -> Caller:
        return Caller(
            user_id=current_user.db_user_id,
            role=current_user.role,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )

    return dependency


any_caller = _caller_dependency(require_any_role)
tenant_caller = _caller_dependency(require_tenant)
owner_caller = _caller_dependency(require_owner)
admin_caller = _caller_dependency(require_admin)


def _lease_response(lease: Lease, message: str) -> ApiResponse[LeaseResponse]:
    return ApiResponse(message=message, data=LeaseResponse.model_validate(lease))


def _list_item(lease: Lease, caller: Caller) -> LeaseListItem:
    party = resolve_party(lease, caller.user_id)
    action = required_action(lease, party)
    return LeaseListItem(
        id=lease.id,
        title=lease.title,
        status=lease.status,
        property_id=lease.property_id,
        listing=PropertySummary.model_validate(lease.listing) if lease.listing else None,
        landlord_id=lease.landlord_id,
        tenant_id=lease.tenant_id,
        start_date=lease.start_date,
        end_date=lease.end_date,
        rent_amount_cents=lease.rent_amount_cents,
        deposit_status=lease.deposit_status,
        renewal_status=lease.renewal_status,
        is_locked=lease.is_locked,
        updated_at=lease.updated_at,
        my_role=party,
        required_action=RequiredActionResponse.model_validate(action) if action else None,
    )


# === Collections ===


@router.get("", response_model=ApiResponse[list[LeaseListItem]])
async def list_leases(
    role: Optional[PartyRole] = None,
    status: Optional[LeaseStatus] = None,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """List the caller's leases, optionally as landlord or tenant only."""
    leases = await engine.list_for_user(caller, role=role, status=status)
    items = [_list_item(lease, caller) for lease in leases]
    return ApiResponse(message=f"{len(items)} leases", data=items)


@router.get("/stats", response_model=ApiResponse[LeaseStats])
async def lease_stats(
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    stats = await engine.get_stats(caller)
    return ApiResponse(message="Lease statistics", data=LeaseStats.model_validate(stats))


@router.get("/trash", response_model=ApiResponse[list[LeaseListItem]])
async def list_trash(
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Soft-deleted leases the caller is party to."""
    leases = await engine.list_trash(caller)
    return ApiResponse(message=f"{len(leases)} deleted leases", data=[_list_item(lease, caller) for lease in leases])


@router.post("/sweep", response_model=ApiResponse[dict[str, int]])
async def sweep_leases(
    caller: Caller = Depends(admin_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Re-run time-based derivations (expiry, activation, renewal) on every open lease."""
    updated = await engine.sweep()
    return ApiResponse(message="Sweep complete", data={"updated": updated})


@router.post("/apply", response_model=ApiResponse[LeaseResponse], status_code=status.HTTP_201_CREATED)
async def apply_for_lease(
    data: LeaseApplicationCreate,
    caller: Caller = Depends(tenant_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Tenant applies to rent a property."""
    lease = await engine.create_application(
        caller, data.property_id, message=data.message, start_date=data.start_date, end_date=data.end_date,
    )
    return _lease_response(lease, "Application submitted")


@router.post("", response_model=ApiResponse[LeaseResponse], status_code=status.HTTP_201_CREATED)
async def create_draft(
    data: LeaseDraftCreate,
    caller: Caller = Depends(owner_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Landlord drafts a lease for a tenant directly."""
    lease = await engine.create_draft(caller, data.property_id, data.tenant_id, terms=data.terms.changes())
    return _lease_response(lease, "Lease draft created")


# === Single lease ===


@router.get("/{lease_id}", response_model=ApiResponse[LeaseResponse])
async def get_lease(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.get_by_id(caller, lease_id)
    return _lease_response(lease, "Lease retrieved")


@router.patch("/{lease_id}", response_model=ApiResponse[LeaseResponse])
async def update_lease(
    lease_id: UUID,
    data: LeaseUpdate,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Update terms in place (landlord) or post a message (either party)."""
    lease = await engine.update_terms(caller, lease_id, fields=data.changes(), message=data.message)
    return _lease_response(lease, "Lease updated")


@router.get("/{lease_id}/document")
async def download_lease_document(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Render the executed lease as a PDF."""
    pdf = await engine.render_document(caller, lease_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="lease-{lease_id}.pdf"'},
    )


# === Application review & drafting ===


@router.post("/{lease_id}/review", response_model=ApiResponse[LeaseResponse])
async def review_application(
    lease_id: UUID,
    data: ApplicationReview,
    caller: Caller = Depends(owner_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    screening = data.screening.model_dump(exclude_none=True) if data.screening else None
    lease = await engine.review_application(caller, lease_id, data.action, screening=screening, reason=data.reason)
    return _lease_response(lease, f"Application {data.action.replace('_', ' ')} recorded")


@router.put("/{lease_id}/draft", response_model=ApiResponse[LeaseResponse])
async def save_draft(
    lease_id: UUID,
    data: DraftSave,
    caller: Caller = Depends(owner_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.save_draft(
        caller, lease_id, terms=data.terms.changes(), resolution_notes=data.resolution_notes, message=data.message,
    )
    return _lease_response(lease, "Draft saved")


@router.post("/{lease_id}/send-to-tenant", response_model=ApiResponse[LeaseResponse])
async def send_to_tenant(
    lease_id: UUID,
    data: MessageOnly = MessageOnly(),
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.send_to_tenant(caller, lease_id, message=data.message)
    return _lease_response(lease, "Lease sent to tenant")


@router.post("/{lease_id}/request-changes", response_model=ApiResponse[LeaseResponse])
async def request_changes(
    lease_id: UUID,
    data: ChangeRequestCreate,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.request_changes(caller, lease_id, data.changes, message=data.message)
    return _lease_response(lease, "Changes requested")


@router.post("/{lease_id}/send-to-landlord", response_model=ApiResponse[LeaseResponse])
async def send_to_landlord(
    lease_id: UUID,
    data: MessageOnly = MessageOnly(),
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.send_to_landlord(caller, lease_id, message=data.message)
    return _lease_response(lease, "Lease sent to landlord")


@router.post("/{lease_id}/tenant-review", response_model=ApiResponse[LeaseResponse])
async def tenant_review(
    lease_id: UUID,
    data: TenantReview,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Tenant approves the draft or asks for changes."""
    lease = await engine.tenant_review(caller, lease_id, data.action, changes=data.changes, message=data.message)
    return _lease_response(lease, "Review recorded")


@router.post("/{lease_id}/change-requests/{change_id}/resolve", response_model=ApiResponse[LeaseResponse])
async def resolve_change_request(
    lease_id: UUID,
    change_id: UUID,
    data: ChangeRequestResolve = ChangeRequestResolve(),
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.resolve_change_request(caller, lease_id, change_id, notes=data.notes)
    return _lease_response(lease, "Change request resolved")


# === Signing ===


@router.post("/{lease_id}/sign", response_model=ApiResponse[SignLeaseResponse])
async def sign_lease(
    lease_id: UUID,
    data: SignLeaseRequest,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """E-sign the lease. Landlord signs first; the tenant signature executes and locks it."""
    result = await engine.sign(caller, lease_id, data.signature_data, data.mode.value, typed_text=data.typed_text)
    message = "Lease fully executed" if result.is_fully_signed else "Lease signed"
    return ApiResponse(
        message=message,
        data=SignLeaseResponse(
            status=result.status,
            is_fully_signed=result.is_fully_signed,
            signature_url=result.signature_url,
        ),
    )


# === Inspections ===


@router.post("/{lease_id}/inspections/schedule", response_model=ApiResponse[LeaseResponse])
async def schedule_inspection(
    lease_id: UUID,
    data: InspectionSchedule,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.schedule_inspection(caller, lease_id, data.kind, data.scheduled_at, notes=data.notes)
    return _lease_response(lease, f"{data.kind.value.replace('_', '-')} inspection scheduled")


@router.post("/{lease_id}/inspections/conduct", response_model=ApiResponse[LeaseResponse])
async def conduct_inspection(
    lease_id: UUID,
    data: InspectionConduct,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Record one party's sign-off on a move-in or move-out inspection."""
    damages = [
        DamageInput(
            description=d.description,
            responsibility=d.responsibility,
            estimated_cost_cents=d.estimated_cost_cents,
            photos=tuple(d.photos),
        )
        for d in data.damages
    ]
    lease = await engine.conduct_inspection(
        caller,
        lease_id,
        data.kind,
        report=data.report,
        photos=data.photos,
        condition=data.condition,
        damages=damages,
    )
    return _lease_response(lease, "Inspection recorded")


@router.post("/{lease_id}/inspections/periodic", response_model=ApiResponse[LeaseResponse])
async def add_periodic_inspection(
    lease_id: UUID,
    data: PeriodicInspectionCreate,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.add_periodic_inspection(
        caller,
        lease_id,
        data.inspected_at,
        findings=data.findings,
        photos=data.photos,
        next_inspection_date=data.next_inspection_date,
    )
    return _lease_response(lease, "Periodic inspection recorded")


# === Notices & renewal ===


@router.post("/{lease_id}/notices", response_model=ApiResponse[LeaseResponse])
async def give_notice(
    lease_id: UUID,
    data: NoticeCreate,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.give_notice(
        caller,
        lease_id,
        data.notice_type,
        effective_date=data.effective_date,
        reason=data.reason,
        new_rent_cents=data.new_rent_cents,
        new_end_date=data.new_end_date,
    )
    return _lease_response(lease, "Notice recorded")


@router.post("/{lease_id}/notices/{notice_id}/acknowledge", response_model=ApiResponse[LeaseResponse])
async def acknowledge_notice(
    lease_id: UUID,
    notice_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.acknowledge_notice(caller, lease_id, notice_id)
    return _lease_response(lease, "Notice acknowledged")


@router.post("/{lease_id}/renewal/open", response_model=ApiResponse[LeaseResponse])
async def open_renewal(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.open_renewal(caller, lease_id)
    return _lease_response(lease, "Renewal period opened")


@router.post("/{lease_id}/renewal/respond", response_model=ApiResponse[LeaseResponse])
async def respond_to_renewal(
    lease_id: UUID,
    data: RenewalResponse,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.respond_to_renewal(
        caller,
        lease_id,
        data.action,
        new_rent_cents=data.new_rent_cents,
        new_end_date=data.new_end_date,
        notes=data.notes,
    )
    return _lease_response(lease, "Renewal accepted" if data.action == "accept" else "Renewal declined")


# === Deposit ===


@router.post("/{lease_id}/deposit/payment", response_model=ApiResponse[LeaseResponse])
async def record_deposit_payment(
    lease_id: UUID,
    data: DepositPayment,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.record_deposit_payment(caller, lease_id, data.amount_cents, proof=data.proof)
    return _lease_response(lease, "Deposit payment recorded")


@router.post("/{lease_id}/deposit/return", response_model=ApiResponse[LeaseResponse])
async def process_deposit_return(
    lease_id: UUID,
    data: DepositReturn,
    caller: Caller = Depends(owner_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Return the deposit less itemized deductions."""
    deductions = [DeductionInput(amount_cents=d.amount_cents, reason=d.reason) for d in data.deductions]
    lease = await engine.process_deposit_return(caller, lease_id, data.returned_amount_cents, deductions=deductions)
    return _lease_response(lease, "Deposit return processed")


# === Messages ===


@router.post("/{lease_id}/messages", response_model=ApiResponse[LeaseResponse], status_code=status.HTTP_201_CREATED)
async def post_message(
    lease_id: UUID,
    data: MessageCreate,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.post_message(caller, lease_id, data.text, attachments=data.attachments)
    return _lease_response(lease, "Message sent")


@router.post("/{lease_id}/messages/read", response_model=ApiResponse[MarkedRead])
async def mark_messages_read(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    marked = await engine.mark_messages_read(caller, lease_id)
    return ApiResponse(message=f"{marked} messages marked read", data=MarkedRead(marked=marked))


# === Cancel / delete ===


@router.post("/{lease_id}/cancel", response_model=ApiResponse[LeaseResponse])
async def cancel_lease(
    lease_id: UUID,
    data: CancelRequest = CancelRequest(),
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.cancel(caller, lease_id, reason=data.reason)
    return _lease_response(lease, "Lease cancelled")


@router.delete("/{lease_id}", response_model=ApiResponse[LeaseResponse])
async def delete_lease(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Move a lease to the trash."""
    lease = await engine.soft_delete(caller, lease_id)
    return _lease_response(lease, "Lease moved to trash")


@router.post("/{lease_id}/restore", response_model=ApiResponse[LeaseResponse])
async def restore_lease(
    lease_id: UUID,
    caller: Caller = Depends(any_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    lease = await engine.restore(caller, lease_id)
    return _lease_response(lease, "Lease restored")


@router.delete("/{lease_id}/purge", response_model=ApiResponse[dict[str, str]])
async def purge_lease(
    lease_id: UUID,
    caller: Caller = Depends(admin_caller),
    engine: LeaseEngine = Depends(get_lease_engine),
):
    """Permanently delete a lease and its history. Admin only."""
    await engine.purge(caller, lease_id)
    return ApiResponse(message="Lease permanently deleted", data={"id": str(lease_id)})
