"""
Leasehold - Signing Tests
Signature ordering, write-once slots, locking and upload failure handling.
"""

import asyncio
import base64

import pytest
from sqlalchemy import select

from app.core.database import get_session_factory
from app.core.errors import (
    AlreadyLockedError,
    AlreadySignedError,
    ConflictError,
    InvalidTransitionError,
    OutOfOrderError,
    UnauthorizedError,
    UpstreamFailureError,
    ValidationError,
)
from app.models import AuditLog
from app.models.enums import AuditAction, LeaseStatus, PartyRole, SignatureType
from app.services.lease_engine import LeaseEngine
from app.services.lease_rules import LeasePolicy
from app.services.storage import StorageService
from tests.conftest import SIGNATURE_PNG, GatedStorageProvider, caller_for


@pytest.mark.anyio
async def test_landlord_signs_first(flow, storage_provider, clock):
    lease = await flow.sent_to_landlord()

    result = await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")

    assert result.status == LeaseStatus.SIGNED_BY_LANDLORD
    assert not result.is_fully_signed
    assert result.signature_url.startswith(f"https://storage.test/leases/{lease.id}/signatures/landlord-signature-")
    assert len(storage_provider.objects) == 1

    signature = result.lease.signature_for(PartyRole.LANDLORD)
    assert signature.signed_by_id == flow.landlord.user_id
    assert signature.signed_at == clock.now
    assert signature.signature_type == SignatureType.DRAW
    assert signature.ip_address == "127.0.0.1"
    assert signature.user_agent == "pytest"
    assert not result.lease.is_locked


@pytest.mark.anyio
async def test_tenant_signature_executes_and_locks(flow, clock):
    lease = await flow.executed()

    assert lease.status == LeaseStatus.FULLY_EXECUTED
    assert lease.is_fully_signed
    assert lease.is_locked
    assert lease.locked_at == clock.now
    assert [entry.status for entry in lease.status_history] == [
        LeaseStatus.DRAFT,
        LeaseStatus.SENT_TO_TENANT,
        LeaseStatus.SENT_TO_LANDLORD,
        LeaseStatus.SIGNED_BY_LANDLORD,
        LeaseStatus.FULLY_EXECUTED,
    ]


@pytest.mark.anyio
async def test_signatures_are_audited(db, flow):
    lease = await flow.executed()

    result = await db.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.LEASE_SIGNED, AuditLog.resource_id == lease.id)
    )
    entries = result.scalars().all()
    assert sorted(entry.details["party"] for entry in entries) == ["landlord", "tenant"]


@pytest.mark.anyio
async def test_tenant_cannot_sign_first(flow):
    lease = await flow.sent_to_landlord()

    with pytest.raises(OutOfOrderError):
        await flow.engine.sign(flow.tenant, lease.id, SIGNATURE_PNG, "draw")


@pytest.mark.anyio
async def test_landlord_cannot_sign_twice(flow):
    lease = await flow.sent_to_landlord()
    await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")

    with pytest.raises(AlreadySignedError):
        await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")


@pytest.mark.anyio
async def test_no_signing_after_execution(flow):
    lease = await flow.executed()

    with pytest.raises(AlreadyLockedError):
        await flow.engine.sign(flow.tenant, lease.id, SIGNATURE_PNG, "draw")
    with pytest.raises(AlreadyLockedError):
        await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")


@pytest.mark.anyio
async def test_stranger_cannot_sign(flow, stranger):
    lease = await flow.sent_to_landlord()

    with pytest.raises(UnauthorizedError):
        await flow.engine.sign(caller_for(stranger), lease.id, SIGNATURE_PNG, "draw")


@pytest.mark.anyio
async def test_draft_cannot_be_signed(flow):
    lease = await flow.draft()

    with pytest.raises(InvalidTransitionError):
        await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")


@pytest.mark.anyio
async def test_typed_signature_needs_no_upload(flow, storage_provider):
    lease = await flow.sent_to_landlord()

    result = await flow.engine.sign(flow.landlord, lease.id, None, "type", typed_text="  Lana Landlord ")

    assert result.status == LeaseStatus.SIGNED_BY_LANDLORD
    assert result.signature_url is None
    assert storage_provider.objects == {}
    assert result.lease.signature_for(PartyRole.LANDLORD).typed_text == "Lana Landlord"


@pytest.mark.anyio
async def test_bare_base64_is_accepted(flow, storage_provider):
    lease = await flow.sent_to_landlord()
    bare = base64.b64encode(b"\x89PNG\r\n\x1a\nbare").decode()

    result = await flow.engine.sign(flow.landlord, lease.id, bare, "upload")

    assert result.lease.signature_for(PartyRole.LANDLORD).signature_type == SignatureType.UPLOAD
    assert list(storage_provider.objects.values()) == [b"\x89PNG\r\n\x1a\nbare"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "signature_data,mode",
    [
        (None, "draw"),
        ("data:image/png;base64,!!!not-base64!!!", "draw"),
        ("data:text/plain;base64," + base64.b64encode(b"hello").decode(), "draw"),
        (SIGNATURE_PNG, "fingerprint"),
        (None, "type"),
    ],
)
async def test_invalid_signature_input(flow, storage_provider, signature_data, mode):
    lease = await flow.sent_to_landlord()

    with pytest.raises(ValidationError):
        await flow.engine.sign(flow.landlord, lease.id, signature_data, mode)

    assert storage_provider.objects == {}
    reloaded = await flow.engine.get_by_id(flow.landlord, lease.id)
    assert reloaded.status == LeaseStatus.SENT_TO_LANDLORD
    assert reloaded.signatures == []


@pytest.mark.anyio
async def test_upload_failure_leaves_lease_unchanged(flow, storage_provider):
    lease = await flow.sent_to_landlord()
    history_length = len(lease.status_history)
    storage_provider.fail = True

    with pytest.raises(UpstreamFailureError):
        await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")

    reloaded = await flow.engine.get_by_id(flow.landlord, lease.id)
    assert reloaded.status == LeaseStatus.SENT_TO_LANDLORD
    assert reloaded.signatures == []
    assert len(reloaded.status_history) == history_length

    storage_provider.fail = False
    result = await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")
    assert result.status == LeaseStatus.SIGNED_BY_LANDLORD


async def sign_while_gated(flow, payments, clock, interleave, expected):
    """Start a landlord signature in a second session and run ``interleave`` while its upload is held.

    The held signature must fail with ``expected`` and leave no uploaded object behind.
    """
    provider = GatedStorageProvider()
    lease = await flow.sent_to_landlord()
    await flow.engine.db.commit()

    async with get_session_factory()() as other:
        engine = LeaseEngine(
            other, storage=StorageService(provider), payments=payments, policy=LeasePolicy(), clock=clock,
        )
        pending = asyncio.create_task(engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw"))
        await provider.entered.wait()
        await interleave(lease)
        await flow.engine.db.commit()
        provider.release.set()

        with pytest.raises(expected):
            await pending

    assert provider.objects == {}
    return await flow.engine.get_by_id(flow.landlord, lease.id)


@pytest.mark.anyio
async def test_concurrent_signature_by_same_party(flow, payments, clock, storage_provider):
    async def landlord_signs_first(lease):
        await flow.engine.sign(flow.landlord, lease.id, SIGNATURE_PNG, "draw")

    lease = await sign_while_gated(flow, payments, clock, landlord_signs_first, AlreadySignedError)

    assert lease.status == LeaseStatus.SIGNED_BY_LANDLORD
    assert [s.party for s in lease.signatures] == [PartyRole.LANDLORD]
    assert len(storage_provider.objects) == 1


@pytest.mark.anyio
async def test_signature_racing_a_cancellation(flow, payments, clock):
    async def tenant_cancels(lease):
        await flow.engine.cancel(flow.tenant, lease.id, reason="Changed my mind")

    lease = await sign_while_gated(flow, payments, clock, tenant_cancels, ConflictError)

    assert lease.status == LeaseStatus.CANCELLED
    assert lease.signatures == []
