"""
Leasehold - Lease API Tests
HTTP surface: envelopes, role gates, error rendering and a full signing flow.
"""

from uuid import uuid4

import pytest

from tests.conftest import SIGNATURE_PNG

DRAFT_BODY_TERMS = {
    "start_date": "2026-01-01",
    "end_date": "2026-12-31",
    "rent_amount_cents": 150000,
    "security_deposit_cents": 100000,
    "payment_due_day": 1,
}


async def create_draft(ac, auth, landlord, tenant, listing) -> str:
    auth(landlord)
    response = await ac.post(
        "/v1/leases",
        json={"property_id": str(listing.id), "tenant_id": str(tenant.id), "terms": DRAFT_BODY_TERMS},
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.mark.anyio
async def test_health(client):
    ac, _ = client
    response = await ac.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.anyio
async def test_me(db, client, tenant):
    await db.commit()
    ac, auth = client
    auth(tenant)

    response = await ac.get("/v1/auth/me")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "tenant@example.com"
    assert data["role"] == "tenant"
    assert data["db_user_id"] == str(tenant.id)


@pytest.mark.anyio
async def test_tenant_applies(db, client, tenant, listing):
    await db.commit()
    ac, auth = client
    auth(tenant)

    response = await ac.post(
        "/v1/leases/apply",
        json={"property_id": str(listing.id), "message": "Hello, is it still available?"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Application submitted"
    assert body["data"]["status"] == "pending_request"
    assert body["data"]["listing"]["title"] == "Maple Street Flat"
    assert body["data"]["messages"][0]["text"] == "Hello, is it still available?"


@pytest.mark.anyio
async def test_owner_cannot_apply(db, client, landlord, listing):
    await db.commit()
    ac, auth = client
    auth(landlord)

    response = await ac.post("/v1/leases/apply", json={"property_id": str(listing.id)})

    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["kind"] == "Forbidden"


@pytest.mark.anyio
async def test_unknown_lease(db, client, tenant):
    await db.commit()
    ac, auth = client
    auth(tenant)

    response = await ac.get(f"/v1/leases/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound"


@pytest.mark.anyio
async def test_malformed_lease_id(db, client, tenant):
    await db.commit()
    ac, auth = client
    auth(tenant)

    response = await ac.get("/v1/leases/not-a-uuid")

    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"


@pytest.mark.anyio
async def test_invalid_terms_rejected(db, client, landlord, tenant, listing):
    await db.commit()
    ac, auth = client
    auth(landlord)

    response = await ac.post(
        "/v1/leases",
        json={
            "property_id": str(listing.id),
            "tenant_id": str(tenant.id),
            "terms": {**DRAFT_BODY_TERMS, "end_date": "2025-06-01"},
        },
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"


@pytest.mark.anyio
async def test_draft_to_execution(db, client, landlord, tenant, listing, storage_provider):
    await db.commit()
    ac, auth = client
    lease_id = await create_draft(ac, auth, landlord, tenant, listing)

    response = await ac.post(f"/v1/leases/{lease_id}/send-to-tenant", json={"message": "Please review"})
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "sent_to_tenant"

    auth(tenant)
    response = await ac.post(f"/v1/leases/{lease_id}/tenant-review", json={"action": "approve"})
    assert response.json()["data"]["status"] == "sent_to_landlord"

    response = await ac.post(f"/v1/leases/{lease_id}/sign", json={"signature_data": SIGNATURE_PNG})
    assert response.status_code == 409
    assert response.json()["kind"] == "OutOfOrder"

    auth(landlord)
    response = await ac.post(f"/v1/leases/{lease_id}/sign", json={"signature_data": SIGNATURE_PNG})
    assert response.status_code == 200
    assert response.json()["message"] == "Lease signed"
    assert response.json()["data"]["status"] == "signed_by_landlord"

    auth(tenant)
    response = await ac.post(
        f"/v1/leases/{lease_id}/sign", json={"mode": "type", "typed_text": "Terry Tenant"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Lease fully executed"
    assert body["data"] == {"status": "fully_executed", "is_fully_signed": True, "signature_url": None}
    assert len(storage_provider.objects) == 1

    auth(landlord)
    response = await ac.patch(f"/v1/leases/{lease_id}", json={"rent_amount_cents": 1})
    assert response.status_code == 409
    assert response.json()["kind"] == "PreconditionFailed"

    response = await ac.get(f"/v1/leases/{lease_id}")
    lease = response.json()["data"]
    assert lease["is_locked"] is True
    assert lease["rent_amount_cents"] == 150000
    assert sorted(s["party"] for s in lease["signatures"]) == ["landlord", "tenant"]

    response = await ac.get(f"/v1/leases/{lease_id}/document")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


@pytest.mark.anyio
async def test_list_items_carry_role_and_next_action(db, client, landlord, tenant, listing):
    await db.commit()
    ac, auth = client
    lease_id = await create_draft(ac, auth, landlord, tenant, listing)
    await ac.post(f"/v1/leases/{lease_id}/send-to-tenant")

    auth(tenant)
    response = await ac.get("/v1/leases")
    assert response.status_code == 200
    [item] = response.json()["data"]
    assert item["id"] == lease_id
    assert item["my_role"] == "tenant"
    assert item["required_action"] == {"action": "review_lease", "priority": "high"}

    auth(landlord)
    [item] = (await ac.get("/v1/leases", params={"role": "landlord"})).json()["data"]
    assert item["my_role"] == "landlord"
    assert item["required_action"] is None

    response = await ac.get("/v1/leases", params={"status": "draft"})
    assert response.json()["data"] == []


@pytest.mark.anyio
async def test_stats_endpoint(db, client, landlord, tenant, listing):
    await db.commit()
    ac, auth = client
    await create_draft(ac, auth, landlord, tenant, listing)

    response = await ac.get("/v1/leases/stats")

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total"] == 1
    assert stats["by_status"] == {"draft": {"count": 1, "total_rent_cents": 150000}}


@pytest.mark.anyio
async def test_stranger_cannot_read(db, client, landlord, tenant, stranger, listing):
    await db.commit()
    ac, auth = client
    lease_id = await create_draft(ac, auth, landlord, tenant, listing)

    auth(stranger)
    response = await ac.get(f"/v1/leases/{lease_id}")

    assert response.status_code == 403
    assert response.json()["kind"] == "Unauthorized"


@pytest.mark.anyio
async def test_messages(db, client, landlord, tenant, listing):
    await db.commit()
    ac, auth = client
    lease_id = await create_draft(ac, auth, landlord, tenant, listing)

    auth(tenant)
    response = await ac.post(f"/v1/leases/{lease_id}/messages", json={"text": "When can I view it?"})
    assert response.status_code == 201
    assert response.json()["data"]["messages"][-1]["text"] == "When can I view it?"

    auth(landlord)
    response = await ac.post(f"/v1/leases/{lease_id}/messages/read")
    assert response.json()["data"] == {"marked": 1}


@pytest.mark.anyio
async def test_trash_restore_and_purge(db, client, landlord, tenant, admin, listing):
    await db.commit()
    ac, auth = client
    lease_id = await create_draft(ac, auth, landlord, tenant, listing)

    response = await ac.delete(f"/v1/leases/{lease_id}")
    assert response.status_code == 200
    assert response.json()["data"]["is_deleted"] is True

    trash = (await ac.get("/v1/leases/trash")).json()["data"]
    assert [item["id"] for item in trash] == [lease_id]

    response = await ac.post(f"/v1/leases/{lease_id}/restore")
    assert response.json()["data"]["is_deleted"] is False

    response = await ac.delete(f"/v1/leases/{lease_id}/purge")
    assert response.status_code == 403

    auth(admin)
    response = await ac.delete(f"/v1/leases/{lease_id}/purge")
    assert response.status_code == 200
    assert response.json()["data"] == {"id": lease_id}

    response = await ac.get(f"/v1/leases/{lease_id}")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_sweep_requires_admin(db, client, landlord, admin):
    await db.commit()
    ac, auth = client

    auth(landlord)
    assert (await ac.post("/v1/leases/sweep")).status_code == 403

    auth(admin)
    response = await ac.post("/v1/leases/sweep")
    assert response.status_code == 200
    assert response.json()["data"] == {"updated": 0}
