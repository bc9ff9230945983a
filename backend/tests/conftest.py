"""
Leasehold - Shared Test Fixtures
Provides reusable fixtures for the database, lease parties, fakes and the API client.
"""

import asyncio
import base64
import os
from datetime import date, datetime
from typing import AsyncGenerator, Optional

import pytest
from httpx import AsyncClient, ASGITransport

# Configure test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_leasehold.db"
os.environ["DEBUG"] = "true"
os.environ["FIREBASE_PROJECT_ID"] = "leasehold-test"
os.environ["STORAGE_PROVIDER"] = "gcs"
os.environ["GCS_BUCKET_NAME"] = "leasehold-test-bucket"
os.environ["GCS_PROJECT_ID"] = "leasehold-test"
os.environ["ALLOWED_ORIGINS"] = "http://localhost:3000"

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.main import app
from app.core.database import Base, get_db, get_engine, get_session_factory
from app.core.security import AuthenticatedUser, get_current_user
from app.models import Property, User
from app.models.enums import InspectionKind, PropertyStatus, UserRole
from app.routers.leases import get_lease_engine
from app.services.events import LeaseEventPublisher
from app.services.lease_engine import Caller, LeaseEngine
from app.services.lease_rules import LeasePolicy
from app.services.storage import StorageProviderInterface, StorageService

SIGNATURE_PNG = "data:image/png;base64," + base64.b64encode(b"\x89PNG\r\n\x1a\nsignature-strokes").decode()

START = date(2026, 1, 1)
END = date(2026, 12, 31)
DRAFT_TERMS = {
    "start_date": START,
    "end_date": END,
    "rent_amount_cents": 150000,
    "security_deposit_cents": 100000,
    "payment_due_day": 1,
}


# =============================================================================
# Fakes
# =============================================================================

class InMemoryStorageProvider(StorageProviderInterface):
    """Keeps uploaded objects in a dict; can be told to fail."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail = False

    async def upload_bytes(self, object_path: str, data: bytes, mime_type: str) -> str:
        if self.fail:
            raise ConnectionError("storage backend unavailable")
        self.objects[object_path] = data
        return f"https://storage.test/{object_path}"

    async def delete_object(self, object_path: str) -> bool:
        return self.objects.pop(object_path, None) is not None


class RecordingPaymentBridge:
    """Stands in for the payment service; records refund requests."""

    def __init__(self):
        self.refunds: list[dict] = []

    async def request_refund(self, lease_id, amount_cents: int, reason: str) -> Optional[dict]:
        self.refunds.append({"lease_id": lease_id, "amount_cents": amount_cents, "reason": reason})
        return {"status": "queued"}


class RecordingEventPublisher(LeaseEventPublisher):
    """Builds real event envelopes but keeps them instead of posting."""

    def __init__(self):
        super().__init__(base_url=None)
        self.sent: list[dict] = []

    async def send(self, event: dict) -> Optional[dict]:
        self.sent.append(event)
        return {"status": "accepted"}


class GatedStorageProvider(InMemoryStorageProvider):
    """Holds every upload until ``release`` is set, signalling ``entered`` first."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def upload_bytes(self, object_path: str, data: bytes, mime_type: str) -> str:
        self.entered.set()
        await self.release.wait()
        return await super().upload_bytes(object_path, data, mime_type)


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Create database tables, yield a session, drop everything afterwards."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_factory()() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def storage_provider() -> InMemoryStorageProvider:
    return InMemoryStorageProvider()


@pytest.fixture
def storage(storage_provider: InMemoryStorageProvider) -> StorageService:
    return StorageService(storage_provider, max_size_mb=1)


@pytest.fixture
def payments() -> RecordingPaymentBridge:
    return RecordingPaymentBridge()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 12, 1, 9, 0))


@pytest.fixture
def lease_engine(db, storage, payments, clock) -> LeaseEngine:
    return LeaseEngine(db, storage=storage, payments=payments, policy=LeasePolicy(), clock=clock)


# =============================================================================
# Parties
# =============================================================================

async def make_user(db: AsyncSession, role: UserRole, name: str) -> User:
    user = User(
        firebase_uid=f"uid-{name}",
        email=f"{name}@example.com",
        full_name=name.title(),
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


@pytest.fixture
async def landlord(db) -> User:
    return await make_user(db, UserRole.OWNER, "landlord")


@pytest.fixture
async def tenant(db) -> User:
    return await make_user(db, UserRole.TENANT, "tenant")


@pytest.fixture
async def stranger(db) -> User:
    return await make_user(db, UserRole.TENANT, "stranger")


@pytest.fixture
async def admin(db) -> User:
    return await make_user(db, UserRole.ADMIN, "admin")


async def make_listing(db: AsyncSession, owner: User, title: str, address: str) -> Property:
    prop = Property(
        owner_id=owner.id,
        title=title,
        address=address,
        city="Springfield",
        status=PropertyStatus.ACTIVE,
        price_cents=150000,
    )
    db.add(prop)
    await db.flush()
    return prop


@pytest.fixture
async def listing(db, landlord) -> Property:
    return await make_listing(db, landlord, "Maple Street Flat", "12 Maple Street")


@pytest.fixture
async def second_listing(db, landlord) -> Property:
    return await make_listing(db, landlord, "Oak Avenue House", "7 Oak Avenue")


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.id, role=user.role, ip_address="127.0.0.1", user_agent="pytest")


class LeaseFlow:
    """Drives a lease through the workflow with the engine."""

    def __init__(self, engine: LeaseEngine, landlord: User, tenant: User, listing: Property):
        self.engine = engine
        self.landlord = caller_for(landlord)
        self.tenant = caller_for(tenant)
        self.listing = listing

    async def draft(self, listing: Optional[Property] = None, **terms):
        listing = listing or self.listing
        return await self.engine.create_draft(
            self.landlord, listing.id, self.tenant.user_id, terms={**DRAFT_TERMS, **terms},
        )

    async def sent_to_landlord(self, listing: Optional[Property] = None, **terms):
        lease = await self.draft(listing, **terms)
        await self.engine.send_to_tenant(self.landlord, lease.id)
        return await self.engine.send_to_landlord(self.tenant, lease.id)

    async def executed(self, listing: Optional[Property] = None, **terms):
        lease = await self.sent_to_landlord(listing, **terms)
        await self.engine.sign(self.landlord, lease.id, SIGNATURE_PNG, "draw")
        result = await self.engine.sign(self.tenant, lease.id, SIGNATURE_PNG, "draw")
        return result.lease

    async def active(self, listing: Optional[Property] = None, deposit: bool = True, **terms):
        lease = await self.executed(listing, **terms)
        if deposit:
            await self.engine.record_deposit_payment(self.landlord, lease.id, lease.security_deposit_cents)
        when = self.engine.clock()
        await self.engine.schedule_inspection(self.landlord, lease.id, InspectionKind.MOVE_IN, when)
        await self.engine.conduct_inspection(self.landlord, lease.id, InspectionKind.MOVE_IN)
        return await self.engine.conduct_inspection(self.tenant, lease.id, InspectionKind.MOVE_IN)


@pytest.fixture
def flow(lease_engine, landlord, tenant, listing) -> LeaseFlow:
    return LeaseFlow(lease_engine, landlord, tenant, listing)


# =============================================================================
# API client
# =============================================================================

class AuthState:
    """Whoever the API should treat as the signed-in user."""

    def __init__(self):
        self.user: Optional[User] = None

    def __call__(self, user: User) -> None:
        self.user = user


@pytest.fixture
async def client(db, storage, payments, clock) -> AsyncGenerator[tuple[AsyncClient, AuthState], None]:
    """Async test client with auth and engine dependencies overridden."""
    auth = AuthState()

    async def override_current_user() -> AuthenticatedUser:
        user = auth.user
        current = AuthenticatedUser(uid=user.firebase_uid, email=user.email, email_verified=True)
        current.db_user_id = user.id
        current.role = user.role
        current.full_name = user.full_name
        return current

    def override_engine(session: AsyncSession = Depends(get_db)) -> LeaseEngine:
        return LeaseEngine(session, storage=storage, payments=payments, policy=LeasePolicy(), clock=clock)

    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_lease_engine] = override_engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac, auth

    app.dependency_overrides.clear()
