"""Lease persistence: load, derive, flush.

Every load runs the lazy derivations before the caller sees the lease, and
every flush runs them again so a write never persists a stale status.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import AlreadySignedError, ConflictError, NotFoundError
from app.models.lease import Lease
from app.services.lease_derive import derive_all
from app.services.lease_rules import TERMINAL_STATUSES, LeasePolicy

logger = logging.getLogger(__name__)


class LeaseRepository:
    def __init__(self, db: AsyncSession, policy: LeasePolicy):
        self.db = db
        self.policy = policy

    async def get(
        self,
        lease_id: UUID,
        now: datetime,
        *,
        include_deleted: bool = False,
        for_update: bool = False,
    ) -> Lease:
        """Load a lease with all child rows and apply derivations.

        Raises NotFoundError for missing and (unless asked) soft-deleted leases.
        """
        query = select(Lease).where(Lease.id == lease_id)
        if not include_deleted:
            query = query.where(Lease.is_deleted.is_(False))
        if for_update:
            query = query.with_for_update(of=Lease)
        query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        lease = result.scalar_one_or_none()
        if not lease:
            raise NotFoundError("Lease not found", details={"lease_id": str(lease_id)})

        derive_all(lease, now, self.policy)
        return lease

    def add(self, lease: Lease) -> None:
        self.db.add(lease)

    async def flush(self, lease: Optional[Lease], now: datetime) -> None:
        """Derive, then flush pending changes.

        A duplicate signature slot surfaces as AlreadySigned and a stale
        version as Conflict. The request session is rolled back by its owner.
        """
        if lease is not None:
            derive_all(lease, now, self.policy)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if "lease_signatures" in str(e.orig) or "uq_lease_signature_party" in str(e.orig):
                raise AlreadySignedError("This party has already signed the lease") from e
            logger.warning(f"[LEASE] Integrity error on flush: {e.orig}")
            raise ConflictError("The lease could not be saved; it conflicts with existing data") from e
        except StaleDataError as e:
            raise ConflictError("The lease was modified by another request; reload and retry") from e

    async def delete(self, lease: Lease) -> None:
        await self.db.delete(lease)
        await self.db.flush()

    async def sweep(self, now: datetime) -> int:
        """Apply derivations to every non-terminal, non-deleted lease.

        Intended for an external scheduler; returns the number of leases changed.
        """
        result = await self.db.execute(
            select(Lease).where(
                Lease.is_deleted.is_(False),
                Lease.status.not_in(list(TERMINAL_STATUSES)),
            )
        )
        changed = 0
        for lease in result.scalars().all():
            if derive_all(lease, now, self.policy):
                changed += 1
        await self.flush(None, now)
        if changed:
            logger.info(f"[LEASE] Sweep updated {changed} lease(s)")
        return changed
