"""
Leasehold - Lease Event Publisher

Publishes lease workflow events ("notify the other party") to the configured
notification endpoint. Events are built when the lease changes and sent only
after that change commits. Sending is best-effort: failures are logged and
never reach the caller.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

import httpx

from app.core.config import get_settings
from app.models.lease import Lease

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
PRODUCER = "leasehold"


class LeaseEventPublisher:
    """Sends ``LEASE_*`` events with both parties as recipients."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url

    def build_event(
        self,
        event_type: str,
        lease: Lease,
        actor_id: Optional[str],
        payload: Optional[dict] = None,
    ) -> dict:
        """Snapshot the lease into an event envelope."""
        return {
            "schema_version": SCHEMA_VERSION,
            "event_type": event_type,
            "occurred_at": datetime.utcnow().isoformat() + "Z",
            "idempotency_key": f"{PRODUCER}_{uuid4()}",
            "producer": PRODUCER,
            "subject": {
                "lease_id": str(lease.id),
                "property_id": str(lease.property_id),
            },
            "recipients": [str(lease.landlord_id), str(lease.tenant_id)],
            "payload": {
                **(payload or {}),
                "status": lease.status.value,
                "actor_id": actor_id or "SYSTEM",
            },
        }

    async def send(self, event: dict) -> Optional[dict]:
        if not self.base_url:
            logger.debug(
                f"[EVENTS] {event['event_type']} for lease {event['subject']['lease_id']} not published (no endpoint)"
            )
            return None

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base_url}/api/v1/events",
                    json=event,
                    timeout=10.0,
                )

                if response.status_code not in (200, 201, 202):
                    logger.warning(f"[EVENTS] Publish failed: {response.status_code} {response.text}")
                    return None

                return response.json()
        except Exception as e:
            logger.error(f"[EVENTS] Publish error: {e}")
            return None


# Singleton
_publisher_instance: Optional[LeaseEventPublisher] = None


def get_event_publisher() -> LeaseEventPublisher:
    """Get the lease event publisher instance."""
    global _publisher_instance
    if _publisher_instance is None:
        _publisher_instance = LeaseEventPublisher(get_settings().events_api_url)
    return _publisher_instance
