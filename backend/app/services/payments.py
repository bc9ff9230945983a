"""
Leasehold - Payment Bridge

Refund requests to the payment capability. Refunds are started once the lease
change that asked for them has committed, and are never awaited by the
workflow: every failure is logged and swallowed.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class PaymentBridge:
    """Bridge to the payment service for security deposit refunds."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = base_url
        self.api_key = api_key

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def request_refund(self, lease_id: UUID, amount_cents: int, reason: str) -> Optional[dict]:
        """Ask the payment service to refund a deposit. Returns None on any failure."""
        if not self.base_url:
            logger.warning(f"[PAYMENTS] No payments API configured; refund for lease {lease_id} not sent")
            return None

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base_url}/refunds",
                    json={
                        "lease_id": str(lease_id),
                        "amount_cents": amount_cents,
                        "reason": reason,
                        "requested_at": datetime.utcnow().isoformat(),
                    },
                    headers=self._headers(),
                    timeout=10.0,
                )

                if response.status_code not in (200, 201, 202):
                    logger.warning(f"[PAYMENTS] Refund request failed: {response.status_code} {response.text}")
                    return None

                data = response.json()
                logger.info(f"[PAYMENTS] Refund requested for lease {lease_id}: {data.get('id')}")
                return data
        except Exception as e:
            logger.error(f"[PAYMENTS] Refund request error: {e}")
            return None


# Singleton
_payments_instance: Optional[PaymentBridge] = None


def get_payment_bridge() -> PaymentBridge:
    """Get the payment bridge instance."""
    global _payments_instance
    if _payments_instance is None:
        settings = get_settings()
        _payments_instance = PaymentBridge(settings.payments_api_url, settings.payments_api_key)
    return _payments_instance
