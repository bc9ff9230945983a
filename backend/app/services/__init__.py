"""Services for Leasehold."""

from app.services.storage import StorageService, get_storage_service
from app.services.audit import AuditService
from app.services.payments import PaymentBridge, get_payment_bridge
from app.services.events import LeaseEventPublisher, get_event_publisher
from app.services.lease_engine import LeaseEngine

__all__ = [
    "StorageService",
    "get_storage_service",
    "AuditService",
    "PaymentBridge",
    "get_payment_bridge",
    "LeaseEventPublisher",
    "get_event_publisher",
    "LeaseEngine",
]
