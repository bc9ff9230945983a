"""API Routers for Leasehold."""

from app.routers.auth import router as auth_router
from app.routers.leases import router as leases_router

__all__ = [
    "auth_router",
    "leases_router",
]
