"""API routes."""

from .admin import router as admin_router
from .dispatch import router as dispatch_router
from .jobs import router as jobs_router
from .ledger import router as ledger_router

__all__ = [
    "admin_router",
    "dispatch_router",
    "jobs_router",
    "ledger_router",
]
