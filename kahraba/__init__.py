"""
Kahraba - electrician dispatch marketplace core.

Job lifecycle, settlement ledger and broadcast matching.
"""

from .config import MarketplaceConfig
from .jobs import JobService, JobStatus
from .ledger import LedgerService

try:
    from importlib.metadata import version

    __version__ = version("kahraba")
except Exception:
    __version__ = "0.0.0"

__all__ = ["MarketplaceConfig", "JobService", "JobStatus", "LedgerService"]
