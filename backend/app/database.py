"""Service wiring for the Kahraba backend.

One Marketplace per process: SQLite storage plus the job, ledger and dispatch
services and the admin audit log on top of it. The dispatcher keeps offers in
memory, so it must be shared across requests.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from fastapi import Depends

from kahraba.audit import AuditLog
from kahraba.config import MarketplaceConfig
from kahraba.dispatch import BroadcastDispatcher
from kahraba.jobs import JobService
from kahraba.ledger import LedgerService
from kahraba.notify import LoggingNotifier
from kahraba.storage import MarketplaceStorage, SQLiteStorage

from .config import Settings, get_settings


@dataclass
class Marketplace:
    storage: MarketplaceStorage
    jobs: JobService
    ledger: LedgerService
    dispatcher: BroadcastDispatcher
    audit: AuditLog
    config: MarketplaceConfig


def build_marketplace(
    storage: MarketplaceStorage,
    config: MarketplaceConfig | None = None,
    **service_kwargs,
) -> Marketplace:
    """Assemble services over ``storage``. Extra kwargs go to JobService."""
    config = config or MarketplaceConfig.from_env()
    service_kwargs.setdefault("notifier", LoggingNotifier())
    jobs = JobService(storage, config=config, **service_kwargs)
    return Marketplace(
        storage=storage,
        jobs=jobs,
        ledger=jobs.ledger,
        dispatcher=BroadcastDispatcher(jobs),
        audit=jobs.audit,
        config=config,
    )


_marketplace: Marketplace | None = None


def get_marketplace_instance(settings: Settings | None = None) -> Marketplace:
    """Get the cached process-wide Marketplace."""
    global _marketplace
    if _marketplace is None:
        if settings is None:
            settings = get_settings()
        db_path = Path(settings.database_path) if settings.database_path else None
        _marketplace = build_marketplace(SQLiteStorage(db_path))
    return _marketplace


def get_marketplace(settings: Annotated[Settings, Depends(get_settings)]) -> Marketplace:
    """FastAPI dependency for the services."""
    return get_marketplace_instance(settings)


# Type alias for dependency injection
Market = Annotated[Marketplace, Depends(get_marketplace)]
