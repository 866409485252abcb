"""Persistence backends for jobs and the ledger."""

from kahraba.storage.base import MarketplaceStorage
from kahraba.storage.memory import InMemoryStorage
from kahraba.storage.sqlite import SQLiteStorage

__all__ = ["MarketplaceStorage", "InMemoryStorage", "SQLiteStorage"]
