"""
Audit log service.

Admin overrides and manual balance changes each leave one entry. Entries are
written after the action they describe has committed.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from kahraba.audit.models import AuditEntry
from kahraba.types import Clock, utc_now

if TYPE_CHECKING:
    from kahraba.storage.base import MarketplaceStorage

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class AuditLog:
    """Records and lists admin actions."""

    def __init__(
        self,
        storage: "MarketplaceStorage",
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.storage = storage
        self.clock = clock
        self.id_factory = id_factory

    def record(
        self,
        admin_id: str,
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        reason: str,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditEntry:
        """Append an entry for an admin action.

        Raises:
            ValueError: Missing admin, action, entity type or reason
        """
        entry = AuditEntry(
            id=self.id_factory(),
            admin_id=admin_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=(reason or "").strip(),
            details=details or {},
            ip_address=ip_address,
            created_at=self.clock(),
        )
        self.storage.append_audit(entry)
        logger.info(f"Audit: admin {admin_id} {action} on {entity_type}/{entity_id}")
        return entry

    def list_entries(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        """Audit entries, newest first."""
        return self.storage.list_audit(
            entity_type=entity_type, entity_id=entity_id, admin_id=admin_id, limit=limit
        )
