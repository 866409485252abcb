"""Audit log data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from kahraba.types import format_datetime, parse_datetime

# Entity kinds an admin action can target
ENTITY_JOB = "job"
ENTITY_BALANCE = "balance"

MAX_REASON_LENGTH = 500


@dataclass(frozen=True)
class AuditEntry:
    """One admin action: who did what to which entity, and why.

    Attributes:
        id: Unique entry identifier
        admin_id: Admin who performed the action
        action: Action name, e.g. ``job_status_cancelled`` or ``balance_adjusted``
        entity_type: Kind of entity acted on (``job``, ``balance``)
        entity_id: ID of the entity acted on
        reason: Mandatory free-text justification
        details: Action-specific context (previous status, amount, ...)
        ip_address: Client address when the action came over HTTP
    """

    id: str
    admin_id: str
    action: str
    entity_type: str
    entity_id: Optional[str]
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.admin_id:
            raise ValueError("admin_id is required")
        if not self.action:
            raise ValueError("action is required")
        if not self.entity_type:
            raise ValueError("entity_type is required")
        if not self.reason or not self.reason.strip():
            raise ValueError("A reason is required for admin actions")
        if len(self.reason) > MAX_REASON_LENGTH:
            raise ValueError(f"Reason too long (max {MAX_REASON_LENGTH} characters)")
        object.__setattr__(self, "details", dict(self.details or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "reason": self.reason,
            "details": dict(self.details),
            "ip_address": self.ip_address,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        return cls(
            id=data["id"],
            admin_id=data["admin_id"],
            action=data["action"],
            entity_type=data["entity_type"],
            entity_id=data.get("entity_id"),
            reason=data["reason"],
            details=data.get("details") or {},
            ip_address=data.get("ip_address"),
            created_at=parse_datetime(data.get("created_at")),
        )
