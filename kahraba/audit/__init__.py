"""Admin audit trail for Kahraba.

Models:
- AuditEntry: One admin action with its mandatory reason

Service:
- AuditLog: Record and list admin actions
"""

from kahraba.audit.models import ENTITY_BALANCE, ENTITY_JOB, AuditEntry
from kahraba.audit.service import AuditLog

__all__ = ["AuditEntry", "AuditLog", "ENTITY_JOB", "ENTITY_BALANCE"]
