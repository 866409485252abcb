"""In-memory storage for testing and local development."""

import copy
import logging
import threading
from typing import Dict, List, Optional, Sequence

from kahraba.audit.models import AuditEntry
from kahraba.jobs.models import Job, JobStatus
from kahraba.ledger.models import SETTLEMENT_TYPES, Transaction, TransactionType
from kahraba.types import VersionConflictError

logger = logging.getLogger(__name__)


class InMemoryStorage:
    """Dict-backed MarketplaceStorage.

    A single lock serializes writes, which gives update_job the same
    check-and-set semantics as the SQLite backend.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._transactions: List[Transaction] = []
        self._audit: List[AuditEntry] = []
        self._lock = threading.Lock()

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists")
            self._jobs[job.id] = copy.copy(job)
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return copy.copy(job) if job else None

    def _filter_jobs(
        self,
        status: Optional[JobStatus],
        customer_id: Optional[str],
        electrician_id: Optional[str],
        unassigned: bool,
    ) -> List[Job]:
        jobs = list(self._jobs.values())

        if status is not None:
            jobs = [j for j in jobs if j.status == JobStatus(status)]
        if customer_id is not None:
            jobs = [j for j in jobs if j.customer_id == customer_id]
        if electrician_id is not None:
            jobs = [j for j in jobs if j.electrician_id == electrician_id]
        if unassigned:
            jobs = [j for j in jobs if j.electrician_id is None]

        return jobs

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        jobs = self._filter_jobs(status, customer_id, electrician_id, unassigned)

        # Newest first; insertion order breaks ties
        order = {job_id: i for i, job_id in enumerate(self._jobs)}
        jobs.sort(key=lambda j: (j.created_at is not None, j.created_at, order[j.id]), reverse=True)

        return [copy.copy(j) for j in jobs[offset : offset + limit]]

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
    ) -> int:
        return len(self._filter_jobs(status, customer_id, electrician_id, unassigned))

    def update_job(
        self,
        job: Job,
        expected_version: int,
        transactions: Sequence[Transaction] = (),
    ) -> bool:
        with self._lock:
            current = self._jobs.get(job.id)
            if current is None:
                return False
            if current.version != expected_version:
                raise VersionConflictError("jobs", job.id, expected_version, current.version)
            if job.version != expected_version + 1:
                raise ValueError(
                    f"Job {job.id} must carry version {expected_version + 1}, got {job.version}"
                )
            if job.timeline[: len(current.timeline)] != current.timeline:
                raise ValueError(f"Timeline of job {job.id} is append-only")
            self._check_duplicates(transactions)

            self._jobs[job.id] = copy.copy(job)
            self._transactions.extend(transactions)
        return True

    # === Ledger ===

    def _check_duplicates(self, transactions: Sequence[Transaction]) -> None:
        """Reject a second earning/commission entry for the same job."""
        seen = {
            (t.job_id, t.type)
            for t in self._transactions
            if t.job_id is not None and t.type in SETTLEMENT_TYPES
        }
        for t in transactions:
            if t.job_id is None or t.type not in SETTLEMENT_TYPES:
                continue
            key = (t.job_id, t.type)
            if key in seen:
                raise ValueError(f"Duplicate {t.type.value} entry for job {t.job_id}")
            seen.add(key)

    def append_transaction(self, transaction: Transaction) -> str:
        return self.append_transactions([transaction])[0]

    def append_transactions(self, transactions: Sequence[Transaction]) -> List[str]:
        with self._lock:
            self._check_duplicates(transactions)
            self._transactions.extend(transactions)
        return [t.id for t in transactions]

    def list_transactions(
        self,
        electrician_id: Optional[str] = None,
        job_id: Optional[str] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[Transaction]:
        result = list(self._transactions)
        if electrician_id is not None:
            result = [t for t in result if t.electrician_id == electrician_id]
        if job_id is not None:
            result = [t for t in result if t.job_id == job_id]
        if tx_type is not None:
            result = [t for t in result if t.type == TransactionType(tx_type)]
        return result

    # === Audit ===

    def append_audit(self, entry: AuditEntry) -> str:
        with self._lock:
            if any(e.id == entry.id for e in self._audit):
                raise ValueError(f"Audit entry {entry.id} already exists")
            self._audit.append(entry)
        return entry.id

    def list_audit(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        result = list(reversed(self._audit))
        if entity_type is not None:
            result = [e for e in result if e.entity_type == entity_type]
        if entity_id is not None:
            result = [e for e in result if e.entity_id == entity_id]
        if admin_id is not None:
            result = [e for e in result if e.admin_id == admin_id]
        return result[:limit]
