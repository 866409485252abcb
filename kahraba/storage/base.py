"""
Storage protocol for kahraba.

Jobs, ledger transactions and the admin audit trail share one backend so that
a completion can commit the job update and its settlement entries together.
"""

from typing import List, Optional, Protocol, Sequence

from kahraba.audit.models import AuditEntry
from kahraba.jobs.models import Job, JobStatus
from kahraba.ledger.models import Transaction, TransactionType


class MarketplaceStorage(Protocol):
    """Protocol for job and ledger persistence backends."""

    # Jobs
    def save_job(self, job: Job) -> str:
        """Insert a new job. Returns the job ID.

        Raises:
            ValueError: A job with this ID already exists
        """
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        """List jobs with optional filters, newest first."""
        ...

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
    ) -> int:
        """Number of jobs matching the same filters as list_jobs."""
        ...

    def update_job(
        self,
        job: Job,
        expected_version: int,
        transactions: Sequence[Transaction] = (),
    ) -> bool:
        """Atomically replace a job and append ledger entries.

        The write succeeds only if the stored version equals
        ``expected_version``; ``job.version`` must be ``expected_version + 1``.
        The timeline may only grow. Either everything is written or nothing is.

        Returns:
            False if the job does not exist

        Raises:
            VersionConflictError: Stored version differs from expected_version
        """
        ...

    # Ledger
    def append_transaction(self, transaction: Transaction) -> str:
        """Append one ledger entry. Returns the transaction ID."""
        ...

    def append_transactions(self, transactions: Sequence[Transaction]) -> List[str]:
        """Append several entries atomically."""
        ...

    def list_transactions(
        self,
        electrician_id: Optional[str] = None,
        job_id: Optional[str] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[Transaction]:
        """List ledger entries, oldest first."""
        ...

    # Audit
    def append_audit(self, entry: AuditEntry) -> str:
        """Append an admin audit entry. Returns the entry ID."""
        ...

    def list_audit(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        """List audit entries with optional filters, newest first."""
        ...
