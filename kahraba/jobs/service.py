"""
Job lifecycle service.

Every write goes through a read / validate / compare-and-set loop: the job is
read, the change is validated against the transition table, a new Job value
is built and the storage write only succeeds if nobody else committed in
between. A stale write re-reads and re-validates, up to
``config.max_transition_attempts`` times.
"""

import logging
import uuid
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from kahraba.audit import ENTITY_JOB, AuditLog
from kahraba.config import MarketplaceConfig
from kahraba.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    JobNotFoundError,
    SettlementError,
    UnauthorizedError,
)
from kahraba.jobs.models import ActorRole, AddOn, Job, JobStatus, TimelineEvent
from kahraba.jobs.transitions import (
    ADD_ON_STATUSES,
    check_acceptance,
    check_transition,
    next_status,
)
from kahraba.ledger.models import Transaction
from kahraba.ledger.service import LedgerService
from kahraba.logging_config import log_settlement, log_transition
from kahraba.notify import Notifier, NullNotifier
from kahraba.storage.base import MarketplaceStorage
from kahraba.types import Clock, VersionConflictError, utc_now

logger = logging.getLogger(__name__)

# A build step returns the new job value plus ledger entries to commit with it
_Build = Callable[[Job], Tuple[Job, Sequence[Transaction]]]


def _new_id() -> str:
    return str(uuid.uuid4())


class JobService:
    """Service for job lifecycle operations.

    Handles creation, status transitions, offer acceptance, add-ons and
    admin overrides. Completion settles the job through the ledger service in
    the same storage write as the status change.
    """

    def __init__(
        self,
        storage: MarketplaceStorage,
        ledger: Optional[LedgerService] = None,
        config: Optional[MarketplaceConfig] = None,
        clock: Clock = utc_now,
        notifier: Optional[Notifier] = None,
        id_factory: Callable[[], str] = _new_id,
        audit: Optional[AuditLog] = None,
    ):
        self.storage = storage
        self.config = config or MarketplaceConfig()
        self.clock = clock
        self.ledger = ledger or LedgerService(
            storage, config=self.config, clock=clock, audit=audit
        )
        self.audit = audit or self.ledger.audit
        self.notifier = notifier or NullNotifier()
        self.id_factory = id_factory

    # === Helpers ===

    def _require(self, job_id: str) -> Job:
        job = self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _coerce_add_ons(self, add_ons: Optional[Iterable]) -> Tuple[AddOn, ...]:
        result = []
        for item in add_ons or ():
            if isinstance(item, AddOn):
                result.append(item)
            else:
                result.append(
                    AddOn(
                        id=item.get("id") or self.id_factory(),
                        name=item["name"],
                        price=item["price"],
                        description=item.get("description") or "",
                    )
                )
        return tuple(result)

    def _commit(
        self,
        job_id: str,
        build: _Build,
        expected_version: Optional[int] = None,
    ) -> Tuple[Job, Job, Sequence[Transaction]]:
        """Run the read / build / compare-and-set loop.

        Returns:
            (previous job, committed job, ledger entries written)
        """
        attempts = self.config.max_transition_attempts
        for attempt in range(1, attempts + 1):
            current = self._require(job_id)
            if expected_version is not None and current.version != expected_version:
                raise ConcurrentModificationError(
                    f"Job {job_id} is at version {current.version}, expected {expected_version}"
                )

            updated, transactions = build(current)

            try:
                written = self.storage.update_job(updated, current.version, transactions)
            except VersionConflictError as e:
                if expected_version is not None:
                    raise ConcurrentModificationError(str(e)) from e
                logger.debug(f"Version conflict on job {job_id} (attempt {attempt}/{attempts})")
                continue
            except Exception as e:
                if transactions:
                    raise SettlementError(f"Failed to settle job {job_id}: {e}") from e
                raise

            if not written:
                raise JobNotFoundError(job_id)
            return current, updated, transactions

        logger.warning(f"Giving up on job {job_id} after {attempts} conflicting writes")
        raise ConcurrentModificationError(
            f"Job {job_id} kept changing; gave up after {attempts} attempts"
        )

    def _after_commit(self, previous: Job, job: Job, transactions: Sequence[Transaction]) -> None:
        event = job.timeline[-1]
        if previous.status != job.status:
            log_transition(
                job.id,
                previous.status.value,
                job.status.value,
                event.actor_role.value,
                event.actor_id,
            )
            logger.info(f"Job {job.id}: {previous.status.value} -> {job.status.value}")
        if transactions:
            amounts = {t.type.value: t.amount for t in transactions}
            log_settlement(
                job.id, job.electrician_id, amounts.get("earning"), amounts.get("commission")
            )
        if previous.status != job.status:
            try:
                self.notifier.notify(job.id, job.status.value)
            except Exception as e:
                logger.warning(f"Notification for job {job.id} failed: {e}")

    def _settlement_for(self, job: Job) -> Sequence[Transaction]:
        """Entries to write when ``job`` completes; empty if already settled."""
        if self.ledger.existing_settlement(job.id) is not None:
            return ()
        return self.ledger.compute_settlement(job).transactions

    # === Creation ===

    def create_job(
        self,
        customer_id: str,
        base_price,
        description: str = "",
        address: str = "",
        city: str = "",
        customer_name: Optional[str] = None,
        payment_method: str = "cash",
        add_ons: Optional[Iterable] = None,
    ) -> Job:
        """Create a job and publish it to available electricians.

        The timeline records CREATED (by the customer) and BROADCAST (by the
        system).

        Raises:
            ValueError: Invalid price, payment method or add-on
        """
        if not customer_id:
            raise ValueError("customer_id is required")
        now = self.clock()
        job = Job(
            id=self.id_factory(),
            customer_id=customer_id,
            customer_name=customer_name,
            base_price=base_price,
            description=description,
            address=address,
            city=city,
            payment_method=payment_method,
            add_ons=self._coerce_add_ons(add_ons),
            status=JobStatus.BROADCAST,
            timeline=(
                TimelineEvent(JobStatus.CREATED, now, ActorRole.CUSTOMER, customer_id),
                TimelineEvent(JobStatus.BROADCAST, now, ActorRole.SYSTEM),
            ),
            created_at=now,
        )
        self.storage.save_job(job)

        log_transition(job.id, "-", JobStatus.CREATED.value, "customer", customer_id)
        log_transition(job.id, JobStatus.CREATED.value, JobStatus.BROADCAST.value, "system", None)
        logger.info(f"Created job {job.id} for customer {customer_id} ({job.total_price})")
        try:
            self.notifier.notify(job.id, job.status.value)
        except Exception as e:
            logger.warning(f"Notification for job {job.id} failed: {e}")
        return job

    # === Queries ===

    def get_job(self, job_id: str) -> Job:
        """Get a job by ID.

        Raises:
            JobNotFoundError: If the job doesn't exist
        """
        return self._require(job_id)

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        return self.storage.list_jobs(
            status=status,
            customer_id=customer_id,
            electrician_id=electrician_id,
            limit=limit,
            offset=offset,
        )

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
    ) -> int:
        """Number of jobs matching the list_jobs filters, ignoring pagination."""
        return self.storage.count_jobs(
            status=status, customer_id=customer_id, electrician_id=electrician_id
        )

    def get_jobs_for_customer(self, customer_id: str, limit: int = 100) -> List[Job]:
        return self.storage.list_jobs(customer_id=customer_id, limit=limit)

    def get_jobs_for_electrician(self, electrician_id: str, limit: int = 100) -> List[Job]:
        return self.storage.list_jobs(electrician_id=electrician_id, limit=limit)

    def find_broadcast_job(self) -> Optional[Job]:
        """Newest BROADCAST job without an electrician, if any."""
        jobs = self.storage.list_jobs(status=JobStatus.BROADCAST, unassigned=True, limit=1)
        return jobs[0] if jobs else None

    def get_job_history(self, job_id: str) -> Tuple[TimelineEvent, ...]:
        """The job's timeline, oldest first."""
        return self._require(job_id).timeline

    # === Transitions ===

    def apply_transition(
        self,
        job_id: str,
        requested_status: JobStatus,
        actor_role: ActorRole,
        actor_id: Optional[str] = None,
        note: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Job:
        """Move a job to ``requested_status``.

        Completion (and an admin-forced SETTLED) writes the settlement entries
        in the same storage write. Cancellation records the note as the
        cancellation reason and drops pending add-ons.

        Raises:
            JobNotFoundError: Unknown job
            InvalidTransitionError: Target not reachable from the current status
            UnauthorizedError: Actor may not trigger this transition
            SettlementError: Settlement could not be computed or recorded
            ConcurrentModificationError: expected_version is stale, or the job
                kept changing across every retry
        """
        target = JobStatus(requested_status)
        role = ActorRole(actor_role)

        def build(current: Job) -> Tuple[Job, Sequence[Transaction]]:
            check_transition(current, target, role, actor_id)
            now = self.clock()
            changes = {
                "status": target,
                "timeline": current.timeline + (TimelineEvent(target, now, role, actor_id, note),),
                "version": current.version + 1,
            }
            transactions: Sequence[Transaction] = ()

            if target == JobStatus.ACCEPTED and current.accepted_at is None:
                changes["accepted_at"] = now
            if target in (JobStatus.COMPLETED, JobStatus.SETTLED):
                changes["completed_at"] = current.completed_at or now
                transactions = self._settlement_for(current)
            elif target == JobStatus.CANCELLED:
                changes["cancelled_at"] = now
                changes["cancellation_reason"] = note
                changes["add_ons"] = ()
                changes["pending_add_ons"] = ()

            return replace(current, **changes), transactions

        previous, job, transactions = self._commit(job_id, build, expected_version)
        self._after_commit(previous, job, transactions)
        return job

    def advance(self, job_id: str, electrician_id: str, note: Optional[str] = None) -> Job:
        """Move an assigned job one step along the linear path."""
        job = self._require(job_id)
        target = next_status(job.status)
        if target is None:
            raise InvalidTransitionError(
                f"Job {job_id} in status {job.status.value} has no next step"
            )
        return self.apply_transition(
            job_id,
            target,
            ActorRole.ELECTRICIAN,
            electrician_id,
            note=note,
            expected_version=job.version,
        )

    def accept_broadcast(
        self,
        job_id: str,
        electrician_id: str,
        electrician_name: Optional[str] = None,
    ) -> Job:
        """Bind an electrician to a broadcast job (BROADCAST -> ACCEPTED).

        When two electricians race for the same job the first commit wins;
        the other re-reads the job and fails.

        Raises:
            JobNotFoundError: Unknown job
            InvalidTransitionError: Job is no longer an open broadcast
        """
        if not electrician_id:
            raise UnauthorizedError("electrician_id is required to accept a job")

        def build(current: Job) -> Tuple[Job, Sequence[Transaction]]:
            check_acceptance(current, ActorRole.ELECTRICIAN)
            now = self.clock()
            event = TimelineEvent(JobStatus.ACCEPTED, now, ActorRole.ELECTRICIAN, electrician_id)
            return (
                replace(
                    current,
                    status=JobStatus.ACCEPTED,
                    electrician_id=electrician_id,
                    electrician_name=electrician_name,
                    accepted_at=now,
                    timeline=current.timeline + (event,),
                    version=current.version + 1,
                ),
                (),
            )

        previous, job, _ = self._commit(job_id, build)
        self._after_commit(previous, job, ())
        return job

    def cancel_job(
        self,
        job_id: str,
        actor_role: ActorRole,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Job:
        """Cancel a non-terminal job. No settlement is written."""
        return self.apply_transition(
            job_id, JobStatus.CANCELLED, actor_role, actor_id, note=reason
        )

    def force_status(
        self,
        job_id: str,
        status: JobStatus,
        admin_id: str,
        reason: str,
        ip_address: Optional[str] = None,
    ) -> Job:
        """Admin override. The reason is stored as the timeline note and in
        the audit log.

        Raises:
            ValueError: Missing reason
            InvalidTransitionError: Backward move, terminal job or missing electrician
        """
        if not reason or not reason.strip():
            raise ValueError("A reason is required for an admin override")
        target = JobStatus(status)
        logger.warning(f"Admin {admin_id} forcing job {job_id} to {target.value}")
        job = self.apply_transition(
            job_id, target, ActorRole.ADMIN, admin_id, note=reason.strip()
        )
        self.audit.record(
            admin_id,
            f"job_status_{target.value.lower()}",
            ENTITY_JOB,
            job.id,
            reason,
            details={
                "previous_status": job.timeline[-2].status.value,
                "new_status": target.value,
            },
            ip_address=ip_address,
        )
        return job

    # === Add-ons ===

    def request_add_ons(self, job_id: str, electrician_id: str, add_ons: Iterable) -> Job:
        """Propose extra work; it waits for the customer's approval.

        Raises:
            InvalidTransitionError: Job is not between ACCEPTED and IN_PROGRESS
            UnauthorizedError: Caller is not the assigned electrician
            ValueError: No add-ons, or an invalid one
        """
        requested = self._coerce_add_ons(add_ons)
        if not requested:
            raise ValueError("At least one add-on is required")

        def build(current: Job) -> Tuple[Job, Sequence[Transaction]]:
            if current.status not in ADD_ON_STATUSES:
                raise InvalidTransitionError(
                    f"Add-ons cannot be requested while job {job_id} is {current.status.value}"
                )
            if current.electrician_id != electrician_id:
                raise UnauthorizedError("Only the assigned electrician can request add-ons")
            return (
                replace(
                    current,
                    pending_add_ons=current.pending_add_ons + requested,
                    version=current.version + 1,
                ),
                (),
            )

        _, job, _ = self._commit(job_id, build)
        logger.info(f"Job {job_id}: {len(requested)} add-on(s) requested by {electrician_id}")
        return job

    def _resolve_pending(
        self,
        current: Job,
        customer_id: str,
        add_on_ids: Optional[Sequence[str]],
    ) -> Tuple[Tuple[AddOn, ...], Tuple[AddOn, ...]]:
        """Split pending add-ons into (selected, remaining)."""
        if current.status not in ADD_ON_STATUSES:
            raise InvalidTransitionError(
                f"Add-ons cannot change while job {current.id} is {current.status.value}"
            )
        if current.customer_id != customer_id:
            raise UnauthorizedError("Only the job's customer can review add-ons")
        if not current.pending_add_ons:
            raise InvalidTransitionError(f"Job {current.id} has no pending add-ons")

        if add_on_ids is None:
            return current.pending_add_ons, ()
        wanted = set(add_on_ids)
        known = {a.id for a in current.pending_add_ons}
        unknown = wanted - known
        if unknown:
            raise ValueError(f"Unknown add-on id(s): {', '.join(sorted(unknown))}")
        selected = tuple(a for a in current.pending_add_ons if a.id in wanted)
        remaining = tuple(a for a in current.pending_add_ons if a.id not in wanted)
        return selected, remaining

    def approve_add_ons(
        self,
        job_id: str,
        customer_id: str,
        add_on_ids: Optional[Sequence[str]] = None,
    ) -> Job:
        """Approve pending add-ons (all of them by default).

        Approved add-ons join ``add_ons`` and raise ``total_price``.
        """

        def build(current: Job) -> Tuple[Job, Sequence[Transaction]]:
            selected, remaining = self._resolve_pending(current, customer_id, add_on_ids)
            return (
                replace(
                    current,
                    add_ons=current.add_ons + selected,
                    pending_add_ons=remaining,
                    version=current.version + 1,
                ),
                (),
            )

        _, job, _ = self._commit(job_id, build)
        logger.info(f"Job {job_id}: add-ons approved, total now {job.total_price}")
        return job

    def reject_add_ons(
        self,
        job_id: str,
        customer_id: str,
        add_on_ids: Optional[Sequence[str]] = None,
    ) -> Job:
        """Discard pending add-ons (all of them by default)."""

        def build(current: Job) -> Tuple[Job, Sequence[Transaction]]:
            _, remaining = self._resolve_pending(current, customer_id, add_on_ids)
            return replace(current, pending_add_ons=remaining, version=current.version + 1), ()

        _, job, _ = self._commit(job_id, build)
        logger.info(f"Job {job_id}: add-ons rejected by customer")
        return job
