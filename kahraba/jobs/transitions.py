"""
Job status transition table and authorization rules.

The happy path is strictly linear once an electrician is bound::

    ACCEPTED -> EN_ROUTE -> ARRIVED -> IN_PROGRESS -> COMPLETED

Around it:
- CREATED -> BROADCAST publishes a new job (system or the owning customer)
- BROADCAST -> ACCEPTED happens only through offer acceptance, which also
  binds the electrician
- CANCELLED is reachable from every non-terminal status by either party
- admin may force any forward status (or CANCELLED) from a non-terminal job

Terminal statuses have no outgoing transitions for anyone.
"""

from typing import Optional

from kahraba.errors import InvalidTransitionError, UnauthorizedError
from kahraba.jobs.models import TERMINAL_STATUSES, ActorRole, Job, JobStatus

LINEAR_TRANSITIONS = {
    JobStatus.ACCEPTED: JobStatus.EN_ROUTE,
    JobStatus.EN_ROUTE: JobStatus.ARRIVED,
    JobStatus.ARRIVED: JobStatus.IN_PROGRESS,
    JobStatus.IN_PROGRESS: JobStatus.COMPLETED,
}

STATUS_ORDER = (
    JobStatus.CREATED,
    JobStatus.BROADCAST,
    JobStatus.ACCEPTED,
    JobStatus.EN_ROUTE,
    JobStatus.ARRIVED,
    JobStatus.IN_PROGRESS,
    JobStatus.COMPLETED,
    JobStatus.SETTLED,
)

# Statuses that only make sense with an electrician bound
ASSIGNED_STATUSES = frozenset(STATUS_ORDER[STATUS_ORDER.index(JobStatus.ACCEPTED) :])

# Statuses during which the electrician may propose add-ons
ADD_ON_STATUSES = frozenset(
    {JobStatus.ACCEPTED, JobStatus.EN_ROUTE, JobStatus.ARRIVED, JobStatus.IN_PROGRESS}
)

__all__ = [
    "LINEAR_TRANSITIONS",
    "STATUS_ORDER",
    "TERMINAL_STATUSES",
    "ASSIGNED_STATUSES",
    "ADD_ON_STATUSES",
    "next_status",
    "is_terminal",
    "can_transition",
    "check_transition",
    "check_acceptance",
]


def next_status(status: JobStatus) -> Optional[JobStatus]:
    """The single linear successor of ``status``, if any."""
    return LINEAR_TRANSITIONS.get(JobStatus(status))


def is_terminal(status: JobStatus) -> bool:
    return JobStatus(status) in TERMINAL_STATUSES


def _is_party(job: Job, actor_role: ActorRole, actor_id: Optional[str]) -> bool:
    if actor_role == ActorRole.CUSTOMER:
        return actor_id is not None and actor_id == job.customer_id
    if actor_role == ActorRole.ELECTRICIAN:
        return job.electrician_id is not None and actor_id == job.electrician_id
    return False


def _check_admin_override(job: Job, target: JobStatus) -> None:
    if target == JobStatus.CANCELLED:
        return
    if target == JobStatus.CREATED:
        raise InvalidTransitionError("CREATED is only set when a job is created")
    if STATUS_ORDER.index(target) <= STATUS_ORDER.index(job.status):
        raise InvalidTransitionError(
            f"Admin override must move forward: {job.status.value} -> {target.value}"
        )
    if target in ASSIGNED_STATUSES and job.electrician_id is None:
        raise InvalidTransitionError(
            f"Cannot move job {job.id} to {target.value}: no electrician assigned"
        )


def check_transition(
    job: Job,
    target: JobStatus,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
) -> None:
    """Validate a requested transition.

    Legality is checked before authorization, so a request that is illegal for
    everyone always fails with InvalidTransitionError.

    Raises:
        InvalidTransitionError: Target not reachable from the current status
        UnauthorizedError: Actor may not trigger this transition
    """
    target = JobStatus(target)
    actor_role = ActorRole(actor_role)
    current = job.status

    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Job {job.id} is {current.value}; no further transitions are allowed"
        )
    if target == current:
        raise InvalidTransitionError(f"Job {job.id} is already {current.value}")

    if actor_role == ActorRole.ADMIN:
        _check_admin_override(job, target)
        return

    if target == JobStatus.CANCELLED:
        if not _is_party(job, actor_role, actor_id):
            raise UnauthorizedError("Only the customer or the assigned electrician can cancel")
        return

    if current == JobStatus.CREATED and target == JobStatus.BROADCAST:
        if actor_role == ActorRole.SYSTEM or _is_party(job, actor_role, actor_id):
            return
        raise UnauthorizedError("Only the customer can publish a job")

    if current == JobStatus.BROADCAST and target == JobStatus.ACCEPTED:
        raise InvalidTransitionError("Broadcast jobs are accepted through an offer")

    if LINEAR_TRANSITIONS.get(current) != target:
        raise InvalidTransitionError(
            f"Cannot transition job {job.id} from {current.value} to {target.value}"
        )

    if actor_role != ActorRole.ELECTRICIAN or not _is_party(job, actor_role, actor_id):
        raise UnauthorizedError(
            f"Only the assigned electrician can move a job to {target.value}"
        )


def can_transition(
    job: Job,
    target: JobStatus,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
) -> bool:
    """Boolean form of ``check_transition``."""
    try:
        check_transition(job, target, actor_role, actor_id)
    except (InvalidTransitionError, UnauthorizedError):
        return False
    return True


def check_acceptance(job: Job, actor_role: ActorRole) -> None:
    """Validate BROADCAST -> ACCEPTED for an electrician taking an offer.

    Raises:
        InvalidTransitionError: Job is no longer an open broadcast
        UnauthorizedError: Actor is not an electrician
    """
    if job.status != JobStatus.BROADCAST:
        raise InvalidTransitionError(
            f"Job {job.id} is {job.status.value}, not BROADCAST; it can no longer be accepted"
        )
    if job.electrician_id is not None:
        raise InvalidTransitionError(f"Job {job.id} already has an electrician")
    if ActorRole(actor_role) != ActorRole.ELECTRICIAN:
        raise UnauthorizedError("Only an electrician can accept a broadcast job")
