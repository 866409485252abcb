"""Job lifecycle for Kahraba.

Models:
- Job: A service request with an append-only timeline
- JobStatus: Job lifecycle status
- ActorRole: Who triggered a change (customer, electrician, admin, system)
- AddOn: Extra billable work on top of the base price
- TimelineEvent: One status change in a job's history

Transitions:
- check_transition / can_transition: Legality and authorization of a status change
- LINEAR_TRANSITIONS: The electrician's step-by-step path

Service:
- JobService: Job operations (create, transition, accept, cancel, add-ons, override)
"""

from kahraba.jobs.models import (
    JOB_STATUS_LABELS,
    TERMINAL_STATUSES,
    ActorRole,
    AddOn,
    Job,
    JobStatus,
    TimelineEvent,
)
from kahraba.jobs.service import JobService
from kahraba.jobs.transitions import (
    LINEAR_TRANSITIONS,
    can_transition,
    check_acceptance,
    check_transition,
    next_status,
)

__all__ = [
    # Models
    "Job",
    "JobStatus",
    "ActorRole",
    "AddOn",
    "TimelineEvent",
    "TERMINAL_STATUSES",
    "JOB_STATUS_LABELS",
    # Transitions
    "LINEAR_TRANSITIONS",
    "check_transition",
    "can_transition",
    "check_acceptance",
    "next_status",
    # Service
    "JobService",
]
