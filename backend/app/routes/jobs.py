"""Job routes for Kahraba.

Customers create and follow their jobs, electricians move their assigned jobs
along, and both parties can cancel. Lifecycle rules live in
``kahraba.jobs``; these handlers only map HTTP onto the service.
"""

from fastapi import APIRouter, HTTPException, Query, Request, status

from kahraba.jobs import ActorRole, Job, JobStatus

from ..auth import ActorContext, CurrentActor, require_role
from ..database import Market
from ..logging_config import get_logger, log_request
from ..models import (
    AddOnDecision,
    AddOnRequest,
    CancelRequest,
    JobCreate,
    JobListResponse,
    JobResponse,
    JobStatusName,
    TimelineEventResponse,
    TransitionRequest,
)
from ..rate_limit import limiter

logger = get_logger("kahraba.api.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


def _can_view(auth: ActorContext, job: Job) -> bool:
    if auth.is_admin:
        return True
    if auth.role == ActorRole.CUSTOMER:
        return job.customer_id == auth.actor_id
    # Electricians see their own jobs and any open broadcast
    return job.electrician_id == auth.actor_id or job.is_broadcast


def _get_visible_job(market, auth: ActorContext, job_id: str) -> Job:
    job = market.jobs.get_job(job_id)
    if not _can_view(auth, job):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your job")
    return job


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_job(request: Request, body: JobCreate, auth: CurrentActor, market: Market):
    """Create a job and broadcast it to available electricians."""
    require_role(auth, ActorRole.CUSTOMER)
    log_request(logger, "POST", "/jobs", str(auth), price=body.base_price)

    job = market.jobs.create_job(
        customer_id=auth.actor_id,
        base_price=body.base_price,
        description=body.description,
        address=body.address,
        city=body.city,
        customer_name=body.customer_name or auth.name,
        payment_method=body.payment_method,
        add_ons=[a.model_dump() for a in body.add_ons],
    )
    logger.info(f"Job created | id={job.id} | customer={auth.actor_id}")
    return JobResponse.from_job(job)


@router.get("", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_jobs(
    request: Request,
    auth: CurrentActor,
    market: Market,
    status_filter: JobStatusName | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the caller's jobs (all jobs for admins), newest first."""
    log_request(logger, "GET", "/jobs", str(auth), status=status_filter)

    filters = {}
    if auth.role == ActorRole.CUSTOMER:
        filters["customer_id"] = auth.actor_id
    elif auth.role == ActorRole.ELECTRICIAN:
        filters["electrician_id"] = auth.actor_id

    wanted = JobStatus(status_filter) if status_filter else None
    jobs = market.jobs.list_jobs(
        status=wanted,
        limit=limit,
        offset=offset,
        **filters,
    )
    return JobListResponse(
        jobs=[JobResponse.from_job(j) for j in jobs],
        total=market.jobs.count_jobs(status=wanted, **filters),
        limit=limit,
        offset=offset,
    )


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("120/minute")
async def get_job(request: Request, job_id: str, auth: CurrentActor, market: Market):
    """Get job details."""
    log_request(logger, "GET", f"/jobs/{job_id}", str(auth))
    return JobResponse.from_job(_get_visible_job(market, auth, job_id))


@router.get("/{job_id}/timeline", response_model=list[TimelineEventResponse])
@limiter.limit("120/minute")
async def get_timeline(request: Request, job_id: str, auth: CurrentActor, market: Market):
    """The job's status history, oldest first."""
    job = _get_visible_job(market, auth, job_id)
    return [TimelineEventResponse.from_event(e) for e in job.timeline]


@router.post("/{job_id}/transitions", response_model=JobResponse)
@limiter.limit("30/minute")
async def transition_job(
    request: Request,
    job_id: str,
    body: TransitionRequest,
    auth: CurrentActor,
    market: Market,
):
    """
    Move a job to a new status.

    Electricians step their assigned job along
    ACCEPTED -> EN_ROUTE -> ARRIVED -> IN_PROGRESS -> COMPLETED. Completing a
    job records the earning and the platform commission. Pass
    ``expected_version`` to fail with 409 if the job changed since it was read.
    """
    log_request(
        logger, "POST", f"/jobs/{job_id}/transitions", str(auth), to=body.status,
        version=body.expected_version,
    )
    job = market.jobs.apply_transition(
        job_id,
        JobStatus(body.status),
        auth.role,
        auth.actor_id,
        note=body.note,
        expected_version=body.expected_version,
    )
    return JobResponse.from_job(job)


@router.post("/{job_id}/cancel", response_model=JobResponse)
@limiter.limit("10/minute")
async def cancel_job(
    request: Request,
    job_id: str,
    body: CancelRequest,
    auth: CurrentActor,
    market: Market,
):
    """Cancel a job. Allowed for its customer, its electrician or an admin."""
    log_request(logger, "POST", f"/jobs/{job_id}/cancel", str(auth))
    job = market.jobs.cancel_job(job_id, auth.role, auth.actor_id, reason=body.reason)
    logger.info(f"Job cancelled | id={job_id} | by={auth}")
    return JobResponse.from_job(job)


@router.post("/{job_id}/add-ons", response_model=JobResponse)
@limiter.limit("20/minute")
async def request_add_ons(
    request: Request,
    job_id: str,
    body: AddOnRequest,
    auth: CurrentActor,
    market: Market,
):
    """Electrician proposes extra work for the customer to approve."""
    require_role(auth, ActorRole.ELECTRICIAN)
    log_request(logger, "POST", f"/jobs/{job_id}/add-ons", str(auth), count=len(body.add_ons))
    job = market.jobs.request_add_ons(
        job_id, auth.actor_id, [a.model_dump() for a in body.add_ons]
    )
    return JobResponse.from_job(job)


@router.post("/{job_id}/add-ons/approve", response_model=JobResponse)
@limiter.limit("20/minute")
async def decide_add_ons(
    request: Request,
    job_id: str,
    body: AddOnDecision,
    auth: CurrentActor,
    market: Market,
):
    """Customer approves (or, with ``reject``, discards) pending add-ons."""
    require_role(auth, ActorRole.CUSTOMER)
    log_request(logger, "POST", f"/jobs/{job_id}/add-ons/approve", str(auth), reject=body.reject)
    if body.reject:
        job = market.jobs.reject_add_ons(job_id, auth.actor_id, body.add_on_ids)
    else:
        job = market.jobs.approve_add_ons(job_id, auth.actor_id, body.add_on_ids)
    return JobResponse.from_job(job)
