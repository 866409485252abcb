"""Admin routes for Kahraba: status overrides, manual ledger entries and the audit log."""

from typing import Literal

from fastapi import APIRouter, Query, Request, status

from kahraba.jobs import JobStatus
from kahraba.ledger import TransactionType

from ..auth import AdminActor
from ..database import Market
from ..logging_config import get_logger, log_request
from ..models import (
    AuditEntryResponse,
    ForceStatusRequest,
    JobResponse,
    LedgerEntryCreate,
    TransactionResponse,
)
from ..rate_limit import get_client_ip, limiter

logger = get_logger("kahraba.api.admin")
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/jobs/{job_id}/force", response_model=JobResponse)
@limiter.limit("30/minute")
async def force_job_status(
    request: Request,
    job_id: str,
    body: ForceStatusRequest,
    auth: AdminActor,
    market: Market,
):
    """
    Force a job to a later status, or cancel it.

    The reason is stored on the timeline and in the audit log. Forcing
    COMPLETED or SETTLED records the settlement like a normal completion.
    """
    log_request(logger, "POST", f"/admin/jobs/{job_id}/force", str(auth), to=body.status)
    job = market.jobs.force_status(
        job_id,
        JobStatus(body.status),
        auth.actor_id,
        body.reason,
        ip_address=get_client_ip(request),
    )
    return JobResponse.from_job(job)


@router.post(
    "/ledger/{electrician_id}/entries",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def create_ledger_entry(
    request: Request,
    electrician_id: str,
    body: LedgerEntryCreate,
    auth: AdminActor,
    market: Market,
):
    """Record a settlement payment, bonus or deduction, with an audited reason."""
    log_request(
        logger, "POST", f"/admin/ledger/{electrician_id}/entries", str(auth),
        type=body.type, amount=body.amount,
    )
    entry = market.ledger.record_admin_entry(
        electrician_id,
        TransactionType(body.type),
        body.amount,
        auth.actor_id,
        body.reason,
        ip_address=get_client_ip(request),
    )
    return TransactionResponse.from_transaction(entry)


@router.get("/audit-logs", response_model=list[AuditEntryResponse])
@limiter.limit("60/minute")
async def list_audit_logs(
    request: Request,
    auth: AdminActor,
    market: Market,
    entity_type: Literal["job", "balance"] | None = Query(None),
    entity_id: str | None = Query(None),
    admin_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
):
    """List admin actions, newest first."""
    log_request(logger, "GET", "/admin/audit-logs", str(auth), entity_type=entity_type)
    entries = market.audit.list_entries(
        entity_type=entity_type, entity_id=entity_id, admin_id=admin_id, limit=limit
    )
    return [AuditEntryResponse.from_entry(e) for e in entries]
