"""Pydantic models for API requests and responses."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from kahraba.audit import AuditEntry
from kahraba.dispatch import Offer, WorkerSession
from kahraba.jobs import Job, TimelineEvent
from kahraba.ledger import Transaction, WorkerStats

JobStatusName = Literal[
    "CREATED",
    "BROADCAST",
    "ACCEPTED",
    "EN_ROUTE",
    "ARRIVED",
    "IN_PROGRESS",
    "COMPLETED",
    "SETTLED",
    "CANCELLED",
]

# Default quote for a standard visit, in JOD
DEFAULT_BASE_PRICE = Decimal("30")

# =============================================================================
# Job Models
# =============================================================================


class AddOnIn(BaseModel):
    """An add-on as submitted by a client."""

    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., gt=0)
    description: str = Field("", max_length=500)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Add-on name cannot be blank")
        return v


class AddOnResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    description: str = ""


class JobCreate(BaseModel):
    """Request to create a job."""

    base_price: Decimal = Field(DEFAULT_BASE_PRICE, gt=0)
    description: str = Field("", max_length=2000)
    address: str = Field("", max_length=500)
    city: str = Field("", max_length=100)
    customer_name: str | None = Field(None, max_length=200)
    payment_method: Literal["card", "cash"] = "cash"
    add_ons: list[AddOnIn] = Field(default_factory=list)


class TimelineEventResponse(BaseModel):
    status: JobStatusName
    timestamp: datetime
    actor_role: str
    actor_id: str | None = None
    note: str | None = None

    @classmethod
    def from_event(cls, event: TimelineEvent) -> "TimelineEventResponse":
        return cls(**event.to_dict())


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    customer_id: str
    customer_name: str | None = None
    electrician_id: str | None = None
    electrician_name: str | None = None
    description: str
    address: str
    city: str
    base_price: Decimal
    add_ons: list[AddOnResponse]
    pending_add_ons: list[AddOnResponse]
    total_price: Decimal
    payment_method: str
    status: JobStatusName
    timeline: list[TimelineEventResponse]
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    version: int

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(**job.to_dict())


class JobListResponse(BaseModel):
    """Paginated list of jobs. ``total`` counts every match, not just this page."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class TransitionRequest(BaseModel):
    """Request to move a job to another status."""

    status: JobStatusName
    note: str | None = Field(None, max_length=500)
    expected_version: int | None = Field(None, ge=1)


class CancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class AddOnRequest(BaseModel):
    """Electrician's request for extra work."""

    add_ons: list[AddOnIn] = Field(..., min_length=1)


class AddOnDecision(BaseModel):
    """Customer's decision on pending add-ons. No ids means all of them."""

    add_on_ids: list[str] | None = None
    reject: bool = False


# =============================================================================
# Dispatch Models
# =============================================================================


class AvailabilityRequest(BaseModel):
    available: bool
    name: str | None = Field(None, max_length=200)


class OfferResponse(BaseModel):
    job_id: str
    electrician_id: str
    offered_at: datetime
    expires_at: datetime
    seconds_remaining: int
    job: JobResponse | None = None

    @classmethod
    def from_offer(cls, offer: Offer, seconds_remaining: int, job: Job | None = None) -> "OfferResponse":
        return cls(
            **offer.to_dict(),
            seconds_remaining=seconds_remaining,
            job=JobResponse.from_job(job) if job else None,
        )


class SessionResponse(BaseModel):
    electrician_id: str
    state: Literal["offline", "available", "offered"]
    offer: OfferResponse | None = None
    offers_received: int
    accepted: int
    declined: int
    expired: int
    acceptance_rate: float | None = None

    @classmethod
    def from_session(cls, session: WorkerSession, offer: OfferResponse | None = None) -> "SessionResponse":
        data = session.to_dict()
        data["offer"] = offer
        data.pop("electrician_name", None)
        return cls(**data)


# =============================================================================
# Ledger Models
# =============================================================================


class TransactionResponse(BaseModel):
    id: str
    electrician_id: str
    job_id: str | None = None
    type: Literal["earning", "commission", "settlement", "deduction", "bonus"]
    amount: Decimal
    signed_amount: Decimal
    description: str
    created_at: datetime | None = None

    @classmethod
    def from_transaction(cls, t: Transaction) -> "TransactionResponse":
        return cls(**t.to_dict(), signed_amount=t.signed_amount)


class StatsResponse(BaseModel):
    electrician_id: str
    currency: str
    current_balance: Decimal
    credit_limit: Decimal
    this_week_earnings: Decimal
    this_month_earnings: Decimal
    completed_jobs: int
    over_credit_limit: bool
    acceptance_rate: float | None = None

    @classmethod
    def from_stats(
        cls, stats: WorkerStats, currency: str, acceptance_rate: float | None = None
    ) -> "StatsResponse":
        return cls(**stats.to_dict(), currency=currency, acceptance_rate=acceptance_rate)


class LedgerEntryCreate(BaseModel):
    """Admin request to record a manual ledger entry. The reason is audited."""

    type: Literal["settlement", "bonus", "deduction"]
    amount: Decimal = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


class ForceStatusRequest(BaseModel):
    """Admin override of a job's status."""

    status: JobStatusName
    reason: str = Field(..., min_length=1, max_length=500)


# =============================================================================
# Audit Models
# =============================================================================


class AuditEntryResponse(BaseModel):
    id: str
    admin_id: str
    action: str
    entity_type: str
    entity_id: str | None = None
    reason: str
    details: dict = Field(default_factory=dict)
    ip_address: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(**entry.to_dict())
