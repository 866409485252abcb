"""
Job data models.

A Job is one service request. Its timeline is an append-only tuple of
status-change events; the last event always carries the current status.
Jobs are treated as values: services build a new Job with
``dataclasses.replace`` rather than editing one in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from kahraba.types import format_datetime, parse_datetime, to_price


class JobStatus(str, Enum):
    """Job lifecycle status."""

    CREATED = "CREATED"
    BROADCAST = "BROADCAST"  # Visible to available electricians
    ACCEPTED = "ACCEPTED"  # Electrician bound
    EN_ROUTE = "EN_ROUTE"
    ARRIVED = "ARRIVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"  # Earning and commission recorded
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.SETTLED, JobStatus.CANCELLED})


JOB_STATUS_LABELS = {
    JobStatus.CREATED: "Created",
    JobStatus.BROADCAST: "Finding Electrician",
    JobStatus.ACCEPTED: "Electrician Assigned",
    JobStatus.EN_ROUTE: "On the Way",
    JobStatus.ARRIVED: "Arrived",
    JobStatus.IN_PROGRESS: "Work in Progress",
    JobStatus.COMPLETED: "Completed",
    JobStatus.SETTLED: "Settled",
    JobStatus.CANCELLED: "Cancelled",
}


class ActorRole(str, Enum):
    """Category of principal performing a transition."""

    CUSTOMER = "customer"
    ELECTRICIAN = "electrician"
    ADMIN = "admin"
    SYSTEM = "system"


PAYMENT_METHODS = frozenset({"card", "cash"})

MAX_DESCRIPTION_LENGTH = 2000


def _coerce_status(value: Any) -> JobStatus:
    try:
        return JobStatus(value)
    except ValueError:
        raise ValueError(f"Invalid status: {value}") from None


def _coerce_role(value: Any) -> ActorRole:
    try:
        return ActorRole(value)
    except ValueError:
        raise ValueError(f"Invalid actor role: {value}") from None


@dataclass(frozen=True)
class AddOn:
    """Extra billable work on top of the base price."""

    id: str
    name: str
    price: Decimal
    description: str = ""

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Add-on name cannot be empty")
        price = to_price(self.price)
        if price <= 0:
            raise ValueError(f"Add-on price must be positive, got {price}")
        object.__setattr__(self, "price", price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddOn":
        return cls(
            id=data["id"],
            name=data["name"],
            price=data["price"],
            description=data.get("description") or "",
        )


@dataclass(frozen=True)
class TimelineEvent:
    """One status change in a job's history."""

    status: JobStatus
    timestamp: datetime
    actor_role: ActorRole
    actor_id: Optional[str] = None
    note: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", _coerce_status(self.status))
        object.__setattr__(self, "actor_role", _coerce_role(self.actor_role))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": format_datetime(self.timestamp),
            "actor_role": self.actor_role.value,
            "actor_id": self.actor_id,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineEvent":
        return cls(
            status=data["status"],
            timestamp=parse_datetime(data["timestamp"]),
            actor_role=data["actor_role"],
            actor_id=data.get("actor_id"),
            note=data.get("note"),
        )


@dataclass
class Job:
    """A service request from a customer.

    Attributes:
        id: Unique job identifier
        customer_id: Customer who requested the work
        base_price: Quoted price for the selected service
        electrician_id: Bound electrician (None until an offer is accepted)
        add_ons: Approved add-ons, in approval order
        pending_add_ons: Add-ons requested by the electrician, awaiting approval
        status: Current lifecycle status
        timeline: Append-only history of status changes
        version: Optimistic concurrency counter
    """

    id: str
    customer_id: str
    base_price: Decimal
    description: str = ""
    address: str = ""
    city: str = ""
    customer_name: Optional[str] = None
    electrician_id: Optional[str] = None
    electrician_name: Optional[str] = None
    add_ons: Tuple[AddOn, ...] = ()
    pending_add_ons: Tuple[AddOn, ...] = ()
    payment_method: str = "cash"
    status: JobStatus = JobStatus.CREATED
    timeline: Tuple[TimelineEvent, ...] = field(default_factory=tuple)

    # Timestamps
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    version: int = 1

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("customer_id is required")
        self.base_price = to_price(self.base_price)
        if self.base_price <= 0:
            raise ValueError(f"Base price must be positive, got {self.base_price}")
        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")
        if self.payment_method not in PAYMENT_METHODS:
            raise ValueError(f"Invalid payment method: {self.payment_method}")
        self.status = _coerce_status(self.status)
        self.add_ons = tuple(self.add_ons)
        self.pending_add_ons = tuple(self.pending_add_ons)
        self.timeline = tuple(self.timeline)
        if self.timeline and self.timeline[-1].status != self.status:
            raise ValueError(
                f"Status {self.status.value} does not match last timeline entry "
                f"{self.timeline[-1].status.value}"
            )
        if self.version < 1:
            raise ValueError("version must be >= 1")

    @property
    def total_price(self) -> Decimal:
        """Base price plus every approved add-on."""
        return self.base_price + sum((a.price for a in self.add_ons), Decimal("0"))

    @property
    def short_id(self) -> str:
        """Last six characters of the id, as shown to users."""
        return self.id[-6:]

    @property
    def is_broadcast(self) -> bool:
        return self.status == JobStatus.BROADCAST and self.electrician_id is None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "electrician_id": self.electrician_id,
            "electrician_name": self.electrician_name,
            "description": self.description,
            "address": self.address,
            "city": self.city,
            "base_price": str(self.base_price),
            "add_ons": [a.to_dict() for a in self.add_ons],
            "pending_add_ons": [a.to_dict() for a in self.pending_add_ons],
            "total_price": str(self.total_price),
            "payment_method": self.payment_method,
            "status": self.status.value,
            "timeline": [e.to_dict() for e in self.timeline],
            "created_at": format_datetime(self.created_at),
            "accepted_at": format_datetime(self.accepted_at),
            "completed_at": format_datetime(self.completed_at),
            "cancelled_at": format_datetime(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Deserialize from a dict produced by ``to_dict``.

        ``total_price`` in the input is ignored; it is always recomputed.
        """
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            customer_name=data.get("customer_name"),
            electrician_id=data.get("electrician_id"),
            electrician_name=data.get("electrician_name"),
            description=data.get("description") or "",
            address=data.get("address") or "",
            city=data.get("city") or "",
            base_price=data["base_price"],
            add_ons=tuple(AddOn.from_dict(a) for a in data.get("add_ons") or []),
            pending_add_ons=tuple(AddOn.from_dict(a) for a in data.get("pending_add_ons") or []),
            payment_method=data.get("payment_method") or "cash",
            status=data["status"],
            timeline=tuple(TimelineEvent.from_dict(e) for e in data.get("timeline") or []),
            created_at=parse_datetime(data.get("created_at")),
            accepted_at=parse_datetime(data.get("accepted_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            cancelled_at=parse_datetime(data.get("cancelled_at")),
            cancellation_reason=data.get("cancellation_reason"),
            version=data.get("version", 1),
        )
