"""
Broadcast offer models.

Each worker has one session with at most one active offer. The session moves
OFFLINE -> AVAILABLE -> OFFERED and back to AVAILABLE once the offer is
accepted, declined or expires.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from kahraba.types import format_datetime


class SessionState(str, Enum):
    """Availability of a worker for new offers."""

    OFFLINE = "offline"
    AVAILABLE = "available"
    OFFERED = "offered"  # Holding an offer with a running countdown


class OfferOutcome(str, Enum):
    """How an offer left the worker's slot."""

    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    LOST = "lost"  # Another worker accepted first
    WITHDRAWN = "withdrawn"  # Worker went offline


@dataclass(frozen=True)
class Offer:
    """A broadcast job shown to one worker for a limited time."""

    job_id: str
    electrician_id: str
    offered_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def seconds_remaining(self, now: datetime) -> int:
        """Whole seconds left on the countdown, never negative."""
        remaining = (self.expires_at - now).total_seconds()
        return max(0, math.ceil(remaining))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "electrician_id": self.electrician_id,
            "offered_at": format_datetime(self.offered_at),
            "expires_at": format_datetime(self.expires_at),
        }


@dataclass
class WorkerSession:
    """Dispatch state and offer counters for one electrician."""

    electrician_id: str
    electrician_name: Optional[str] = None
    state: SessionState = SessionState.OFFLINE
    offer: Optional[Offer] = None

    offers_received: int = 0
    accepted: int = 0
    declined: int = 0
    expired: int = 0

    @property
    def acceptance_rate(self) -> Optional[float]:
        """Share of received offers that were accepted; None before the first offer."""
        if self.offers_received == 0:
            return None
        return self.accepted / self.offers_received

    def to_dict(self) -> Dict[str, Any]:
        return {
            "electrician_id": self.electrician_id,
            "electrician_name": self.electrician_name,
            "state": self.state.value,
            "offer": self.offer.to_dict() if self.offer else None,
            "offers_received": self.offers_received,
            "accepted": self.accepted,
            "declined": self.declined,
            "expired": self.expired,
            "acceptance_rate": self.acceptance_rate,
        }
