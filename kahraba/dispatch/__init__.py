"""Broadcast matching for Kahraba.

Models:
- Offer: A broadcast job shown to one worker with a countdown
- WorkerSession: Availability state and offer counters for one worker
- SessionState: OFFLINE / AVAILABLE / OFFERED
- OfferOutcome: How an offer left the worker's slot

Service:
- BroadcastDispatcher: go available/offline, accept, decline, expire
"""

from kahraba.dispatch.models import Offer, OfferOutcome, SessionState, WorkerSession
from kahraba.dispatch.service import BroadcastDispatcher

__all__ = [
    # Models
    "Offer",
    "OfferOutcome",
    "SessionState",
    "WorkerSession",
    # Service
    "BroadcastDispatcher",
]
