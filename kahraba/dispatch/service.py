"""
Broadcast dispatcher.

Shows an unclaimed BROADCAST job to an available electrician with a countdown.
Offers live only in this process; the job itself is untouched until an
electrician accepts, at which point ``JobService.accept_broadcast`` arbitrates
any race through its compare-and-set.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from kahraba.config import MarketplaceConfig
from kahraba.dispatch.models import Offer, OfferOutcome, SessionState, WorkerSession
from kahraba.errors import (
    CreditLimitExceededError,
    InvalidTransitionError,
    NoActiveOfferError,
    OfferExpiredError,
)
from kahraba.jobs.models import Job
from kahraba.jobs.service import JobService
from kahraba.ledger.service import LedgerService
from kahraba.logging_config import log_offer
from kahraba.types import Clock

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    """Per-worker offer slots on top of the job service."""

    def __init__(
        self,
        jobs: JobService,
        ledger: Optional[LedgerService] = None,
        config: Optional[MarketplaceConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.jobs = jobs
        self.ledger = ledger or jobs.ledger
        self.config = config or jobs.config
        self.clock = clock or jobs.clock
        self._sessions: Dict[str, WorkerSession] = {}
        self._lock = threading.RLock()

    def _session(self, electrician_id: str) -> WorkerSession:
        session = self._sessions.get(electrician_id)
        if session is None:
            session = WorkerSession(electrician_id=electrician_id)
            self._sessions[electrician_id] = session
        return session

    def _clear(self, session: WorkerSession, outcome: OfferOutcome) -> Optional[Offer]:
        offer = session.offer
        session.offer = None
        if session.state == SessionState.OFFERED:
            session.state = SessionState.AVAILABLE
        if offer is not None:
            if outcome == OfferOutcome.DECLINED:
                session.declined += 1
            elif outcome == OfferOutcome.EXPIRED:
                session.expired += 1
            elif outcome == OfferOutcome.ACCEPTED:
                session.accepted += 1
            log_offer(offer.job_id, session.electrician_id, outcome.value)
        return offer

    def _offer_next(self, session: WorkerSession) -> Optional[Offer]:
        job = self.jobs.find_broadcast_job()
        if job is None:
            logger.debug(f"No broadcast job for {session.electrician_id}")
            return None

        now = self.clock()
        offer = Offer(
            job_id=job.id,
            electrician_id=session.electrician_id,
            offered_at=now,
            expires_at=now + timedelta(seconds=self.config.offer_timeout_seconds),
        )
        session.offer = offer
        session.state = SessionState.OFFERED
        session.offers_received += 1
        log_offer(job.id, session.electrician_id, "offered")
        logger.info(f"Offered job {job.id} to {session.electrician_id}")
        return offer

    # === Availability ===

    def go_available(
        self, electrician_id: str, electrician_name: Optional[str] = None
    ) -> Optional[Offer]:
        """Mark a worker available and look for a job to offer.

        Returns the active offer, or None if no broadcast job is waiting.

        Raises:
            CreditLimitExceededError: Worker owes more than the credit limit
        """
        if self.ledger.is_over_credit_limit(electrician_id):
            raise CreditLimitExceededError(
                f"Electrician {electrician_id} is over the credit limit of "
                f"{self.config.credit_limit} {self.config.currency}; settle the balance first"
            )

        with self._lock:
            session = self._session(electrician_id)
            if electrician_name:
                session.electrician_name = electrician_name
            if session.state == SessionState.OFFLINE:
                session.state = SessionState.AVAILABLE

            if session.offer is not None:
                if not session.offer.is_expired(self.clock()):
                    return session.offer
                self._clear(session, OfferOutcome.EXPIRED)

            return self._offer_next(session)

    def go_offline(self, electrician_id: str) -> None:
        with self._lock:
            session = self._session(electrician_id)
            self._clear(session, OfferOutcome.WITHDRAWN)
            session.state = SessionState.OFFLINE

    # === Offers ===

    def accept_offer(self, electrician_id: str) -> Job:
        """Accept the worker's active offer.

        The slot is cleared whatever happens.

        Raises:
            NoActiveOfferError: Nothing to accept
            OfferExpiredError: The countdown already ran out
            InvalidTransitionError: Another worker took the job first
        """
        with self._lock:
            session = self._sessions.get(electrician_id)
            if session is None or session.offer is None:
                raise NoActiveOfferError(f"Electrician {electrician_id} has no active offer")
            offer = session.offer

            if offer.is_expired(self.clock()):
                self._clear(session, OfferOutcome.EXPIRED)
                raise OfferExpiredError(f"Offer for job {offer.job_id} has expired")

            try:
                job = self.jobs.accept_broadcast(
                    offer.job_id, electrician_id, session.electrician_name
                )
            except InvalidTransitionError:
                self._clear(session, OfferOutcome.LOST)
                logger.info(f"Electrician {electrician_id} lost job {offer.job_id} to another worker")
                raise
            except Exception:
                self._clear(session, OfferOutcome.WITHDRAWN)
                raise

            self._clear(session, OfferOutcome.ACCEPTED)
            return job

    def decline_offer(self, electrician_id: str) -> Offer:
        """Drop the active offer. The job stays broadcast for others.

        Raises:
            NoActiveOfferError: Nothing to decline
        """
        with self._lock:
            session = self._sessions.get(electrician_id)
            if session is None or session.offer is None:
                raise NoActiveOfferError(f"Electrician {electrician_id} has no active offer")
            return self._clear(session, OfferOutcome.DECLINED)

    def expire_offers(self, now: Optional[datetime] = None) -> List[Offer]:
        """Clear every offer whose countdown reached zero."""
        now = now or self.clock()
        expired = []
        with self._lock:
            for session in self._sessions.values():
                if session.offer is not None and session.offer.is_expired(now):
                    expired.append(self._clear(session, OfferOutcome.EXPIRED))
        if expired:
            logger.debug(f"Expired {len(expired)} offer(s)")
        return expired

    # === Queries ===

    def get_offer(self, electrician_id: str) -> Optional[Offer]:
        session = self._sessions.get(electrician_id)
        return session.offer if session else None

    def get_session(self, electrician_id: str) -> Optional[WorkerSession]:
        """Snapshot of a worker's session."""
        session = self._sessions.get(electrician_id)
        return replace(session) if session else None

    def seconds_remaining(self, electrician_id: str, now: Optional[datetime] = None) -> int:
        offer = self.get_offer(electrician_id)
        if offer is None:
            return 0
        return offer.seconds_remaining(now or self.clock())

    def acceptance_rate(self, electrician_id: str) -> Optional[float]:
        session = self._sessions.get(electrician_id)
        return session.acceptance_rate if session else None
