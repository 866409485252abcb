"""Dispatch routes for Kahraba.

An electrician toggles availability, polls for the offer held in their slot,
and accepts or declines it before the countdown runs out.
"""

from fastapi import APIRouter, HTTPException, Request, status

from kahraba.jobs import ActorRole

from ..auth import CurrentActor, require_role
from ..database import Market
from ..logging_config import get_logger, log_request
from ..models import AvailabilityRequest, JobResponse, OfferResponse, SessionResponse
from ..rate_limit import limiter

logger = get_logger("kahraba.api.dispatch")
router = APIRouter(prefix="/dispatch", tags=["dispatch"])


def _offer_response(market, electrician_id: str) -> OfferResponse | None:
    offer = market.dispatcher.get_offer(electrician_id)
    if offer is None:
        return None
    return OfferResponse.from_offer(
        offer,
        market.dispatcher.seconds_remaining(electrician_id),
        market.storage.get_job(offer.job_id),
    )


@router.post("/availability", response_model=SessionResponse)
@limiter.limit("30/minute")
async def set_availability(
    request: Request,
    body: AvailabilityRequest,
    auth: CurrentActor,
    market: Market,
):
    """Go available (and receive an offer if a job is waiting) or go offline."""
    require_role(auth, ActorRole.ELECTRICIAN)
    log_request(logger, "POST", "/dispatch/availability", str(auth), available=body.available)

    if body.available:
        market.dispatcher.go_available(auth.actor_id, body.name or auth.name)
    else:
        market.dispatcher.go_offline(auth.actor_id)

    session = market.dispatcher.get_session(auth.actor_id)
    return SessionResponse.from_session(session, _offer_response(market, auth.actor_id))


@router.get("/offer", response_model=OfferResponse)
@limiter.limit("120/minute")
async def get_offer(request: Request, auth: CurrentActor, market: Market):
    """The caller's active offer. Expired offers are cleared first."""
    require_role(auth, ActorRole.ELECTRICIAN)
    market.dispatcher.expire_offers()
    offer = _offer_response(market, auth.actor_id)
    if offer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active offer")
    return offer


@router.post("/offer/accept", response_model=JobResponse)
@limiter.limit("30/minute")
async def accept_offer(request: Request, auth: CurrentActor, market: Market):
    """Accept the active offer. 409 if another electrician got there first."""
    require_role(auth, ActorRole.ELECTRICIAN)
    log_request(logger, "POST", "/dispatch/offer/accept", str(auth))
    job = market.dispatcher.accept_offer(auth.actor_id)
    logger.info(f"Offer accepted | job={job.id} | electrician={auth.actor_id}")
    return JobResponse.from_job(job)


@router.post("/offer/decline")
@limiter.limit("30/minute")
async def decline_offer(request: Request, auth: CurrentActor, market: Market):
    """Decline the active offer. The job stays open for others."""
    require_role(auth, ActorRole.ELECTRICIAN)
    log_request(logger, "POST", "/dispatch/offer/decline", str(auth))
    offer = market.dispatcher.decline_offer(auth.actor_id)
    return {"declined": offer.job_id}
