"""Ledger routes for Kahraba: an electrician's earnings and balance."""

from fastapi import APIRouter, Request

from kahraba.jobs import ActorRole

from ..auth import CurrentActor, require_role
from ..database import Market
from ..logging_config import get_logger, log_request
from ..models import StatsResponse, TransactionResponse
from ..rate_limit import limiter

logger = get_logger("kahraba.api.ledger")
router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/me", response_model=StatsResponse)
@limiter.limit("60/minute")
async def get_my_stats(request: Request, auth: CurrentActor, market: Market):
    """Balance, weekly and monthly earnings, completed jobs."""
    require_role(auth, ActorRole.ELECTRICIAN)
    log_request(logger, "GET", "/ledger/me", str(auth))
    stats = market.ledger.get_stats(auth.actor_id)
    return StatsResponse.from_stats(
        stats,
        currency=market.config.currency,
        acceptance_rate=market.dispatcher.acceptance_rate(auth.actor_id),
    )


@router.get("/me/transactions", response_model=list[TransactionResponse])
@limiter.limit("60/minute")
async def get_my_transactions(request: Request, auth: CurrentActor, market: Market):
    """The caller's ledger entries, newest first."""
    require_role(auth, ActorRole.ELECTRICIAN)
    entries = market.ledger.get_transactions(auth.actor_id)
    return [TransactionResponse.from_transaction(t) for t in reversed(entries)]
