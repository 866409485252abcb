"""Kahraba Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from kahraba.errors import (
    ConcurrentModificationError,
    CreditLimitExceededError,
    InvalidTransitionError,
    KahrabaError,
    LedgerError,
    NoActiveOfferError,
    NotFoundError,
    OfferExpiredError,
    SettlementError,
    UnauthorizedError,
)

from .config import get_settings
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import admin_router, dispatch_router, jobs_router, ledger_router

logger = get_logger("kahraba.api")

API_PREFIX = "/api/v1"

# Most specific first; the first isinstance match wins
ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NoActiveOfferError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (CreditLimitExceededError, status.HTTP_403_FORBIDDEN),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (OfferExpiredError, status.HTTP_410_GONE),
    (LedgerError, status.HTTP_400_BAD_REQUEST),
    (SettlementError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting Kahraba Backend API (debug={settings.debug})")
    yield
    logger.info("Shutting down Kahraba Backend API")


app = FastAPI(
    title="Kahraba Backend API",
    description="Electrician dispatch: job lifecycle, settlement ledger and broadcast offers",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
settings = get_settings()
limiter.enabled = settings.rate_limit_enabled
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(KahrabaError)
async def kahraba_error_handler(request: Request, exc: KahrabaError):
    """Map service errors onto HTTP status codes."""
    code = next(
        (c for cls, c in ERROR_STATUS if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Model validation failures inside the services."""
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs_router, prefix=API_PREFIX)
app.include_router(dispatch_router, prefix=API_PREFIX)
app.include_router(ledger_router, prefix=API_PREFIX)
app.include_router(admin_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "kahraba-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Detailed health check with an actual storage query."""
    from .database import get_marketplace_instance

    db_status = "disconnected"
    try:
        get_marketplace_instance().storage.list_jobs(limit=1)
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
