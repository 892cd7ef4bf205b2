from contextlib import asynccontextmanager
import time
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import structlog

from config import get_settings
from logging_config import configure_logging
from models import (
    AccountSnapshot,
    BatchResponse,
    ErrorResponse,
    EventRecord,
    EventResponse,
    HealthResponse,
)
from services import Ledger, get_ledger

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger(__name__)

RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"

# Rate limiting
limiter = Limiter(key_func=get_remote_address)


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Client Ledger API", version=settings.app_version)
    yield
    # Shutdown
    ledger = get_ledger()
    logger.info(
        "Shutting down Client Ledger API",
        events_applied=ledger.stats.events_applied,
        events_dropped=ledger.stats.events_dropped
    )

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Applies deposit, withdrawal and dispute events to client accounts in arrival order",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get ledger statistics"
)
async def health_check(ledger: Ledger = Depends(get_ledger)):
    return HealthResponse(
        status="healthy",
        accounts_count=ledger.account_repo.count(),
        transactions_recorded=ledger.transaction_log.count(),
        events_applied=ledger.stats.events_applied,
        events_dropped=ledger.stats.events_dropped
    )

# Single event endpoint
@app.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_200_OK,
    summary="Apply Event",
    description="Apply one deposit, withdrawal, dispute, resolve or chargeback event",
    responses={
        200: {"description": "Event processed; `applied` is false when the ledger dropped it"},
        422: {"description": "Malformed event record"},
        429: {"description": "Rate limit exceeded"},
    }
)
@limiter.limit(RATE_LIMIT)
async def apply_event(
    request: Request,
    event: EventRecord,
    ledger: Ledger = Depends(get_ledger)
):
    # No await between here and the return: events are applied strictly one at a time
    applied = ledger.apply(event)

    return EventResponse(
        tx=event.tx,
        client=event.client,
        type=event.type,
        applied=applied
    )

# Batch endpoint
@app.post(
    "/events/batch",
    response_model=BatchResponse,
    summary="Apply Events",
    description="Apply raw event records in order; malformed records are dropped one by one"
)
@limiter.limit(RATE_LIMIT)
async def apply_events(
    request: Request,
    records: List[Dict[str, Any]],
    ledger: Ledger = Depends(get_ledger)
):
    applied = sum(1 for record in records if ledger.apply_row(record))

    logger.info("Batch processed", received=len(records), applied=applied)

    return BatchResponse(
        received=len(records),
        applied=applied,
        dropped=len(records) - applied
    )

@app.get(
    "/accounts",
    response_model=List[AccountSnapshot],
    summary="Account Snapshot",
    description="Balances of every known client, ordered by client id"
)
async def list_accounts(ledger: Ledger = Depends(get_ledger)):
    return ledger.snapshot()

@app.get(
    "/accounts/{client_id}",
    response_model=AccountSnapshot,
    summary="Account Balance",
    responses={404: {"description": "Account not found"}}
)
async def get_account(client_id: int, ledger: Ledger = Depends(get_ledger)):
    snapshot = ledger.account(client_id)
    if snapshot is None:
        logger.warning("Account not found", client=client_id)
        raise HTTPException(
            status_code=404,
            detail="Account not found"
        )
    return snapshot

# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
