from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status

from .admin import config as admin_config
from .admin import health as admin_health
from .admin import stats as admin_stats
from .admission import AdmissionController
from .allocation import AllocationEngine
from .auth.dependencies import get_current_bidder
from .auth.tokens import TokenVerifier
from .bids.models import BidderIdentity
from .config import ServerConfig, get_server_config
from .errors import (
    AdmissionError,
    AllocationError,
    DayClosed,
    DuplicateBid,
    NoBidsForDay,
    StorageError,
)
from .locks import DayLocks
from .storage import build_storage
from .validation.validator import get_schema_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    schema_registry = get_schema_registry()
    storage = build_storage(server_config)
    admission_locks = DayLocks()
    allocation_locks = DayLocks()
    admission = AdmissionController(
        storage,
        server_config.admission,
        locks=admission_locks,
        schemas=schema_registry,
    )
    allocation = AllocationEngine(
        storage,
        server_config.allocation,
        locks=allocation_locks,
        schemas=schema_registry,
    )
    token_verifier = TokenVerifier(
        server_config.auth.verification_key,
        algorithm=server_config.auth.algorithm,
        leeway_seconds=server_config.auth.leeway_seconds,
    )
    if not token_verifier.configured:
        logger.warning(
            "no %s verification key configured; bidder endpoints will reject every token",
            server_config.auth.algorithm,
        )

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.storage = storage
    app.state.admission_locks = admission_locks
    app.state.allocation_locks = allocation_locks
    app.state.admission = admission
    app.state.allocation = allocation
    app.state.token_verifier = token_verifier
    app.state.start_time = datetime.now(timezone.utc)

    yield


app = FastAPI(
    title="Ad Hours Bidding Server",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_admission_controller(request: Request) -> AdmissionController:
    return request.app.state.admission


def get_allocation_engine(request: Request) -> AllocationEngine:
    return request.app.state.allocation


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (DayClosed, DuplicateBid)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_error_detail(exc))
    if isinstance(exc, NoBidsForDay):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_error_detail(exc))
    if isinstance(exc, (AdmissionError, AllocationError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_error_detail(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _error_detail(exc: Exception) -> dict[str, str]:
    return {"error": getattr(exc, "code", "internal_error"), "message": str(exc)}


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "adhours-server",
        "version": app.version,
        "admission": {
            "min_bid": settings.admission.min_bid,
            "min_hours": settings.admission.min_hours,
            "max_hours": settings.admission.max_hours,
            "max_bids_per_day": settings.admission.max_bids_per_day,
        },
        "allocation": {"daily_capacity": settings.allocation.daily_capacity},
    }


@app.post("/bid", tags=["bids"], status_code=status.HTTP_201_CREATED)
async def submit_bid(
    payload: dict[str, Any] = Body(...),
    bidder: BidderIdentity = Depends(get_current_bidder),
    admission: AdmissionController = Depends(get_admission_controller),
) -> dict[str, Any]:
    day = payload.get("day")
    try:
        bid = await admission.submit_bid(
            bidder,
            day,
            payload.get("amount"),
            payload.get("hours_per_day"),
        )
    except AdmissionError as exc:
        logger.warning("bid rejected bidder=%s day=%s reason=%s", bidder.email, day, exc.code)
        raise http_error(exc) from exc
    except StorageError as exc:
        logger.error("bid submission failed for %s on %s: %s", bidder.email, day, exc, exc_info=True)
        raise http_error(exc) from exc
    return {"message": "Bid placed successfully", "bid": bid.to_record()}


@app.get("/bid-count/{day}", tags=["bids"])
async def bid_count(
    day: str,
    admission: AdmissionController = Depends(get_admission_controller),
) -> dict[str, Any]:
    try:
        count = await admission.count_for_day(day)
    except (AdmissionError, StorageError) as exc:
        raise http_error(exc) from exc
    return {"day": day, "count": count}


@app.get("/has-bid/{day}", tags=["bids"])
async def has_bid(
    day: str,
    bidder: BidderIdentity = Depends(get_current_bidder),
    admission: AdmissionController = Depends(get_admission_controller),
) -> dict[str, Any]:
    try:
        placed = await admission.has_bid(bidder, day)
    except (AdmissionError, StorageError) as exc:
        raise http_error(exc) from exc
    message = (
        f"You have already placed a bid for {day}"
        if placed
        else f"You haven't placed a bid for {day} yet"
    )
    return {"day": day, "has_bid": placed, "message": message}


@app.get("/bid-status/{day}", tags=["bids"])
async def bid_status(
    day: str,
    bidder: BidderIdentity = Depends(get_current_bidder),
    admission: AdmissionController = Depends(get_admission_controller),
) -> dict[str, Any]:
    try:
        result = await admission.bid_status(bidder, day)
    except (AdmissionError, StorageError) as exc:
        raise http_error(exc) from exc
    return {"count": result["count"], "bids": [bid.to_record() for bid in result["bids"]]}


@app.api_route("/allocate/{day}", methods=["GET", "POST"], tags=["allocation"])
async def allocate(
    day: str,
    capacity: float | None = None,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> dict[str, Any]:
    try:
        snapshot = await engine.allocate(day, capacity)
    except (AdmissionError, AllocationError) as exc:
        raise http_error(exc) from exc
    except StorageError as exc:
        logger.error("allocation failed for %s: %s", day, exc, exc_info=True)
        raise http_error(exc) from exc
    return snapshot.to_record()


@app.get("/allocation/{day}", tags=["allocation"])
async def latest_allocation(
    day: str,
    engine: AllocationEngine = Depends(get_allocation_engine),
) -> dict[str, Any]:
    try:
        snapshot = await engine.latest_snapshot(day)
    except (AdmissionError, StorageError) as exc:
        raise http_error(exc) from exc
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "no_allocation", "message": f"no allocation stored for {day}"},
        )
    return snapshot.to_record()
