"""Admin health endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(prefix="/admin", tags=["admin"])


def _uptime_seconds(request: Request) -> int:
    started = getattr(request.app.state, "start_time", None)
    if started is None:
        return 0
    return int((datetime.now(timezone.utc) - started).total_seconds())


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    state = request.app.state
    return {
        "status": "healthy",
        "uptime_seconds": _uptime_seconds(request),
        "version": request.app.version,
        "storage_backend": state.server_config.storage.backend,
        # days with an admission or allocation currently holding its lock
        "admitting_days": state.admission_locks.active_days(),
        "allocating_days": state.allocation_locks.active_days(),
    }
