"""Operational stats endpoint."""

from __future__ import annotations

from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..config import ServerConfig
from ..errors import StorageError
from ..storage import BidStorage

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_storage(request: Request) -> BidStorage:
    return request.app.state.storage


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/stats")
async def stats(
    storage: BidStorage = Depends(_get_storage),
    config: ServerConfig = Depends(_get_config),
) -> dict[str, Any]:
    try:
        records = await storage.list_bids()
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    bids_by_day: Counter[str] = Counter()
    hours_by_day: Counter[str] = Counter()
    bidders: set[str] = set()
    total_amount = 0.0
    for record in records:
        bids_by_day[record["day"]] += 1
        hours_by_day[record["day"]] += record["hours_per_day"]
        bidders.add(record["bidder"])
        total_amount += record["amount"]

    ceiling = config.admission.max_bids_per_day
    capacity = config.allocation.daily_capacity
    closed_days = sorted(day for day, count in bids_by_day.items() if count >= ceiling)
    oversubscribed_days = sorted(day for day, hours in hours_by_day.items() if hours > capacity)

    return {
        "total_bids": len(records),
        "distinct_bidders": len(bidders),
        "average_bid": round(total_amount / len(records), 2) if records else 0.0,
        "bids_by_day": dict(sorted(bids_by_day.items())),
        "closed_days": closed_days,
        "oversubscribed_days": oversubscribed_days,
    }
