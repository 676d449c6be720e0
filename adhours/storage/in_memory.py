"""In-memory storage backend for bids and allocation snapshots."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from datetime import datetime
from typing import Any

from ..errors import DayClosed, DuplicateBid


def _submitted_at(record: dict[str, Any]) -> datetime:
    return datetime.fromisoformat(record["created_at"])


class InMemoryStorage:
    def __init__(self) -> None:
        self._bids: dict[tuple[str, str], dict[str, Any]] = {}
        self._snapshots: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def insert_bid(self, record: dict[str, Any], *, max_per_day: int | None = None) -> dict[str, Any]:
        day = record["day"]
        key = (day, record["bidder"])
        async with self._lock:
            if max_per_day is not None and self._day_size(day) >= max_per_day:
                raise DayClosed(f"bidding is closed for {day}")
            if key in self._bids:
                raise DuplicateBid(f"bid already exists for {record['bidder']} on {record['day']}")
            self._bids[key] = deepcopy(record)
            return deepcopy(record)

    async def get_bid(self, day: str, bidder: str) -> dict[str, Any] | None:
        async with self._lock:
            record = self._bids.get((day, bidder))
            return deepcopy(record) if record else None

    async def count_bids(self, day: str) -> int:
        async with self._lock:
            return self._day_size(day)

    async def list_bids_for_day(self, day: str) -> list[dict[str, Any]]:
        async with self._lock:
            records = [deepcopy(record) for (bid_day, _), record in self._bids.items() if bid_day == day]
        return sorted(records, key=_submitted_at)

    async def list_bids(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [deepcopy(record) for record in self._bids.values()]

    def _day_size(self, day: str) -> int:
        return sum(1 for bid_day, _ in self._bids if bid_day == day)

    # Allocation snapshot methods

    async def upsert_snapshot(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            self._snapshots[snapshot["day"]] = deepcopy(snapshot)
            return deepcopy(snapshot)

    async def get_snapshot(self, day: str) -> dict[str, Any] | None:
        async with self._lock:
            snapshot = self._snapshots.get(day)
            return deepcopy(snapshot) if snapshot else None
