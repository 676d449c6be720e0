"""Glue between the bid store, the knapsack walk, and snapshot persistence."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from ..bids.models import Bid
from ..config import AllocationConfig
from ..errors import InvalidInput, NoBidsForDay
from ..locks import DayLocks
from ..storage import Storage
from ..validation.validator import SchemaRegistry, get_schema_registry
from .knapsack import fractional_allocation
from .models import AllocationSnapshot

logger = logging.getLogger(__name__)


class AllocationEngine:
    def __init__(
        self,
        storage: Storage,
        config: AllocationConfig,
        *,
        locks: DayLocks | None = None,
        schemas: SchemaRegistry | None = None,
    ) -> None:
        self._storage = storage
        self._config = config
        self._locks = locks or DayLocks()
        self._schemas = schemas or get_schema_registry()

    async def allocate(self, day: str, capacity: Any = None) -> AllocationSnapshot:
        if capacity is None:
            capacity = self._config.daily_capacity
        self._schemas.validate("allocation_request", {"day": day, "capacity": capacity})
        try:
            finite = math.isfinite(capacity)
        except OverflowError:
            finite = False
        if not finite:
            raise InvalidInput("capacity must be a finite number")
        async with self._locks.hold(day):
            records = await self._storage.list_bids_for_day(day)
            if not records:
                raise NoBidsForDay(f"no bids for {day}")
            bids = [Bid.from_record(record) for record in records]
            allocated, unallocated = fractional_allocation(bids, capacity)
            snapshot = AllocationSnapshot(
                day=day,
                capacity=capacity,
                allocated=tuple(allocated),
                unallocated=tuple(unallocated),
                created_at=datetime.now(timezone.utc),
            )
            await self._storage.upsert_snapshot(snapshot.to_record())
        logger.info(
            "allocation stored day=%s bids=%d allocated=%d hours=%s/%s value=%s",
            day,
            len(bids),
            len(allocated),
            snapshot.allocated_hours,
            capacity,
            snapshot.allocated_value,
        )
        return snapshot

    async def latest_snapshot(self, day: str) -> AllocationSnapshot | None:
        self._schemas.validate("day_query", {"day": day})
        record = await self._storage.get_snapshot(day)
        if record is None:
            return None
        return AllocationSnapshot.from_record(record)
