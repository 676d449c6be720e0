"""Admission gate for incoming bids."""

from __future__ import annotations

import logging
import math
from typing import Any

from ..bids.models import Bid, BidderIdentity
from ..config import AdmissionConfig
from ..errors import BidTooLow, DayClosed, DuplicateBid, InvalidHours, InvalidInput
from ..locks import DayLocks
from ..storage import BidStorage
from ..validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


class AdmissionController:
    """Validates bids and admits them into the day pool.

    The day ceiling check, the duplicate check and the insert run while holding
    the lock for that day, so concurrent submissions for one day are admitted
    one at a time. Submissions for different days do not contend. The store
    re-checks the ceiling and uniqueness atomically on insert, which covers
    other processes writing to the same backend.
    """

    def __init__(
        self,
        storage: BidStorage,
        config: AdmissionConfig,
        *,
        locks: DayLocks | None = None,
        schemas: SchemaRegistry | None = None,
    ) -> None:
        self._storage = storage
        self._config = config
        self._locks = locks or DayLocks()
        self._schemas = schemas or get_schema_registry()

    async def submit_bid(
        self,
        bidder: BidderIdentity,
        day: Any,
        amount: Any,
        hours_per_day: Any,
    ) -> Bid:
        self._check_input(bidder, day, amount, hours_per_day)
        if amount < self._config.min_bid:
            raise BidTooLow(f"minimum bid amount is {self._config.min_bid:g}")
        if not self._config.min_hours <= hours_per_day <= self._config.max_hours:
            raise InvalidHours(
                f"hours_per_day must be between {self._config.min_hours:g} "
                f"and {self._config.max_hours:g}"
            )
        async with self._locks.hold(day):
            count = await self._storage.count_bids(day)
            if count >= self._config.max_bids_per_day:
                raise DayClosed(
                    f"bidding is closed for {day}: "
                    f"maximum {self._config.max_bids_per_day} bids reached"
                )
            if await self._storage.get_bid(day, bidder.email) is not None:
                raise DuplicateBid(f"{bidder.email} already placed a bid for {day}")
            bid = Bid.create(bidder, day, amount, hours_per_day)
            await self._storage.insert_bid(
                bid.to_record(), max_per_day=self._config.max_bids_per_day
            )
        logger.info(
            "bid admitted bidder=%s day=%s amount=%s hours=%s slot=%d/%d",
            bid.bidder,
            day,
            amount,
            hours_per_day,
            count + 1,
            self._config.max_bids_per_day,
        )
        return bid

    async def count_for_day(self, day: str) -> int:
        self._check_day(day)
        return await self._storage.count_bids(day)

    async def has_bid(self, bidder: BidderIdentity, day: str) -> bool:
        self._check_day(day)
        return await self._storage.get_bid(day, bidder.email) is not None

    async def bid_status(self, bidder: BidderIdentity, day: str) -> dict[str, Any]:
        """Return the bidder's bids for a day, highest amount first."""
        self._check_day(day)
        records = await self._storage.list_bids_for_day(day)
        bids = [Bid.from_record(record) for record in records if record["bidder"] == bidder.email]
        bids.sort(key=lambda bid: bid.created_at)
        bids.sort(key=lambda bid: bid.amount, reverse=True)
        return {"count": len(bids), "bids": bids}

    def _check_input(self, bidder: BidderIdentity, day: Any, amount: Any, hours_per_day: Any) -> None:
        if not isinstance(bidder, BidderIdentity) or not bidder.email:
            raise InvalidInput("authenticated bidder identity is required")
        payload = {"day": day, "amount": amount, "hours_per_day": hours_per_day}
        payload = {key: value for key, value in payload.items() if value is not None}
        self._schemas.validate("bid_submission", payload)
        try:
            finite = math.isfinite(amount) and math.isfinite(hours_per_day)
        except OverflowError:
            finite = False
        if not finite:
            raise InvalidInput("amount and hours_per_day must be finite numbers")

    def _check_day(self, day: Any) -> None:
        self._schemas.validate("day_query", {"day": day})
