"""Unit tests for the bid admission gate."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from adhours.admission import AdmissionController
from adhours.bids.models import Bid, BidderIdentity
from adhours.config import AdmissionConfig
from adhours.locks import DayLocks
from adhours.errors import (
    BidTooLow,
    DayClosed,
    DuplicateBid,
    InvalidHours,
    InvalidInput,
    StorageError,
)
from adhours.storage.in_memory import InMemoryStorage

DAY = "2025-03-14"


def bidder(n: int) -> BidderIdentity:
    return BidderIdentity(email=f"bidder{n}@example.com", username=f"bidder{n}")


class YieldingStorage(InMemoryStorage):
    """Gives up the event loop between reads so unguarded check-then-insert would race."""

    async def count_bids(self, day: str) -> int:
        count = await super().count_bids(day)
        await asyncio.sleep(0)
        return count

    async def get_bid(self, day: str, bidder: str):
        record = await super().get_bid(day, bidder)
        await asyncio.sleep(0)
        return record


@pytest.fixture
def admission_config():
    return AdmissionConfig(min_bid=5000, min_hours=1, max_hours=10, max_bids_per_day=5)


@pytest.fixture
def storage():
    return YieldingStorage()


@pytest.fixture
def controller(storage, admission_config):
    return AdmissionController(storage, admission_config)


class TestBoundaryValidation:
    @pytest.mark.asyncio
    async def test_minimum_bid_is_accepted(self, controller):
        bid = await controller.submit_bid(bidder(1), DAY, 5000, 4)
        assert bid.amount == 5000
        assert bid.bidder == "bidder1@example.com"
        assert bid.username == "bidder1"

    @pytest.mark.asyncio
    async def test_one_below_minimum_is_rejected(self, controller, storage):
        with pytest.raises(BidTooLow):
            await controller.submit_bid(bidder(1), DAY, 4999, 4)
        assert await storage.count_bids(DAY) == 0

    @pytest.mark.asyncio
    async def test_zero_hours_rejected(self, controller):
        with pytest.raises(InvalidHours):
            await controller.submit_bid(bidder(1), DAY, 6000, 0)

    @pytest.mark.asyncio
    async def test_max_hours_accepted(self, controller):
        bid = await controller.submit_bid(bidder(1), DAY, 6000, 10)
        assert bid.hours_per_day == 10

    @pytest.mark.asyncio
    async def test_above_max_hours_rejected(self, controller):
        with pytest.raises(InvalidHours):
            await controller.submit_bid(bidder(1), DAY, 6000, 11)

    @pytest.mark.asyncio
    async def test_fractional_hours_accepted(self, controller):
        bid = await controller.submit_bid(bidder(1), DAY, 6000, 2.5)
        assert bid.hours_per_day == 2.5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("day", "amount", "hours"),
        [
            (None, 6000, 4),
            (DAY, None, 4),
            (DAY, 6000, None),
            ("14/03/2025", 6000, 4),
            ("2025-02-30", 6000, 4),
            (DAY, "6000", 4),
            (DAY, True, 4),
            (DAY, 6000, "four"),
            (DAY, float("nan"), 4),
            (DAY, 10**400, 4),
            (DAY, 6000, 10**400),
        ],
    )
    async def test_malformed_input_rejected(self, controller, storage, day, amount, hours):
        with pytest.raises(InvalidInput):
            await controller.submit_bid(bidder(1), day, amount, hours)
        assert await storage.list_bids() == []

    @pytest.mark.asyncio
    async def test_missing_identity_rejected(self, controller):
        with pytest.raises(InvalidInput):
            await controller.submit_bid(BidderIdentity(email="", username=""), DAY, 6000, 4)

    @pytest.mark.asyncio
    async def test_input_checked_before_amount(self, controller):
        """A malformed day wins over a low amount."""
        with pytest.raises(InvalidInput):
            await controller.submit_bid(bidder(1), "tomorrow", 10, 4)

    @pytest.mark.asyncio
    async def test_amount_checked_before_hours(self, controller):
        with pytest.raises(BidTooLow):
            await controller.submit_bid(bidder(1), DAY, 10, 40)


class TestDayCeiling:
    @pytest.mark.asyncio
    async def test_sixth_bid_closes_day(self, controller):
        for n in range(5):
            await controller.submit_bid(bidder(n), DAY, 6000, 2)
        with pytest.raises(DayClosed):
            await controller.submit_bid(bidder(99), DAY, 9000, 2)

    @pytest.mark.asyncio
    async def test_other_days_stay_open(self, controller):
        for n in range(5):
            await controller.submit_bid(bidder(n), DAY, 6000, 2)
        bid = await controller.submit_bid(bidder(0), "2025-03-15", 6000, 2)
        assert bid.day == "2025-03-15"

    @pytest.mark.asyncio
    async def test_closed_day_reported_before_duplicate(self, controller):
        for n in range(5):
            await controller.submit_bid(bidder(n), DAY, 6000, 2)
        with pytest.raises(DayClosed):
            await controller.submit_bid(bidder(0), DAY, 6000, 2)


class TestConcurrentAdmission:
    @pytest.mark.asyncio
    async def test_concurrent_submissions_never_overcommit(self, controller, storage):
        await controller.submit_bid(bidder(100), DAY, 6000, 2)
        await controller.submit_bid(bidder(101), DAY, 6000, 2)
        # three slots remain, eight contenders
        results = await asyncio.gather(
            *(controller.submit_bid(bidder(n), DAY, 7000, 3) for n in range(8)),
            return_exceptions=True,
        )
        admitted = [result for result in results if isinstance(result, Bid)]
        closed = [result for result in results if isinstance(result, DayClosed)]
        assert len(admitted) == 3
        assert len(closed) == 5
        assert await storage.count_bids(DAY) == 5

    @pytest.mark.asyncio
    async def test_same_bidder_racing_admitted_once(self, controller, storage):
        results = await asyncio.gather(
            controller.submit_bid(bidder(1), DAY, 6000, 2),
            controller.submit_bid(bidder(1), DAY, 8000, 3),
            return_exceptions=True,
        )
        assert sum(isinstance(result, Bid) for result in results) == 1
        assert sum(isinstance(result, DuplicateBid) for result in results) == 1
        assert await storage.count_bids(DAY) == 1

    @pytest.mark.asyncio
    async def test_duplicate_sequential_submission(self, controller):
        await controller.submit_bid(bidder(1), DAY, 6000, 2)
        with pytest.raises(DuplicateBid):
            await controller.submit_bid(bidder(1), DAY, 7000, 2)

    @pytest.mark.asyncio
    async def test_storage_level_duplicate_surfaces(self, admission_config):
        """A bid written by another process between check and insert is still rejected."""
        storage = InMemoryStorage()
        controller = AdmissionController(storage, admission_config)
        original_get_bid = storage.get_bid

        async def stale_get_bid(day, bidder_email):
            record = await original_get_bid(day, bidder_email)
            if record is None:
                await storage.insert_bid(
                    Bid.create(bidder(1), DAY, 9000, 1).to_record()
                )
            return None

        storage.get_bid = stale_get_bid
        with pytest.raises(DuplicateBid):
            await controller.submit_bid(bidder(1), DAY, 6000, 2)

    @pytest.mark.asyncio
    async def test_storage_level_ceiling_surfaces(self, admission_config):
        """A full day is still closed when another process filled it after the count."""
        storage = InMemoryStorage()
        controller = AdmissionController(storage, admission_config)
        for n in range(5):
            await storage.insert_bid(Bid.create(bidder(n), DAY, 6000, 1).to_record())

        async def stale_count(day):
            return 0

        storage.count_bids = stale_count
        with pytest.raises(DayClosed):
            await controller.submit_bid(bidder(99), DAY, 9000, 2)
        assert len(await storage.list_bids_for_day(DAY)) == 5


class TestStorageFailures:
    @staticmethod
    def failing_storage(**side_effects) -> AsyncMock:
        storage = AsyncMock()
        storage.count_bids.return_value = 0
        storage.get_bid.return_value = None
        for name, effect in side_effects.items():
            getattr(storage, name).side_effect = effect
        return storage

    @pytest.mark.asyncio
    async def test_count_failure_propagates_without_write(self, admission_config):
        locks = DayLocks()
        storage = self.failing_storage(count_bids=StorageError("redis unavailable"))
        controller = AdmissionController(storage, admission_config, locks=locks)
        with pytest.raises(StorageError):
            await controller.submit_bid(bidder(1), DAY, 6000, 2)
        storage.insert_bid.assert_not_called()
        assert locks.active_days() == []

    @pytest.mark.asyncio
    async def test_insert_failure_releases_day(self, admission_config):
        locks = DayLocks()
        storage = self.failing_storage(insert_bid=[StorageError("postgres unavailable"), None])
        controller = AdmissionController(storage, admission_config, locks=locks)
        with pytest.raises(StorageError):
            await controller.submit_bid(bidder(1), DAY, 6000, 2)
        assert locks.active_days() == []

        bid = await controller.submit_bid(bidder(1), DAY, 6000, 2)
        assert bid.amount == 6000
        assert storage.insert_bid.await_count == 2
        assert storage.insert_bid.await_args.kwargs == {"max_per_day": 5}


class TestQueries:
    @pytest.mark.asyncio
    async def test_count_and_has_bid(self, controller):
        assert await controller.count_for_day(DAY) == 0
        assert not await controller.has_bid(bidder(1), DAY)
        await controller.submit_bid(bidder(1), DAY, 6000, 2)
        await controller.submit_bid(bidder(2), DAY, 6000, 2)
        assert await controller.count_for_day(DAY) == 2
        assert await controller.has_bid(bidder(1), DAY)
        assert not await controller.has_bid(bidder(3), DAY)

    @pytest.mark.asyncio
    async def test_query_rejects_malformed_day(self, controller):
        with pytest.raises(InvalidInput):
            await controller.count_for_day("not-a-day")

    @pytest.mark.asyncio
    async def test_bid_status_only_lists_own_bids(self, controller):
        await controller.submit_bid(bidder(1), DAY, 6000, 2)
        await controller.submit_bid(bidder(2), DAY, 9000, 2)
        status = await controller.bid_status(bidder(1), DAY)
        assert status["count"] == 1
        assert [bid.amount for bid in status["bids"]] == [6000]

    @pytest.mark.asyncio
    async def test_bid_status_orders_by_amount_then_time(self, admission_config):
        storage = InMemoryStorage()
        controller = AdmissionController(storage, admission_config)
        me = bidder(1)
        start = datetime(2025, 3, 1, tzinfo=timezone.utc)
        # rows keyed apart so one identity holds several bids for the day
        for offset, amount, key in [(0, 6000, "a"), (1, 9000, "b"), (2, 6000, "c")]:
            record = Bid.create(me, DAY, amount, 2, now=start + timedelta(minutes=offset)).to_record()
            storage._bids[(DAY, key)] = record
        status = await controller.bid_status(me, DAY)
        assert status["count"] == 3
        assert [(bid.amount, bid.created_at.minute) for bid in status["bids"]] == [
            (9000, 1),
            (6000, 0),
            (6000, 2),
        ]
