"""Allocation data structures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..bids.models import Bid


@dataclass(frozen=True)
class AllocationLine:
    bidder: str
    username: str
    amount: float
    hours_per_day: float
    created_at: datetime

    @classmethod
    def from_bid(
        cls,
        bid: Bid,
        *,
        amount: float | None = None,
        hours_per_day: float | None = None,
    ) -> AllocationLine:
        return cls(
            bidder=bid.bidder,
            username=bid.username,
            amount=bid.amount if amount is None else amount,
            hours_per_day=bid.hours_per_day if hours_per_day is None else hours_per_day,
            created_at=bid.created_at,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "bidder": self.bidder,
            "username": self.username,
            "amount": self.amount,
            "hours_per_day": self.hours_per_day,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AllocationLine:
        return cls(
            bidder=record["bidder"],
            username=record.get("username", ""),
            amount=record["amount"],
            hours_per_day=record["hours_per_day"],
            created_at=datetime.fromisoformat(record["created_at"]),
        )


@dataclass(frozen=True)
class AllocationSnapshot:
    day: str
    capacity: float
    allocated: tuple[AllocationLine, ...]
    unallocated: tuple[AllocationLine, ...]
    created_at: datetime

    @property
    def allocated_hours(self) -> float:
        return sum(line.hours_per_day for line in self.allocated)

    @property
    def allocated_value(self) -> float:
        return sum(line.amount for line in self.allocated)

    def to_record(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "capacity": self.capacity,
            "allocated": [line.to_record() for line in self.allocated],
            "unallocated": [line.to_record() for line in self.unallocated],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> AllocationSnapshot:
        return cls(
            day=record["day"],
            capacity=record["capacity"],
            allocated=tuple(AllocationLine.from_record(line) for line in record.get("allocated", [])),
            unallocated=tuple(
                AllocationLine.from_record(line) for line in record.get("unallocated", [])
            ),
            created_at=datetime.fromisoformat(record["created_at"]),
        )
