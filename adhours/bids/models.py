"""Bid records and bidder identities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class BidderIdentity:
    email: str
    username: str


@dataclass(frozen=True)
class Bid:
    bidder: str
    username: str
    day: str
    amount: float
    hours_per_day: float
    created_at: datetime

    @classmethod
    def create(
        cls,
        bidder: BidderIdentity,
        day: str,
        amount: float,
        hours_per_day: float,
        now: datetime | None = None,
    ) -> Bid:
        return cls(
            bidder=bidder.email,
            username=bidder.username,
            day=day,
            amount=amount,
            hours_per_day=hours_per_day,
            created_at=now or datetime.now(timezone.utc),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "bidder": self.bidder,
            "username": self.username,
            "day": self.day,
            "amount": self.amount,
            "hours_per_day": self.hours_per_day,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Bid:
        created_at = record["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            bidder=record["bidder"],
            username=record.get("username", ""),
            day=record["day"],
            amount=record["amount"],
            hours_per_day=record["hours_per_day"],
            created_at=created_at,
        )
