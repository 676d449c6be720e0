"""Fractional knapsack over advertising hours."""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from ..bids.models import Bid
from .models import AllocationLine


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def density(bid: Bid) -> Decimal:
    """Value per allocated hour."""
    return _decimal(bid.amount) / _decimal(bid.hours_per_day)


def rank_bids(bids: Sequence[Bid]) -> list[Bid]:
    """Highest density first; equal densities fall back to earliest submission, then bidder."""
    return sorted(bids, key=lambda bid: (-density(bid), bid.created_at, bid.bidder))


def fractional_allocation(
    bids: Sequence[Bid], capacity: float
) -> tuple[list[AllocationLine], list[AllocationLine]]:
    """Split a day's bids into (allocated, unallocated) lines.

    ``bids`` is expected in submission order; unallocated lines keep that order.
    At most one allocated line is fractional, and its amount is scaled by the
    share of requested hours it receives.
    """
    remaining = _decimal(capacity)
    allocated: list[AllocationLine] = []
    taken: set[str] = set()
    for bid in rank_bids(bids):
        if remaining <= 0:
            break
        hours = _decimal(bid.hours_per_day)
        if hours <= remaining:
            allocated.append(AllocationLine.from_bid(bid))
            remaining -= hours
        else:
            amount = _decimal(bid.amount) * remaining / hours
            allocated.append(
                AllocationLine.from_bid(bid, amount=_number(amount), hours_per_day=_number(remaining))
            )
            remaining = Decimal(0)
        taken.add(bid.bidder)
    unallocated = [AllocationLine.from_bid(bid) for bid in bids if bid.bidder not in taken]
    return allocated, unallocated
