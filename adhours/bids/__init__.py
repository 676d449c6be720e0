"""Bid records and bidder identities."""

from .models import Bid, BidderIdentity

__all__ = ["Bid", "BidderIdentity"]
