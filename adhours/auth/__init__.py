"""Identity-token verification at the edge of the bidding core."""
