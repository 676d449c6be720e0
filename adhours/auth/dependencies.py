"""FastAPI dependencies resolving the authenticated bidder."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..bids.models import BidderIdentity
from .tokens import TokenError, TokenVerifier


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_current_bidder(request: Request) -> BidderIdentity:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return get_token_verifier(request).verify(token.strip())
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Invalid token: {exc}") from exc
