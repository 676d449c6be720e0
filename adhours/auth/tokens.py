"""JWT bearer tokens issued by the identity service.

Tokens carry the bidder e-mail (``email``, or ``sub`` when the issuer uses the
registered claim), a display ``username`` and an ``exp``. The verifier accepts
exactly one configured algorithm: HS256 with a shared secret by default, or an
asymmetric algorithm (RS256, ES256, ...) with the issuer's public key.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from ..bids.models import BidderIdentity

SUPPORTED_ALGORITHMS = (
    "HS256",
    "HS384",
    "HS512",
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
)


class TokenError(ValueError):
    """Raised when a bearer token is malformed, forged, or expired."""


def issue_token(
    identity: BidderIdentity,
    signing_key: str,
    *,
    algorithm: str = "HS256",
    ttl_seconds: int = 3600,
    now: datetime | None = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": identity.email,
        "email": identity.email,
        "username": identity.username,
        "iat": issued,
        "exp": issued + timedelta(seconds=ttl_seconds),
    }
    return str(jwt.encode(claims, signing_key, algorithm=algorithm))


class TokenVerifier:
    def __init__(self, key: str, *, algorithm: str = "HS256", leeway_seconds: int = 30) -> None:
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"unsupported token algorithm {algorithm}")
        self._key = key
        self._algorithm = algorithm
        self._leeway = leeway_seconds

    @property
    def configured(self) -> bool:
        return bool(self._key)

    def verify(self, token: str) -> BidderIdentity:
        if not self._key:
            raise TokenError("token verification key is not configured")
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._algorithm],
                options={"leeway": self._leeway, "verify_aud": False},
            )
        except ExpiredSignatureError as exc:
            raise TokenError("token expired") from exc
        except JWTError as exc:
            raise TokenError(str(exc) or "token rejected") from exc
        email = claims.get("email") or claims.get("sub")
        if not email or not isinstance(email, str):
            raise TokenError("token carries no bidder e-mail")
        return BidderIdentity(email=email, username=str(claims.get("username") or email))
