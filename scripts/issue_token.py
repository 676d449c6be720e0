"""Mint bidder tokens for local development in place of the identity service."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from adhours.auth.tokens import SUPPORTED_ALGORITHMS, issue_token
from adhours.bids.models import BidderIdentity


def generate_keys(directory: Path) -> None:
    """Write a P-256 key pair usable with ``auth.algorithm: ES256``."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "identity_private.pem").write_bytes(private_pem)
    (directory / "identity_public.pem").write_bytes(public_pem)
    print(f"wrote identity_private.pem and identity_public.pem to {directory}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--generate-keys", type=Path, metavar="DIR")
    parser.add_argument("--algorithm", choices=SUPPORTED_ALGORITHMS, default="HS256")
    parser.add_argument("--secret", default=os.getenv("ADHOURS_JWT_SECRET"))
    parser.add_argument("--private-key", type=Path, default=Path("identity_private.pem"))
    parser.add_argument("--email")
    parser.add_argument("--username")
    parser.add_argument("--ttl", type=int, default=3600)
    args = parser.parse_args()

    if args.generate_keys:
        generate_keys(args.generate_keys)
        return
    if not args.email:
        parser.error("--email is required to issue a token")
    if args.algorithm.startswith("HS"):
        if not args.secret:
            parser.error("--secret or ADHOURS_JWT_SECRET is required for HMAC tokens")
        signing_key = args.secret
    else:
        signing_key = args.private_key.read_text()
    identity = BidderIdentity(email=args.email, username=args.username or args.email)
    print(issue_token(identity, signing_key, algorithm=args.algorithm, ttl_seconds=args.ttl))


if __name__ == "__main__":
    main()
