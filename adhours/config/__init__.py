"""Configuration helpers for the bidding server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..auth.tokens import SUPPORTED_ALGORITHMS

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class AdmissionConfig:
    min_bid: float
    min_hours: float
    max_hours: float
    max_bids_per_day: int


@dataclass(frozen=True)
class AllocationConfig:
    daily_capacity: float


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class AuthConfig:
    algorithm: str
    secret: str
    public_key: str
    leeway_seconds: int

    @property
    def verification_key(self) -> str:
        """Shared secret for HMAC algorithms, the issuer public key otherwise."""
        if self.algorithm.startswith("HS"):
            return self.secret
        return self.public_key


@dataclass(frozen=True)
class ServerConfig:
    listen: Mapping[str, Any]
    admission: AdmissionConfig
    allocation: AllocationConfig
    storage: StorageConfig
    auth: AuthConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def _load_public_key(auth: Mapping[str, Any], base_dir: Path) -> str:
    key = auth.get("public_key")
    if key:
        return str(key)
    key_path = auth.get("public_key_path")
    if not key_path:
        return ""
    path = Path(key_path)
    if not path.is_absolute():
        path = base_dir / path
    return path.read_text()


def parse_server_config(data: Mapping[str, Any], base_dir: Path | None = None) -> ServerConfig:
    admission = data.get("admission", {})
    allocation = data.get("allocation", {})
    storage = data.get("storage", {})
    auth = data.get("auth", {})
    config = ServerConfig(
        listen=data.get("listen", {}),
        admission=AdmissionConfig(
            min_bid=float(admission.get("min_bid", 5000)),
            min_hours=float(admission.get("min_hours", 1)),
            max_hours=float(admission.get("max_hours", 10)),
            max_bids_per_day=int(admission.get("max_bids_per_day", 5)),
        ),
        allocation=AllocationConfig(
            daily_capacity=float(allocation.get("daily_capacity", 8)),
        ),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        auth=AuthConfig(
            algorithm=str(auth.get("algorithm", "HS256")).upper(),
            secret=str(auth.get("secret") or os.getenv("ADHOURS_JWT_SECRET", "")),
            public_key=_load_public_key(auth, base_dir or Path.cwd()),
            leeway_seconds=int(auth.get("leeway_seconds", 30)),
        ),
    )
    _check_limits(config)
    return config


def _check_limits(config: ServerConfig) -> None:
    admission = config.admission
    if admission.min_hours <= 0:
        raise ValueError("admission.min_hours must be positive")
    if admission.max_hours < admission.min_hours:
        raise ValueError("admission.max_hours must not be below admission.min_hours")
    if admission.max_bids_per_day < 1:
        raise ValueError("admission.max_bids_per_day must be at least 1")
    if config.allocation.daily_capacity <= 0:
        raise ValueError("allocation.daily_capacity must be positive")
    if config.auth.algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f"auth.algorithm {config.auth.algorithm} is not supported")


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("ADHOURS_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path), base_dir=path.resolve().parent)
