"""Storage backend factory."""

from __future__ import annotations

from typing import Protocol

from ..config import ServerConfig
from .firestore import FirestoreStorage
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage


class BidStorage(Protocol):
    async def insert_bid(self, record: dict, *, max_per_day: int | None = None) -> dict:
        """Insert a bid unless one exists for (day, bidder) or the day holds ``max_per_day`` bids.

        The ceiling check and the insert are one atomic step on the backend, so
        they hold across processes sharing it. Raises DayClosed or DuplicateBid.
        """
        ...

    async def get_bid(self, day: str, bidder: str) -> dict | None: ...

    async def count_bids(self, day: str) -> int: ...

    async def list_bids_for_day(self, day: str) -> list[dict]:
        """Bids for one day ordered by submission time."""
        ...

    async def list_bids(self) -> list[dict]: ...


class SnapshotStorage(Protocol):
    async def upsert_snapshot(self, snapshot: dict) -> dict:
        """Replace the allocation snapshot stored for snapshot["day"]."""
        ...

    async def get_snapshot(self, day: str) -> dict | None: ...


class Storage(BidStorage, SnapshotStorage, Protocol):
    pass


def build_storage(config: ServerConfig) -> Storage:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    if backend == "firestore":
        return FirestoreStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")
