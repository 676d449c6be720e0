"""Firestore storage backend leveraging google-cloud-firestore."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ..errors import DayClosed, DuplicateBid, StorageError


@firestore.transactional
def _admit_bid(transaction, doc_ref, day_query, record: dict[str, Any], max_per_day: int | None) -> bool:
    """Count the day and create the bid inside one transaction; False when the bid exists."""
    if max_per_day is not None:
        held = sum(1 for _ in day_query.stream(transaction=transaction))
        if held >= max_per_day:
            raise DayClosed(f"bidding is closed for {record['day']}")
    if doc_ref.get(transaction=transaction).exists:
        return False
    transaction.create(doc_ref, record)
    return True


class FirestoreStorage:
    def __init__(
        self,
        *,
        project_id: str,
        collection: str = "bids",
        allocations_collection: str = "allocations",
        credentials_path: str | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id required for firestore backend")
        client_kwargs: dict[str, Any] = {"project": project_id}
        if credentials_path:
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                credentials_path
            )
        self._client = firestore.Client(**client_kwargs)
        self._collection_name = collection
        self._allocations_collection_name = allocations_collection

    def _collection(self):
        return self._client.collection(self._collection_name)

    def _allocations_collection(self):
        return self._client.collection(self._allocations_collection_name)

    def _bid_doc_id(self, day: str, bidder: str) -> str:
        return f"{day}_{bidder}"

    async def _run(self, func: Callable, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except google_exceptions.Conflict:
            raise
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"firestore unavailable: {exc}") from exc

    async def insert_bid(self, record: dict[str, Any], *, max_per_day: int | None = None) -> dict[str, Any]:
        doc = self._collection().document(self._bid_doc_id(record["day"], record["bidder"]))
        query = self._collection().where(filter=FieldFilter("day", "==", record["day"]))
        duplicate = f"bid already exists for {record['bidder']} on {record['day']}"
        try:
            created = await self._run(
                _admit_bid, self._client.transaction(), doc, query, record, max_per_day
            )
        except google_exceptions.Conflict as exc:
            raise DuplicateBid(duplicate) from exc
        if not created:
            raise DuplicateBid(duplicate)
        return record

    async def get_bid(self, day: str, bidder: str) -> dict[str, Any] | None:
        doc = await self._run(self._collection().document(self._bid_doc_id(day, bidder)).get)
        if not doc.exists:
            return None
        return doc.to_dict()

    async def _query_day(self, day: str) -> list[dict[str, Any]]:
        query = self._collection().where(filter=FieldFilter("day", "==", day))
        docs = await self._run(lambda: list(query.stream()))
        return [doc.to_dict() for doc in docs]

    async def count_bids(self, day: str) -> int:
        return len(await self._query_day(day))

    async def list_bids_for_day(self, day: str) -> list[dict[str, Any]]:
        records = await self._query_day(day)
        return sorted(records, key=lambda record: datetime.fromisoformat(record["created_at"]))

    async def list_bids(self) -> list[dict[str, Any]]:
        docs = await self._run(lambda: list(self._collection().stream()))
        return [doc.to_dict() for doc in docs]

    # Allocation snapshot methods

    async def upsert_snapshot(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        await self._run(self._allocations_collection().document(snapshot["day"]).set, snapshot)
        return snapshot

    async def get_snapshot(self, day: str) -> dict[str, Any] | None:
        doc = await self._run(self._allocations_collection().document(day).get)
        if not doc.exists:
            return None
        return doc.to_dict()
