"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

import asyncpg
import orjson

from ..errors import DayClosed, DuplicateBid, StorageError


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    def _encode(self, payload: dict[str, Any]) -> str:
        return orjson.dumps(payload).decode()

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bids (
                        day TEXT NOT NULL,
                        bidder TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        data JSONB NOT NULL,
                        PRIMARY KEY (day, bidder)
                    );
                    CREATE INDEX IF NOT EXISTS idx_bids_day_created
                    ON bids (day, created_at);
                    CREATE TABLE IF NOT EXISTS bid_days (
                        day TEXT PRIMARY KEY
                    );
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS allocations (
                        day TEXT PRIMARY KEY,
                        data JSONB NOT NULL,
                        updated_at TIMESTAMP DEFAULT NOW()
                    );
                    """
                )
        return self._pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageError(f"postgres unavailable: {exc}") from exc

    async def insert_bid(self, record: dict[str, Any], *, max_per_day: int | None = None) -> dict[str, Any]:
        day = record["day"]
        async with self._connection() as conn:
            async with conn.transaction():
                # the bid_days row lock serializes writers of one day across connections
                await conn.execute(
                    """INSERT INTO bid_days(day) VALUES($1) ON CONFLICT (day) DO NOTHING""",
                    day,
                )
                await conn.execute("""SELECT day FROM bid_days WHERE day=$1 FOR UPDATE""", day)
                if max_per_day is not None:
                    count = await conn.fetchval("""SELECT COUNT(*) FROM bids WHERE day=$1""", day)
                    if count >= max_per_day:
                        raise DayClosed(f"bidding is closed for {day}")
                inserted = await conn.fetchval(
                    """INSERT INTO bids(day, bidder, created_at, data) VALUES($1, $2, $3, $4)
                       ON CONFLICT (day, bidder) DO NOTHING
                       RETURNING bidder""",
                    day,
                    record["bidder"],
                    datetime.fromisoformat(record["created_at"]),
                    self._encode(record),
                )
        if inserted is None:
            raise DuplicateBid(f"bid already exists for {record['bidder']} on {record['day']}")
        return record

    async def get_bid(self, day: str, bidder: str) -> dict[str, Any] | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """SELECT data FROM bids WHERE day=$1 AND bidder=$2""",
                day,
                bidder,
            )
        if not row:
            return None
        return self._decode(row["data"])

    async def count_bids(self, day: str) -> int:
        async with self._connection() as conn:
            return await conn.fetchval("""SELECT COUNT(*) FROM bids WHERE day=$1""", day)

    async def list_bids_for_day(self, day: str) -> list[dict[str, Any]]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                """SELECT data FROM bids WHERE day=$1 ORDER BY created_at, bidder""",
                day,
            )
        return [self._decode(row["data"]) for row in rows]

    async def list_bids(self) -> list[dict[str, Any]]:
        async with self._connection() as conn:
            rows = await conn.fetch("SELECT data FROM bids ORDER BY day, created_at")
        return [self._decode(row["data"]) for row in rows]

    # Allocation snapshot methods

    async def upsert_snapshot(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        async with self._connection() as conn:
            await conn.execute(
                """INSERT INTO allocations(day, data) VALUES($1, $2)
                   ON CONFLICT (day) DO UPDATE SET data=EXCLUDED.data, updated_at=NOW()""",
                snapshot["day"],
                self._encode(snapshot),
            )
        return snapshot

    async def get_snapshot(self, day: str) -> dict[str, Any] | None:
        async with self._connection() as conn:
            row = await conn.fetchrow("""SELECT data FROM allocations WHERE day=$1""", day)
        if not row:
            return None
        return self._decode(row["data"])
