"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import orjson
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from ..errors import DayClosed, DuplicateBid, StorageError

_DAY_FULL = -1
_ALREADY_BID = 0

# KEYS: bid key, day index. ARGV: payload, bidder, score, ceiling (negative for none).
# Runs as one script so the ceiling check, the bid key and the index entry
# are written together or not at all.
_ADMIT_BID = """
local ceiling = tonumber(ARGV[4])
if ceiling >= 0 and redis.call("ZCARD", KEYS[2]) >= ceiling then
    return -1
end
if not redis.call("SET", KEYS[1], ARGV[1], "NX") then
    return 0
end
redis.call("ZADD", KEYS[2], ARGV[3], ARGV[2])
return 1
"""


class RedisStorage:
    def __init__(self, *, url: str, prefix: str = "adhours") -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url)
        self._prefix = prefix.rstrip(":")
        self._admit = self._redis.register_script(_ADMIT_BID)

    def _bid_key(self, day: str, bidder: str) -> str:
        return f"{self._prefix}:bid:{day}:{bidder}"

    def _day_key(self, day: str) -> str:
        return f"{self._prefix}:day:{day}"

    def _snapshot_key(self, day: str) -> str:
        return f"{self._prefix}:allocation:{day}"

    async def insert_bid(self, record: dict[str, Any], *, max_per_day: int | None = None) -> dict[str, Any]:
        day, bidder = record["day"], record["bidder"]
        score = datetime.fromisoformat(record["created_at"]).timestamp()
        ceiling = -1 if max_per_day is None else max_per_day
        try:
            outcome = await self._admit(
                keys=[self._bid_key(day, bidder), self._day_key(day)],
                args=[orjson.dumps(record), bidder, score, ceiling],
            )
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        if outcome == _DAY_FULL:
            raise DayClosed(f"bidding is closed for {day}")
        if outcome == _ALREADY_BID:
            raise DuplicateBid(f"bid already exists for {bidder} on {day}")
        return record

    async def get_bid(self, day: str, bidder: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(self._bid_key(day, bidder))
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        if raw is None:
            return None
        return orjson.loads(raw)

    async def count_bids(self, day: str) -> int:
        try:
            return int(await self._redis.zcard(self._day_key(day)))
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc

    async def list_bids_for_day(self, day: str) -> list[dict[str, Any]]:
        try:
            bidders = await self._redis.zrange(self._day_key(day), 0, -1)
            if not bidders:
                return []
            keys = [self._bid_key(day, self._text(bidder)) for bidder in bidders]
            values = await self._redis.mget(keys)
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        return [orjson.loads(value) for value in values if value]

    async def list_bids(self) -> list[dict[str, Any]]:
        pattern = f"{self._prefix}:bid:*"
        keys: list[bytes] = []
        cursor = 0
        try:
            while True:
                cursor, batch = await self._redis.scan(cursor=cursor, match=pattern, count=100)
                keys.extend(batch)
                if cursor == 0:
                    break
            if not keys:
                return []
            values = await self._redis.mget(keys)
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        return [orjson.loads(value) for value in values if value]

    # Allocation snapshot methods

    async def upsert_snapshot(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        try:
            await self._redis.set(self._snapshot_key(snapshot["day"]), orjson.dumps(snapshot))
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        return snapshot

    async def get_snapshot(self, day: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(self._snapshot_key(day))
        except RedisError as exc:
            raise StorageError(f"redis unavailable: {exc}") from exc
        if raw is None:
            return None
        return orjson.loads(raw)

    @staticmethod
    def _text(value: bytes | str) -> str:
        return value.decode() if isinstance(value, bytes) else value
