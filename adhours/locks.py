"""Per-day mutual exclusion for admission and allocation."""

from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator


class DayLocks:
    """Hands out one asyncio.Lock per day key; idle locks are dropped."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: Counter[str] = Counter()

    @asynccontextmanager
    async def hold(self, day: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(day, asyncio.Lock())
        self._holders[day] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[day] -= 1
            if not self._holders[day]:
                del self._holders[day]
                self._locks.pop(day, None)

    def active_days(self) -> list[str]:
        return sorted(self._locks)
