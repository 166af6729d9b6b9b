"""In-memory health history."""

from __future__ import annotations

import asyncio

from clusterdash.history.models import HealthTransition


class InMemoryHealthHistory:
    """In-memory transition log. Safe under concurrent tasks via asyncio lock."""

    def __init__(self, max_records: int = 0) -> None:
        self._records: dict[str, list[HealthTransition]] = {}
        self._max_records = max_records
        self._lock = asyncio.Lock()

    async def record(self, transition: HealthTransition) -> None:
        async with self._lock:
            records = self._records.setdefault(transition.service_id, [])
            records.append(transition)
            if self._max_records > 0 and len(records) > self._max_records:
                del records[: len(records) - self._max_records]

    async def get_history(self, service_id: str) -> list[HealthTransition]:
        """Transitions for one service, newest first."""
        async with self._lock:
            return list(reversed(self._records.get(service_id, [])))

    async def get_recent(self, limit: int = 20) -> list[HealthTransition]:
        async with self._lock:
            everything = [t for records in self._records.values() for t in records]
        everything.sort(key=lambda t: t.at, reverse=True)
        return everything[:limit]
