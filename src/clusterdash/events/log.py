"""Recent dashboard events, kept in memory for the API."""

from __future__ import annotations

import asyncio
from collections import Counter, deque
from datetime import datetime

from clusterdash.events.emitter import DashboardEvent


class EventLog:
    """Bounded ring buffer of events. Implements EventListener protocol.

    Also keeps running per-type totals, which survive eviction from the
    buffer.
    """

    def __init__(self, max_size: int = 100) -> None:
        self._events: deque[DashboardEvent] = deque(maxlen=max_size)
        self._totals: Counter[str] = Counter()
        self._lock = asyncio.Lock()

    async def on_event(self, event: DashboardEvent) -> None:
        async with self._lock:
            self._events.append(event)
            self._totals[event.event_type] += 1

    async def get_recent(
        self,
        limit: int = 20,
        event_type: str | None = None,
        subject: str | None = None,
        since: datetime | None = None,
    ) -> list[DashboardEvent]:
        """Newest first, optionally filtered by type, subject and a lower time bound."""
        async with self._lock:
            snapshot = list(self._events)
        matches: list[DashboardEvent] = []
        for event in reversed(snapshot):
            if since is not None and event.timestamp <= since:
                # Events are appended in time order; everything older follows
                break
            if event_type and event.event_type != event_type:
                continue
            if subject and event.subject != subject:
                continue
            matches.append(event)
            if len(matches) >= limit:
                break
        return matches

    async def totals(self) -> dict[str, int]:
        async with self._lock:
            return dict(self._totals)
