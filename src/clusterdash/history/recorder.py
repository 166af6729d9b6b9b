"""Event listener that persists health transitions."""

from __future__ import annotations

from clusterdash.events.emitter import HEALTH_CHANGED, DashboardEvent
from clusterdash.history.models import HealthHistoryBackend, HealthTransition


class HealthHistoryRecorder:
    """Turns health.changed events into history records. Implements EventListener protocol."""

    def __init__(self, backend: HealthHistoryBackend) -> None:
        self._backend = backend

    async def on_event(self, event: DashboardEvent) -> None:
        if event.event_type != HEALTH_CHANGED:
            return
        await self._backend.record(
            HealthTransition(
                service_id=event.subject,
                previous=str(event.data.get("previous", "unknown")),
                current=str(event.data.get("current", "unknown")),
                at=event.timestamp,
                consecutive_failures=int(event.data.get("consecutive_failures", 0)),
                error=event.data.get("error"),
            )
        )
