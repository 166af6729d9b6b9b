"""Dashboard change events and their dispatch."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

REGISTRY_CHANGED = "registry.changed"
HEALTH_CHANGED = "health.changed"
CYCLE_COMPLETED = "cycle.completed"

KNOWN_EVENT_TYPES = frozenset({REGISTRY_CHANGED, HEALTH_CHANGED, CYCLE_COMPLETED})


@dataclass(frozen=True)
class DashboardEvent:
    """A change in the registry, a service's health, or the engine."""

    event_type: str
    timestamp: datetime
    subject: str  # service id, or "registry" / "engine"
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def now(cls, event_type: str, subject: str, **data: Any) -> DashboardEvent:
        return cls(event_type=event_type, timestamp=datetime.now(UTC), subject=subject, data=data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "subject": self.subject,
            "data": self.data,
        }


class EventListener(Protocol):
    """Protocol for consuming dashboard events."""

    async def on_event(self, event: DashboardEvent) -> None: ...


class EventEmitter:
    """Dispatches events to subscribed listeners in registration order.

    A listener added without ``event_types`` receives everything. A failing
    listener is logged and never stops delivery to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[EventListener, frozenset[str] | None]] = []

    def add_listener(self, listener: EventListener, event_types: Iterable[str] | None = None) -> None:
        wanted = frozenset(event_types) if event_types is not None else None
        unknown = (wanted or frozenset()) - KNOWN_EVENT_TYPES
        if unknown:
            logger.warning("Listener %r subscribes to unknown event type(s): %s", listener, ", ".join(sorted(unknown)))
        self._subscriptions.append((listener, wanted))

    async def emit(self, event: DashboardEvent) -> None:
        for listener, wanted in self._subscriptions:
            if wanted is not None and event.event_type not in wanted:
                continue
            try:
                await listener.on_event(event)
            except Exception:
                logger.exception("Listener %r failed on %s for %s", listener, event.event_type, event.subject)

    async def emit_all(self, events: Iterable[DashboardEvent]) -> None:
        for event in events:
            await self.emit(event)
