"""Dashboard event system."""

from __future__ import annotations

from clusterdash.events.emitter import (
    CYCLE_COMPLETED,
    HEALTH_CHANGED,
    REGISTRY_CHANGED,
    DashboardEvent,
    EventEmitter,
    EventListener,
)
from clusterdash.events.log import EventLog
from clusterdash.events.webhook import WebhookListener

__all__ = [
    "CYCLE_COMPLETED",
    "HEALTH_CHANGED",
    "REGISTRY_CHANGED",
    "DashboardEvent",
    "EventEmitter",
    "EventListener",
    "EventLog",
    "WebhookListener",
]
