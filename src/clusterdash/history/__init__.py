"""Health transition history."""

from __future__ import annotations

from clusterdash.history.memory import InMemoryHealthHistory
from clusterdash.history.models import HealthHistoryBackend, HealthTransition
from clusterdash.history.recorder import HealthHistoryRecorder
from clusterdash.history.sqlite import SqliteHealthHistory

__all__ = [
    "HealthHistoryBackend",
    "HealthHistoryRecorder",
    "HealthTransition",
    "InMemoryHealthHistory",
    "SqliteHealthHistory",
]
