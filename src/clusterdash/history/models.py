"""Health transition records and the history backend protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable


@dataclass
class HealthTransition:
    """One state change of one service."""

    service_id: str
    previous: str
    current: str
    at: datetime = field(default_factory=lambda: datetime.now(UTC))
    consecutive_failures: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "previous": self.previous,
            "current": self.current,
            "at": self.at.isoformat(),
            "consecutive_failures": self.consecutive_failures,
            "error": self.error,
        }


@runtime_checkable
class HealthHistoryBackend(Protocol):
    """Protocol for health history backends."""

    async def record(self, transition: HealthTransition) -> None: ...
    async def get_history(self, service_id: str) -> list[HealthTransition]: ...
    async def get_recent(self, limit: int = 20) -> list[HealthTransition]: ...
