"""Health state machine types."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any


class HealthState(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNREACHABLE = "unreachable"


class ProbeOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single health probe."""

    outcome: ProbeOutcome
    status_code: int | None = None
    latency_ms: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ProbeOutcome.SUCCESS


@dataclass(frozen=True)
class HealthStatus:
    """Latest probe-derived state for one service."""

    service_id: str
    state: HealthState = HealthState.UNKNOWN
    last_checked: datetime | None = None
    last_success: datetime | None = None
    consecutive_failures: int = 0
    latency_ms: float | None = None
    latency_exceeded: bool = False
    status_code: int | None = None
    last_error: str | None = None

    def advance(self, result: ProbeResult, at: datetime, failure_threshold: int) -> HealthStatus:
        """Apply one probe result and return the next status.

        Any success resets to HEALTHY; the Nth consecutive failure (and every
        one after it) is UNREACHABLE, earlier failures are UNHEALTHY.
        """
        common: dict[str, Any] = {
            "last_checked": at,
            "latency_ms": result.latency_ms,
            "latency_exceeded": result.outcome is ProbeOutcome.TIMEOUT,
            "status_code": result.status_code,
        }
        if result.ok:
            return replace(
                self,
                state=HealthState.HEALTHY,
                last_success=at,
                consecutive_failures=0,
                last_error=None,
                **common,
            )
        failures = self.consecutive_failures + 1
        state = HealthState.UNREACHABLE if failures >= failure_threshold else HealthState.UNHEALTHY
        return replace(
            self,
            state=state,
            consecutive_failures=failures,
            last_error=result.error,
            **common,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "state": self.state.value,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "consecutive_failures": self.consecutive_failures,
            "latency_ms": self.latency_ms,
            "latency_exceeded": self.latency_exceeded,
            "status_code": self.status_code,
            "last_error": self.last_error,
        }
