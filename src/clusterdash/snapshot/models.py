"""The externally visible, immutable status snapshot."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from clusterdash.config.models import ServiceEntry
from clusterdash.health.models import HealthState, HealthStatus
from clusterdash.stats.models import ClusterStats


def _empty_health() -> Mapping[str, HealthStatus]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Snapshot:
    """One assembly pass over registry, prober and aggregator output."""

    version: int
    generated_at: datetime
    services: tuple[ServiceEntry, ...] = ()
    health: Mapping[str, HealthStatus] = field(default_factory=_empty_health)
    stats: ClusterStats | None = None
    registry_synced_at: datetime | None = None
    degraded: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(version=0, generated_at=datetime.now(UTC))

    def service(self, service_id: str) -> ServiceEntry | None:
        for entry in self.services:
            if entry.id == service_id:
                return entry
        return None

    def state_of(self, service_id: str) -> HealthState:
        status = self.health.get(service_id)
        return status.state if status else HealthState.UNKNOWN

    def summary(self) -> dict[str, int]:
        """Counts per state over probed services. Unprobed ones are ignored."""
        counts = {state.value: 0 for state in HealthState}
        for status in self.health.values():
            counts[status.state.value] += 1
        counts["total"] = len(self.services)
        counts["probed"] = len(self.health)
        return counts

    def service_to_dict(self, entry: ServiceEntry) -> dict[str, Any]:
        status = self.health.get(entry.id)
        return {
            "id": entry.id,
            "name": entry.display_name,
            "description": entry.description,
            "category": entry.category.value,
            "path": entry.path,
            "url": entry.url,
            "target": entry.target.model_dump() if entry.target else None,
            "external": entry.external,
            "health_path": entry.health_path,
            "enabled": entry.enabled,
            "source": entry.source,
            "status": status.state.value if status else HealthState.UNKNOWN.value,
            "health": status.to_dict() if status else None,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "generated_at": self.generated_at.isoformat(),
            "registry_synced_at": self.registry_synced_at.isoformat() if self.registry_synced_at else None,
            "stats_sampled_at": self.stats.sampled_at.isoformat() if self.stats else None,
            "degraded": list(self.degraded),
            "summary": self.summary(),
            "services": [self.service_to_dict(e) for e in self.services],
            "stats": self.stats.to_dict() if self.stats else None,
        }
