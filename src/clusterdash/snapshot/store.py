"""Single-writer, many-reader snapshot store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType

from clusterdash.config.models import ServiceEntry
from clusterdash.health.models import HealthStatus
from clusterdash.snapshot.models import Snapshot
from clusterdash.stats.models import ClusterStats

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Holds the latest Snapshot.

    ``publish`` builds a new immutable Snapshot and swaps the reference in a
    single assignment, so ``current`` never needs a lock and never returns a
    half-built value.
    """

    def __init__(self) -> None:
        self._current = Snapshot.empty()

    def current(self) -> Snapshot:
        return self._current

    def publish(
        self,
        services: Iterable[ServiceEntry],
        health: Mapping[str, HealthStatus],
        stats: ClusterStats | None,
        registry_synced_at: datetime | None = None,
        degraded: Iterable[str] = (),
    ) -> Snapshot:
        entries = tuple(services)
        probed = [e.id for e in entries if e.health_path]
        # Exactly one status per entry with a health path
        statuses = {k: health.get(k) or HealthStatus(service_id=k) for k in probed}

        snapshot = Snapshot(
            version=self._current.version + 1,
            generated_at=datetime.now(UTC),
            services=entries,
            health=MappingProxyType(statuses),
            stats=stats,
            registry_synced_at=registry_synced_at,
            degraded=tuple(degraded),
        )
        self._current = snapshot
        logger.debug("Published snapshot v%d (%d services)", snapshot.version, len(entries))
        return snapshot
