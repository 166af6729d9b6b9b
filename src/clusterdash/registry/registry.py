"""Service registry: static entries merged with annotation-discovered ones."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from clusterdash.config.models import DashboardConfig, ServiceEntry
from clusterdash.events.emitter import REGISTRY_CHANGED, DashboardEvent, EventEmitter
from clusterdash.registry.discovery import entry_from_service, merge_entries
from clusterdash.registry.models import RegistryChange

if TYPE_CHECKING:
    from clusterdash.cluster.client import ClusterClient

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """In-memory set of dashboard services. Sole owner of ServiceEntry records."""

    def __init__(
        self,
        config: DashboardConfig,
        client: ClusterClient | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self._static = list(config.services)
        self._discovery = config.discovery
        self._client = client
        self._emitter = emitter
        self._entries: dict[str, ServiceEntry] = {e.id: e for e in self._static}
        self._synced_at: datetime | None = None

    @property
    def synced_at(self) -> datetime | None:
        """When the last successful reload finished."""
        return self._synced_at

    @property
    def service_ids(self) -> list[str]:
        return list(self._entries.keys())

    def get(self, service_id: str) -> ServiceEntry | None:
        return self._entries.get(service_id)

    def all(self) -> list[ServiceEntry]:
        return list(self._entries.values())

    async def _discover(self) -> list[ServiceEntry]:
        if not self._discovery.enabled or self._client is None:
            return []
        found = await asyncio.to_thread(
            self._client.list_services_with_annotation, self._discovery.annotation
        )
        entries = (entry_from_service(svc, self._discovery) for svc in found)
        return [e for e in entries if e is not None]

    async def reload(self) -> RegistryChange:
        """Rescan the cluster and merge with the static entries.

        ApiError from the client propagates and leaves the current set untouched.
        """
        discovered = await self._discover()
        merged = merge_entries(self._static, discovered)
        # External entries outlive their source until removed explicitly
        for key, entry in self._entries.items():
            if key not in merged and entry.external:
                merged[key] = entry

        change = RegistryChange.between(self._entries, merged)
        self._entries = merged
        self._synced_at = datetime.now(UTC)
        if change:
            logger.info(
                "Registry changed: %d added, %d removed, %d updated",
                len(change.added),
                len(change.removed),
                len(change.updated),
            )
            await self._emit(change)
        return change

    async def remove(self, service_id: str) -> bool:
        """Drop an entry now. It comes back if a later reload still finds it."""
        if service_id not in self._entries:
            return False
        remaining = {k: v for k, v in self._entries.items() if k != service_id}
        change = RegistryChange.between(self._entries, remaining)
        self._entries = remaining
        await self._emit(change)
        return True

    async def _emit(self, change: RegistryChange) -> None:
        if self._emitter is not None:
            await self._emitter.emit(DashboardEvent.now(REGISTRY_CHANGED, "registry", **change.to_dict()))
