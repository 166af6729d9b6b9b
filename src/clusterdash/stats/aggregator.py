"""Periodic cluster statistics."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from clusterdash.errors import ApiError
from clusterdash.stats.models import ClusterStats

if TYPE_CHECKING:
    from clusterdash.cluster.client import ClusterClient
    from clusterdash.cluster.models import NodeInfo, PodInfo, ResourceMetrics

logger = logging.getLogger(__name__)


class StatsAggregator:
    """Recomputes ClusterStats wholesale on every refresh."""

    def __init__(self, client: ClusterClient | None) -> None:
        self._client = client
        self._current: ClusterStats | None = None
        self._last_error: str | None = None

    @property
    def current(self) -> ClusterStats | None:
        return self._current

    @property
    def last_error(self) -> str | None:
        """Why the last refresh kept the previous value, if it did."""
        return self._last_error

    async def refresh(self) -> ClusterStats | None:
        """Build a new ClusterStats.

        Nodes, pods and namespaces are required: if any of them fails the
        previous value is kept. A missing metrics backend only blanks the
        CPU and memory fields.
        """
        if self._client is None:
            return self._current
        client = self._client
        try:
            nodes, pods, namespaces = await asyncio.gather(
                asyncio.to_thread(client.list_nodes),
                asyncio.to_thread(client.list_pods),
                asyncio.to_thread(client.list_namespaces),
            )
        except ApiError as exc:
            logger.warning("Cluster stats refresh failed, keeping previous value: %s", exc)
            self._last_error = str(exc)
            return self._current

        try:
            metrics = await asyncio.to_thread(client.get_resource_metrics)
        except ApiError as exc:
            logger.info("Metrics backend unavailable, resource fields left empty: %s", exc)
            metrics = None

        self._current = _summarise(nodes, pods, namespaces, metrics)
        self._last_error = None
        return self._current


def _summarise(
    nodes: list[NodeInfo],
    pods: list[PodInfo],
    namespaces: list[str],
    metrics: ResourceMetrics | None,
) -> ClusterStats:
    stats = ClusterStats(
        node_count=len(nodes),
        ready_node_count=sum(1 for n in nodes if n.ready),
        pod_count=len(pods),
        namespace_count=len(namespaces),
        sampled_at=datetime.now(UTC),
    )
    if metrics is None:
        return stats
    active = [p for p in pods if p.active]
    return replace(
        stats,
        cpu_requested=round(sum(p.cpu_requested for p in active), 3),
        cpu_capacity=round(sum(n.cpu_capacity for n in nodes), 3),
        cpu_usage=round(metrics.cpu_usage, 3),
        memory_requested=sum(p.memory_requested for p in active),
        memory_capacity=sum(n.memory_capacity for n in nodes),
        memory_usage=metrics.memory_usage,
    )
