"""Tests for cluster statistics aggregation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from clusterdash.cluster.models import NodeInfo
from clusterdash.errors import ApiForbidden, ApiUnavailable
from clusterdash.stats.aggregator import StatsAggregator
from clusterdash.stats.models import ClusterStats
from tests.conftest import FakeClusterClient


class TestClusterStats:
    def test_ready_cannot_exceed_nodes(self):
        with pytest.raises(ValueError, match="ready_node_count"):
            ClusterStats(node_count=1, ready_node_count=2, pod_count=0, namespace_count=0, sampled_at=datetime.now(UTC))

    def test_to_dict(self):
        at = datetime(2026, 1, 1, tzinfo=UTC)
        data = ClusterStats(node_count=1, ready_node_count=1, pod_count=3, namespace_count=2, sampled_at=at).to_dict()
        assert data["sampled_at"] == at.isoformat()
        assert data["metrics_available"] is False
        assert data["cpu_requested"] is None


class TestStatsAggregator:
    @pytest.mark.asyncio
    async def test_full_refresh(self, fake_client: FakeClusterClient):
        aggregator = StatsAggregator(fake_client)
        stats = await aggregator.refresh()

        assert stats.node_count == 1
        assert stats.ready_node_count == 1
        assert stats.pod_count == 3
        assert stats.namespace_count == 3
        # Succeeded pods no longer hold requests
        assert stats.cpu_requested == pytest.approx(0.35)
        assert stats.memory_requested == (70 + 256) * 1024**2
        assert stats.cpu_capacity == 8.0
        assert stats.cpu_usage == 1.5
        assert stats.memory_usage == 4 * 1024**3
        assert stats.metrics_available is True
        assert aggregator.current is stats
        assert aggregator.last_error is None

    @pytest.mark.asyncio
    async def test_metrics_absent(self, fake_client: FakeClusterClient):
        fake_client.errors["metrics"] = ApiUnavailable("node metrics: HTTP 404 Not Found")
        stats = await StatsAggregator(fake_client).refresh()

        assert stats.node_count == 1
        assert stats.pod_count == 3
        assert stats.cpu_requested is None
        assert stats.memory_capacity is None
        assert stats.metrics_available is False

    @pytest.mark.asyncio
    async def test_node_failure_keeps_previous(self, fake_client: FakeClusterClient):
        aggregator = StatsAggregator(fake_client)
        first = await aggregator.refresh()

        fake_client.errors["nodes"] = ApiForbidden("list nodes: forbidden (403 Forbidden)")
        second = await aggregator.refresh()

        assert second is first
        assert "forbidden" in aggregator.last_error

        del fake_client.errors["nodes"]
        third = await aggregator.refresh()
        assert third is not first
        assert aggregator.last_error is None

    @pytest.mark.asyncio
    async def test_first_refresh_failure(self, fake_client: FakeClusterClient):
        fake_client.errors["pods"] = ApiUnavailable("list pods: connection refused")
        aggregator = StatsAggregator(fake_client)
        assert await aggregator.refresh() is None
        assert aggregator.last_error is not None

    @pytest.mark.asyncio
    async def test_not_ready_nodes(self, fake_client: FakeClusterClient):
        fake_client.nodes.append(NodeInfo(name="worker", ready=False, cpu_capacity=2.0))
        stats = await StatsAggregator(fake_client).refresh()
        assert stats.node_count == 2
        assert stats.ready_node_count == 1
        assert stats.cpu_capacity == 10.0

    @pytest.mark.asyncio
    async def test_without_client(self):
        aggregator = StatsAggregator(None)
        assert await aggregator.refresh() is None
        assert aggregator.last_error is None
