"""Tests for the orchestration loop."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest

from clusterdash.cluster.client import ClusterClient
from clusterdash.config.models import DashboardConfig
from clusterdash.engine import DashboardEngine
from clusterdash.errors import ApiUnavailable
from clusterdash.events.emitter import HEALTH_CHANGED, REGISTRY_CHANGED
from clusterdash.events.log import EventLog
from clusterdash.health.models import HealthState
from tests.conftest import FakeClusterClient, annotated_service, status_transport

GRAFANA_HOST = "grafana.monitoring.svc.cluster.local"
PODINFO_HOST = "podinfo.default.svc.cluster.local"


@pytest.fixture()
def engine(sample_config: DashboardConfig, fake_client: FakeClusterClient) -> DashboardEngine:
    transport = status_transport({GRAFANA_HOST: 200, PODINFO_HOST: 503})
    return DashboardEngine(sample_config, client=fake_client, transport=transport)


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_publishes_snapshot(self, engine: DashboardEngine):
        snapshot = await engine.run_cycle()

        assert snapshot.version == 1
        assert engine.store.current() is snapshot
        assert [s.id for s in snapshot.services] == ["grafana", "argocd", "docs"]
        assert snapshot.state_of("grafana") is HealthState.HEALTHY
        # Disabled entries keep a status but are not probed
        assert snapshot.health["argocd"].last_checked is None
        assert "docs" not in snapshot.health
        assert snapshot.stats.node_count == 1
        assert snapshot.registry_synced_at is not None
        assert snapshot.degraded == ()
        assert engine.cycles == 1

    @pytest.mark.asyncio
    async def test_discovered_service_probed_same_cycle(self, engine: DashboardEngine, fake_client: FakeClusterClient):
        fake_client.services = [annotated_service("podinfo", port=9898, health_path="/readyz")]
        snapshot = await engine.run_cycle()

        assert snapshot.service("podinfo") is not None
        assert snapshot.health["podinfo"].last_checked is not None
        assert snapshot.state_of("podinfo") is HealthState.UNHEALTHY

    @pytest.mark.asyncio
    async def test_removed_service_leaves_snapshot(self, engine: DashboardEngine, fake_client: FakeClusterClient):
        fake_client.services = [annotated_service("podinfo", health_path="/readyz")]
        await engine.run_cycle()
        fake_client.services = []
        snapshot = await engine.run_cycle()

        assert snapshot.service("podinfo") is None
        assert "podinfo" not in snapshot.health
        assert engine.prober.get("podinfo") is None

    @pytest.mark.asyncio
    async def test_registry_failure_is_degraded(self, engine: DashboardEngine, fake_client: FakeClusterClient):
        fake_client.services = [annotated_service("podinfo", health_path="/readyz")]
        await engine.run_cycle()
        fake_client.errors["services"] = ApiUnavailable("list services: connection refused")

        snapshot = await engine.run_cycle()

        assert snapshot.degraded == ("registry",)
        assert snapshot.service("podinfo") is not None
        assert snapshot.health["podinfo"].consecutive_failures == 2

    @pytest.mark.asyncio
    async def test_stats_failure_is_degraded(self, engine: DashboardEngine, fake_client: FakeClusterClient):
        first = await engine.run_cycle()
        fake_client.errors["namespaces"] = ApiUnavailable("list namespaces: HTTP 500")

        snapshot = await engine.run_cycle()

        assert snapshot.degraded == ("stats",)
        assert snapshot.stats is first.stats

    @pytest.mark.asyncio
    async def test_without_cluster(self, sample_config: DashboardConfig):
        engine = DashboardEngine(sample_config, transport=status_transport({GRAFANA_HOST: 200}))
        snapshot = await engine.run_cycle()
        assert snapshot.stats is None
        assert snapshot.state_of("grafana") is HealthState.HEALTHY

    @pytest.mark.asyncio
    async def test_events(self, engine: DashboardEngine, fake_client: FakeClusterClient):
        log = EventLog()
        engine.emitter.add_listener(log)
        fake_client.services = [annotated_service("podinfo", health_path="/readyz")]

        await engine.run_cycle()

        assert [e.subject for e in await log.get_recent(event_type=REGISTRY_CHANGED)] == ["registry"]
        changed = {e.subject for e in await log.get_recent(event_type=HEALTH_CHANGED)}
        assert changed == {"grafana", "podinfo"}

    @pytest.mark.asyncio
    async def test_health_events_follow_publish(self, engine: DashboardEngine):
        versions: list[int] = []

        class VersionListener:
            async def on_event(self, event) -> None:
                versions.append(engine.store.current().version)

        engine.emitter.add_listener(VersionListener(), event_types=[HEALTH_CHANGED])
        await engine.run_cycle()
        assert versions == [1]

    @pytest.mark.asyncio
    async def test_stats_crash_cancels_probing(self, sample_config: DashboardConfig, fake_client: FakeClusterClient):
        started = asyncio.Event()
        cancelled: list[str] = []

        async def hang(request: httpx.Request) -> httpx.Response:
            started.set()
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(request.url.host)
                raise
            return httpx.Response(200)

        async def crash():
            await started.wait()
            raise RuntimeError("boom")

        engine = DashboardEngine(sample_config, client=fake_client, transport=status_transport({GRAFANA_HOST: hang}))
        engine.aggregator.refresh = crash

        with pytest.raises(ExceptionGroup) as excinfo:
            await asyncio.wait_for(engine.run_cycle(), timeout=3.0)

        assert [str(e) for e in excinfo.value.exceptions] == ["boom"]
        assert cancelled == [GRAFANA_HOST]
        assert engine.prober.get("grafana").last_checked is None
        assert engine.store.current().version == 0
        assert engine.cycles == 0


class TestRealClientCycle:
    """A cycle over the real ClusterClient with a stubbed kubernetes API."""

    @pytest.mark.asyncio
    async def test_odd_quantities_do_not_abort_cycle(self, sample_config: DashboardConfig):
        core = MagicMock()
        custom = MagicMock()
        core.list_service_for_all_namespaces.return_value = SimpleNamespace(items=[])
        core.list_namespace.return_value = SimpleNamespace(items=[SimpleNamespace(metadata=SimpleNamespace(name="default"))])
        core.list_node.return_value = SimpleNamespace(
            items=[
                SimpleNamespace(
                    metadata=SimpleNamespace(name="wsl2"),
                    status=SimpleNamespace(
                        conditions=[SimpleNamespace(type="Ready", status="True")],
                        allocatable={"cpu": "4k", "memory": "16Gi"},
                        capacity=None,
                    ),
                )
            ]
        )
        containers = [
            SimpleNamespace(resources=SimpleNamespace(requests={"cpu": "2k", "memory": "1e3"})),
            SimpleNamespace(resources=SimpleNamespace(requests={"cpu": "not-a-quantity"})),
        ]
        core.list_pod_for_all_namespaces.return_value = SimpleNamespace(
            items=[
                SimpleNamespace(
                    metadata=SimpleNamespace(name="batch", namespace="default"),
                    spec=SimpleNamespace(containers=containers),
                    status=SimpleNamespace(phase="Running"),
                )
            ]
        )
        custom.list_cluster_custom_object.return_value = {"items": [{"usage": {"cpu": "1500m", "memory": "2Gi"}}]}

        engine = DashboardEngine(
            sample_config,
            client=ClusterClient(core, custom, timeout=5.0),
            transport=status_transport({GRAFANA_HOST: 200}),
        )
        snapshot = await engine.run_cycle()

        assert snapshot.version == 1
        assert snapshot.degraded == ()
        assert snapshot.stats.cpu_requested == 2000.0
        assert snapshot.stats.cpu_capacity == 4000.0
        assert snapshot.stats.memory_requested == 1000.0
        assert snapshot.stats.cpu_usage == 1.5


class TestEngineLifecycle:
    def test_cycle_deadline(self, engine: DashboardEngine):
        # api_timeout 10, cycle_ceiling 15
        assert engine.cycle_deadline == 26.0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine: DashboardEngine):
        engine.start()
        assert engine.running
        for _ in range(50):
            if engine.cycles:
                break
            await asyncio.sleep(0.02)
        await engine.stop()

        assert not engine.running
        assert engine.cycles >= 1
        assert engine.store.current().version >= 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine: DashboardEngine):
        engine.start()
        task = engine._task
        engine.start()
        assert engine._task is task
        await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_before_start(self, engine: DashboardEngine):
        await engine.stop()
        assert not engine.running
