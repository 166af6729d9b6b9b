"""Integration tests: several engine cycles observed through the API."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from clusterdash.api.app import create_app
from clusterdash.config.models import DashboardConfig
from clusterdash.engine import DashboardEngine
from clusterdash.errors import ApiTimeout
from tests.conftest import FakeClusterClient, annotated_service, status_transport

GRAFANA_HOST = "grafana.monitoring.svc.cluster.local"
PODINFO_HOST = "podinfo.apps.svc.cluster.local"


@pytest.fixture()
def codes() -> dict[str, int]:
    return {GRAFANA_HOST: 200, PODINFO_HOST: 200}


@pytest.fixture()
def integration_config(sample_config_dict, tmp_path) -> DashboardConfig:
    return DashboardConfig(
        **{
            **sample_config_dict,
            "probe": {"failure_threshold": 2},
            "history_db_path": str(tmp_path / "history.db"),
        }
    )


@pytest.fixture()
def integration_engine(
    integration_config: DashboardConfig, fake_client: FakeClusterClient, codes
) -> DashboardEngine:
    fake_client.services = [annotated_service("podinfo", "apps", 9898, name="Podinfo", health_path="/readyz")]
    return DashboardEngine(integration_config, client=fake_client, transport=status_transport(codes))


@pytest.fixture()
def integration_client(integration_config: DashboardConfig, integration_engine: DashboardEngine):
    app = create_app(integration_config, engine=integration_engine, start_engine=False)
    with TestClient(app) as client:
        yield client


class TestDashboardLifecycle:
    def test_discovered_service_degrades_and_recovers(
        self, integration_engine: DashboardEngine, integration_client: TestClient, codes
    ):
        asyncio.run(integration_engine.run_cycle())
        podinfo = integration_client.get("/api/services/podinfo").json()
        assert podinfo["name"] == "Podinfo"
        assert podinfo["source"] == "discovered"
        assert podinfo["status"] == "healthy"

        codes[PODINFO_HOST] = 503
        asyncio.run(integration_engine.run_cycle())
        assert integration_client.get("/api/services/podinfo").json()["status"] == "unhealthy"
        asyncio.run(integration_engine.run_cycle())
        assert integration_client.get("/api/services/podinfo").json()["status"] == "unreachable"

        codes[PODINFO_HOST] = 200
        asyncio.run(integration_engine.run_cycle())
        data = integration_client.get("/api/services/podinfo").json()
        assert data["status"] == "healthy"
        assert data["health"]["consecutive_failures"] == 0

        history = integration_client.get("/api/history/podinfo").json()
        assert [h["current"] for h in history] == ["healthy", "unreachable", "unhealthy", "healthy"]

    def test_snapshot_survives_cluster_outage(
        self, integration_engine: DashboardEngine, integration_client: TestClient, fake_client: FakeClusterClient
    ):
        asyncio.run(integration_engine.run_cycle())
        before = integration_client.get("/api/status").json()

        for op in ("services", "nodes", "pods", "namespaces", "metrics"):
            fake_client.errors[op] = ApiTimeout(f"{op}: deadline exceeded")
        asyncio.run(integration_engine.run_cycle())
        after = integration_client.get("/api/status").json()

        assert after["version"] == before["version"] + 1
        assert sorted(after["degraded"]) == ["registry", "stats"]
        assert [s["id"] for s in after["services"]] == [s["id"] for s in before["services"]]
        assert after["stats"] == before["stats"]

    def test_removed_service_disappears(
        self, integration_engine: DashboardEngine, integration_client: TestClient, fake_client: FakeClusterClient
    ):
        asyncio.run(integration_engine.run_cycle())
        fake_client.services = []
        asyncio.run(integration_engine.run_cycle())

        assert integration_client.get("/api/services/podinfo").status_code == 404
        removed = integration_client.get("/api/events", params={"event_type": "registry.changed"}).json()
        assert removed[0]["data"]["removed"] == ["podinfo"]

    def test_liveness_reports_cycles(self, integration_engine: DashboardEngine, integration_client: TestClient):
        asyncio.run(integration_engine.run_cycle())
        asyncio.run(integration_engine.run_cycle())
        data = integration_client.get("/api/health").json()
        assert data["cycles"] == 2
        assert data["snapshot_version"] == 2
