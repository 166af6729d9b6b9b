"""Shared fixtures for clusterdash tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml

from clusterdash.cluster.models import DiscoveredService, NodeInfo, PodInfo, ResourceMetrics, ServicePort
from clusterdash.config.models import DashboardConfig

SAMPLE_CONFIG: dict[str, Any] = {
    "dashboard": {"name": "Test Dashboard", "version": "0.1.0"},
    "services": [
        {
            "id": "grafana",
            "name": "Grafana",
            "description": "Metrics dashboards",
            "category": "Monitoring",
            "path": "/grafana",
            "target": {"service": "grafana", "namespace": "monitoring", "port": 3000},
            "health_path": "/api/health",
        },
        {
            "id": "argocd",
            "name": "Argo CD",
            "category": "GitOps",
            "target": {"service": "argocd-server", "namespace": "argocd", "port": 80},
            "health_path": "/healthz",
            "enabled": False,
        },
        {
            "id": "docs",
            "name": "K3s docs",
            "category": "Development",
            "url": "https://docs.k3s.io",
        },
    ],
    "probe": {
        "interval": 30,
        "concurrency": 10,
        "timeout": 3.0,
        "cycle_ceiling": 15.0,
        "failure_threshold": 3,
    },
    "history_db_path": "",
}


class FakeClusterClient:
    """Stands in for ClusterClient. Set ``errors[name]`` to make a call raise."""

    def __init__(self) -> None:
        self.services: list[DiscoveredService] = []
        self.nodes: list[NodeInfo] = [
            NodeInfo(name="wsl2", ready=True, cpu_capacity=8.0, memory_capacity=16 * 1024**3),
        ]
        self.pods: list[PodInfo] = [
            PodInfo(name="coredns", namespace="kube-system", phase="Running", cpu_requested=0.1,
                    memory_requested=70 * 1024**2),
            PodInfo(name="grafana", namespace="monitoring", phase="Running", cpu_requested=0.25,
                    memory_requested=256 * 1024**2),
            PodInfo(name="job-done", namespace="default", phase="Succeeded", cpu_requested=1.0,
                    memory_requested=1024**3),
        ]
        self.namespaces: list[str] = ["default", "kube-system", "monitoring"]
        self.metrics = ResourceMetrics(cpu_usage=1.5, memory_usage=4 * 1024**3, node_count=1)
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    def list_services_with_annotation(self, key: str) -> list[DiscoveredService]:
        self._enter("services")
        return list(self.services)

    def list_nodes(self) -> list[NodeInfo]:
        self._enter("nodes")
        return list(self.nodes)

    def list_pods(self) -> list[PodInfo]:
        self._enter("pods")
        return list(self.pods)

    def list_namespaces(self) -> list[str]:
        self._enter("namespaces")
        return list(self.namespaces)

    def get_resource_metrics(self) -> ResourceMetrics:
        self._enter("metrics")
        return self.metrics


def annotated_service(
    name: str,
    /,
    namespace: str = "default",
    port: int = 8080,
    **annotations: str,
) -> DiscoveredService:
    """A discovered Service; keyword args become dashboard.k3s.io/<key> annotations."""
    merged = {"dashboard.k3s.io/enabled": "true"}
    merged.update({f"dashboard.k3s.io/{k.replace('_', '-')}": v for k, v in annotations.items()})
    return DiscoveredService(
        name=name,
        namespace=namespace,
        annotations=merged,
        ports=(ServicePort(port=port, name="http"),),
    )


def status_transport(statuses: dict[str, int | Callable[[httpx.Request], Any]]) -> httpx.MockTransport:
    """Route probes by host: an int is a status code, a callable handles the request."""

    async def handler(request: httpx.Request) -> httpx.Response:
        action = statuses.get(request.url.host, 404)
        if callable(action):
            result = action(request)
            if hasattr(result, "__await__"):
                result = await result
            return result
        return httpx.Response(action)

    return httpx.MockTransport(handler)


@pytest.fixture()
def sample_config_dict() -> dict[str, Any]:
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def sample_config() -> DashboardConfig:
    return DashboardConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def fake_client() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .clusterdash.yaml and return the path."""
    path = tmp_path / ".clusterdash.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path
