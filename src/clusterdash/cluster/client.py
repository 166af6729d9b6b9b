"""Read-only Kubernetes control-plane client.

Thin wrapper over the official ``kubernetes`` package. Every call carries a
deadline, none is retried, and every failure is mapped onto the
``ApiUnavailable`` / ``ApiForbidden`` / ``ApiTimeout`` taxonomy. Retry policy
belongs to the callers.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import (
    ConnectTimeoutError,
    HTTPError,
    MaxRetryError,
    NewConnectionError,
    ReadTimeoutError,
)

from clusterdash.cluster.models import DiscoveredService, NodeInfo, PodInfo, ResourceMetrics, ServicePort
from clusterdash.cluster.quantity import parse_cpu, parse_memory
from clusterdash.config.models import ClusterSettings
from clusterdash.errors import ApiForbidden, ApiTimeout, ApiUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Where K3s and WSL2 setups usually leave a kubeconfig, in lookup order.
KUBECONFIG_LOCATIONS = (
    "~/.kube/config",
    "/opt/k3s/kubeconfig",
    "/etc/rancher/k3s/k3s.yaml",
)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


def find_kubeconfig(explicit: str | None = None) -> Path | None:
    """Return the first kubeconfig that exists, or None."""
    candidates: list[str] = []
    if explicit:
        candidates.append(explicit)
    env_path = os.environ.get("KUBECONFIG_PATH")
    if env_path:
        candidates.append(env_path)
    candidates.extend(KUBECONFIG_LOCATIONS)
    for candidate in candidates:
        path = Path(candidate).expanduser()
        if path.is_file():
            return path
    return None


def build_api_client(settings: ClusterSettings) -> client.ApiClient:
    """Load in-cluster config, falling back to the first kubeconfig found."""
    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        kubeconfig = find_kubeconfig(settings.kubeconfig)
        if kubeconfig is None:
            raise ApiUnavailable(
                "No in-cluster config and no kubeconfig found "
                f"(looked at {settings.kubeconfig or '$KUBECONFIG_PATH'}, {', '.join(KUBECONFIG_LOCATIONS)})"
            ) from None
        try:
            config.load_kube_config(
                config_file=str(kubeconfig),
                context=settings.context,
                client_configuration=configuration,
            )
        except config.ConfigException as exc:
            raise ApiUnavailable(f"Could not load kubeconfig {kubeconfig}: {exc}") from exc
        logger.info("Loaded kubeconfig %s", kubeconfig)
    configuration.retries = 0
    return client.ApiClient(configuration)


def _quantity(parse: Callable[[Any], float], value: Any, what: str) -> float:
    """Parse one quantity; a malformed value counts as zero instead of failing the listing."""
    try:
        return parse(value)
    except (ValueError, ArithmeticError):
        logger.warning("Ignoring unparseable quantity %r on %s", value, what)
        return 0.0


def _translate(exc: Exception, what: str) -> Exception:
    """Map a kubernetes/urllib3 exception onto the ApiError taxonomy."""
    if isinstance(exc, ApiException):
        if exc.status in (401, 403):
            return ApiForbidden(f"{what}: forbidden ({exc.status} {exc.reason})")
        if exc.status in (408, 504):
            return ApiTimeout(f"{what}: timed out ({exc.status})")
        return ApiUnavailable(f"{what}: HTTP {exc.status} {exc.reason}")
    if isinstance(exc, MaxRetryError) and exc.reason is not None:
        exc = exc.reason
    # NewConnectionError subclasses ConnectTimeoutError but means "refused"
    if isinstance(exc, NewConnectionError):
        return ApiUnavailable(f"{what}: {exc}")
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError, TimeoutError)):
        return ApiTimeout(f"{what}: deadline exceeded")
    return ApiUnavailable(f"{what}: {exc}")


class ClusterClient:
    """Read-only queries against the control plane."""

    def __init__(
        self,
        core_api: Any,
        custom_api: Any,
        timeout: float = 10.0,
    ) -> None:
        self._core = core_api
        self._custom = custom_api
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: ClusterSettings) -> ClusterClient:
        api_client = build_api_client(settings)
        return cls(
            client.CoreV1Api(api_client),
            client.CustomObjectsApi(api_client),
            timeout=settings.api_timeout,
        )

    def _call(self, what: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, _request_timeout=self._timeout, **kwargs)
        except (ApiException, HTTPError, OSError) as exc:
            raise _translate(exc, what) from exc

    def list_nodes(self) -> list[NodeInfo]:
        result = self._call("list nodes", self._core.list_node)
        nodes: list[NodeInfo] = []
        for node in result.items:
            status = node.status
            conditions = (status.conditions if status else None) or []
            ready = any(cond.type == "Ready" and cond.status == "True" for cond in conditions)
            resources = (status.allocatable or status.capacity or {}) if status else {}
            name = node.metadata.name
            nodes.append(
                NodeInfo(
                    name=name,
                    ready=ready,
                    cpu_capacity=_quantity(parse_cpu, resources.get("cpu"), f"node {name}"),
                    memory_capacity=_quantity(parse_memory, resources.get("memory"), f"node {name}"),
                )
            )
        return nodes

    def list_services_with_annotation(self, key: str) -> list[DiscoveredService]:
        """Services (all namespaces) whose annotation *key* is "true"."""
        result = self._call("list services", self._core.list_service_for_all_namespaces)
        found: list[DiscoveredService] = []
        for svc in result.items:
            annotations = svc.metadata.annotations or {}
            if str(annotations.get(key, "")).strip().lower() != "true":
                continue
            ports = tuple(
                ServicePort(port=p.port, name=p.name, protocol=p.protocol or "TCP")
                for p in ((svc.spec.ports or []) if svc.spec else [])
            )
            found.append(
                DiscoveredService(
                    name=svc.metadata.name,
                    namespace=svc.metadata.namespace,
                    annotations=dict(annotations),
                    ports=ports,
                )
            )
        return found

    def list_namespaces(self) -> list[str]:
        result = self._call("list namespaces", self._core.list_namespace)
        return [ns.metadata.name for ns in result.items]

    def list_pods(self) -> list[PodInfo]:
        result = self._call("list pods", self._core.list_pod_for_all_namespaces)
        pods: list[PodInfo] = []
        for pod in result.items:
            where = f"pod {pod.metadata.namespace}/{pod.metadata.name}"
            cpu = 0.0
            memory = 0.0
            for container in (pod.spec.containers or []) if pod.spec else []:
                requests = (container.resources.requests or {}) if container.resources else {}
                cpu += _quantity(parse_cpu, requests.get("cpu"), where)
                memory += _quantity(parse_memory, requests.get("memory"), where)
            pods.append(
                PodInfo(
                    name=pod.metadata.name,
                    namespace=pod.metadata.namespace,
                    phase=(pod.status.phase if pod.status else None) or "Unknown",
                    cpu_requested=cpu,
                    memory_requested=memory,
                )
            )
        return pods

    def get_resource_metrics(self) -> ResourceMetrics:
        """Node usage from metrics-server. Raises ApiUnavailable when it is absent."""
        result = self._call(
            "node metrics",
            self._custom.list_cluster_custom_object,
            METRICS_GROUP,
            METRICS_VERSION,
            "nodes",
        )
        items = result.get("items", []) if isinstance(result, dict) else []
        cpu = 0.0
        memory = 0.0
        for item in items:
            usage = item.get("usage", {})
            where = "metrics for node " + str(item.get("metadata", {}).get("name", "?"))
            cpu += _quantity(parse_cpu, usage.get("cpu"), where)
            memory += _quantity(parse_memory, usage.get("memory"), where)
        return ResourceMetrics(cpu_usage=cpu, memory_usage=memory, node_count=len(items))


def try_connect(settings: ClusterSettings) -> ClusterClient | None:
    """Build a client, or None (static entries only) when no cluster is reachable."""
    try:
        return ClusterClient.from_settings(settings)
    except ApiUnavailable as exc:
        logger.warning("Cluster API not available, serving static entries only: %s", exc)
        return None
