"""Plain data returned by the cluster client."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NodeInfo:
    name: str
    ready: bool
    cpu_capacity: float = 0.0  # cores
    memory_capacity: float = 0.0  # bytes


@dataclass(frozen=True)
class ServicePort:
    port: int
    name: str | None = None
    protocol: str = "TCP"


@dataclass(frozen=True)
class DiscoveredService:
    """A Service object carrying the discovery annotation."""

    name: str
    namespace: str
    annotations: dict[str, str] = field(default_factory=dict)
    ports: tuple[ServicePort, ...] = ()


@dataclass(frozen=True)
class PodInfo:
    name: str
    namespace: str
    phase: str
    cpu_requested: float = 0.0
    memory_requested: float = 0.0

    @property
    def active(self) -> bool:
        """Terminal pods no longer hold their resource requests."""
        return self.phase not in ("Succeeded", "Failed")


@dataclass(frozen=True)
class ResourceMetrics:
    """Live usage reported by metrics-server, summed over nodes."""

    cpu_usage: float
    memory_usage: float
    node_count: int = 0
