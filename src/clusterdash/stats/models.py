"""Cluster summary value."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ClusterStats:
    """Point-in-time cluster summary. CPU in cores, memory in bytes.

    The resource fields are None when the metrics backend is unavailable.
    """

    node_count: int
    ready_node_count: int
    pod_count: int
    namespace_count: int
    sampled_at: datetime
    cpu_requested: float | None = None
    cpu_capacity: float | None = None
    cpu_usage: float | None = None
    memory_requested: float | None = None
    memory_capacity: float | None = None
    memory_usage: float | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.ready_node_count <= self.node_count:
            raise ValueError(
                f"ready_node_count ({self.ready_node_count}) must be within 0..node_count ({self.node_count})"
            )

    @property
    def metrics_available(self) -> bool:
        return self.cpu_usage is not None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["sampled_at"] = self.sampled_at.isoformat()
        data["metrics_available"] = self.metrics_available
        return data
