"""Pydantic models for clusterdash configuration."""

from __future__ import annotations

from enum import Enum
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Category(str, Enum):
    """Dashboard grouping for a service."""

    MONITORING = "Monitoring"
    GITOPS = "GitOps"
    SECURITY = "Security"
    APPLICATIONS = "Applications"
    DEVELOPMENT = "Development"
    INFRASTRUCTURE = "Infrastructure"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str) -> Category:
        """Case-insensitive lookup by value."""
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise ValueError(f"unknown category {value!r}")


def _http_url(value: str) -> str:
    parts = urlsplit(value)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise ValueError(f"{value!r} is not an absolute http(s) URL")
    return value


class ServiceTarget(BaseModel):
    """A cluster-internal Service reference."""

    model_config = ConfigDict(frozen=True)

    service: str
    namespace: str = "default"
    port: int = Field(default=80, gt=0, lt=65536)


class ServiceEntry(BaseModel):
    """A dashboard application, either statically configured or discovered."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    category: Category = Category.APPLICATIONS
    path: str | None = None
    url: str | None = None
    target: ServiceTarget | None = None
    health_path: str | None = None
    enabled: bool = True
    source: str = "static"

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: object) -> object:
        if isinstance(value, str):
            return Category.parse(value)
        return value

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        return None if value is None else _http_url(value)

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str | None) -> str | None:
        # A UI link: same-origin path or an absolute http(s) URL
        if not value:
            return None
        if value.startswith("/") and not value.startswith("//"):
            return value
        return _http_url(value)

    @field_validator("health_path")
    @classmethod
    def _leading_slash(cls, value: str | None) -> str | None:
        if value and not value.startswith("/"):
            return "/" + value
        return value or None

    @model_validator(mode="after")
    def _check_target(self) -> ServiceEntry:
        if (self.url is None) == (self.target is None):
            raise ValueError(
                f"service '{self.id}' must set exactly one of 'url' (external) or 'target' (in-cluster)"
            )
        return self

    @property
    def external(self) -> bool:
        return self.url is not None

    @property
    def display_name(self) -> str:
        return self.name or self.id


class ProbeSettings(BaseModel):
    """Timing and concurrency knobs for the orchestration loop and prober."""

    interval: float = Field(default=30.0, gt=0)
    concurrency: int = Field(default=10, gt=0)
    timeout: float = Field(default=3.0, gt=0)
    cycle_ceiling: float = Field(default=15.0, gt=0)
    failure_threshold: int = Field(default=3, gt=0)


class ClusterSettings(BaseModel):
    """How to reach the Kubernetes control plane."""

    kubeconfig: str | None = None
    context: str | None = None
    api_timeout: float = Field(default=10.0, gt=0)


class DiscoverySettings(BaseModel):
    """Annotation-driven service discovery."""

    enabled: bool = True
    annotation: str = "dashboard.k3s.io/enabled"
    prefix: str = "dashboard.k3s.io"
    service_url_template: str = "http://{service}.{namespace}.svc.cluster.local:{port}"


class DashboardIdentity(BaseModel):
    """Top-level identity metadata."""

    name: str = "K3s Cluster Dashboard"
    version: str = "0.1.0"


class WebhookConfig(BaseModel):
    """Configuration for a single webhook endpoint."""

    url: str
    events: list[str] = Field(default_factory=lambda: ["health.changed"])
    secret: str = ""  # HMAC signing key, supports ${ENV_VAR}


class DashboardConfig(BaseModel):
    """Root configuration model for .clusterdash.yaml."""

    dashboard: DashboardIdentity = Field(default_factory=DashboardIdentity)
    services: list[ServiceEntry] = Field(default_factory=list)
    probe: ProbeSettings = Field(default_factory=ProbeSettings)
    cluster: ClusterSettings = Field(default_factory=ClusterSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    webhooks: list[WebhookConfig] = Field(default_factory=list)
    history_db_path: str = "clusterdash_history.db"
    history_max_records: int = 0  # 0 = unlimited
    event_log_size: int = 100
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _unique_ids(self) -> DashboardConfig:
        seen: set[str] = set()
        for entry in self.services:
            if entry.id in seen:
                raise ValueError(f"duplicate service id '{entry.id}'")
            seen.add(entry.id)
        return self
