"""clusterdash configuration system."""

from clusterdash.config.loader import find_config_file, load_config, parse_config
from clusterdash.config.models import (
    Category,
    ClusterSettings,
    DashboardConfig,
    DiscoverySettings,
    ProbeSettings,
    ServiceEntry,
    ServiceTarget,
    WebhookConfig,
)

__all__ = [
    "Category",
    "ClusterSettings",
    "DashboardConfig",
    "DiscoverySettings",
    "ProbeSettings",
    "ServiceEntry",
    "ServiceTarget",
    "WebhookConfig",
    "find_config_file",
    "load_config",
    "parse_config",
]
