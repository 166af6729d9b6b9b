"""Service registry."""

from clusterdash.registry.models import RegistryChange
from clusterdash.registry.registry import ServiceRegistry

__all__ = ["RegistryChange", "ServiceRegistry"]
