"""clusterdash: service discovery and health aggregation for a K3s dashboard."""

__version__ = "0.1.0"
