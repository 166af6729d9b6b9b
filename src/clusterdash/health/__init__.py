"""Health probing."""

from clusterdash.health.models import HealthState, HealthStatus, ProbeOutcome, ProbeResult
from clusterdash.health.prober import HealthProber

__all__ = ["HealthProber", "HealthState", "HealthStatus", "ProbeOutcome", "ProbeResult"]
