"""Cluster statistics."""

from clusterdash.stats.aggregator import StatsAggregator
from clusterdash.stats.models import ClusterStats

__all__ = ["ClusterStats", "StatsAggregator"]
