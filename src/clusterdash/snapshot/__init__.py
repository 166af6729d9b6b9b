"""Atomically published status snapshots."""

from clusterdash.snapshot.models import Snapshot
from clusterdash.snapshot.store import SnapshotStore

__all__ = ["Snapshot", "SnapshotStore"]
