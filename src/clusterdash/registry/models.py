"""Registry change tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from clusterdash.config.models import ServiceEntry


@dataclass(frozen=True)
class RegistryChange:
    """Ids added, removed, or updated by one reload."""

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    # id -> health path for every added or updated entry
    health_paths: dict[str, str | None] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.updated)

    @classmethod
    def between(cls, old: dict[str, ServiceEntry], new: dict[str, ServiceEntry]) -> RegistryChange:
        added = tuple(k for k in new if k not in old)
        removed = tuple(k for k in old if k not in new)
        updated = tuple(k for k in new if k in old and new[k] != old[k])
        return cls(
            added=added,
            removed=removed,
            updated=updated,
            health_paths={k: new[k].health_path for k in (*added, *updated)},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "updated": list(self.updated),
            "health_paths": dict(self.health_paths),
        }
