"""Annotation-driven discovery and the static/discovered merge."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from clusterdash.cluster.models import DiscoveredService
from clusterdash.config.models import DiscoverySettings, ServiceEntry, ServiceTarget

logger = logging.getLogger(__name__)

# Fields a discovered Service may override on a static entry with the same id.
DISPLAY_FIELDS = ("name", "description", "category", "path", "health_path")

# annotation suffix -> ServiceEntry field
_ANNOTATION_FIELDS = {
    "name": "name",
    "description": "description",
    "category": "category",
    "path": "path",
    "url": "url",
    "health-path": "health_path",
}


def _pick_port(svc: DiscoveredService, wanted: str | None) -> int | None:
    if wanted:
        if wanted.isdigit():
            return int(wanted)
        for port in svc.ports:
            if port.name == wanted:
                return port.port
        return None
    return svc.ports[0].port if svc.ports else None


def entry_from_service(svc: DiscoveredService, settings: DiscoverySettings) -> ServiceEntry | None:
    """Build a ServiceEntry from an annotated Service, or None if the annotations are unusable."""
    prefix = settings.prefix.rstrip("/") + "/"
    annotations = svc.annotations

    kwargs: dict[str, object] = {
        "id": annotations.get(prefix + "id") or svc.name,
        "source": "discovered",
    }
    for suffix, field_name in _ANNOTATION_FIELDS.items():
        value = annotations.get(prefix + suffix)
        if value:
            kwargs[field_name] = value

    if "url" not in kwargs:
        port = _pick_port(svc, annotations.get(prefix + "port"))
        if port is None:
            logger.warning("Skipping %s/%s: no usable port", svc.namespace, svc.name)
            return None
        kwargs["target"] = ServiceTarget(service=svc.name, namespace=svc.namespace, port=port)

    try:
        return ServiceEntry(**kwargs)
    except ValidationError as exc:
        logger.warning("Skipping %s/%s: invalid annotations: %s", svc.namespace, svc.name, exc)
        return None


def _override(static: ServiceEntry, found: ServiceEntry) -> ServiceEntry:
    update = {f: getattr(found, f) for f in DISPLAY_FIELDS if f in found.model_fields_set}
    # enabled and the target/url of a static entry are never touched
    return static.model_copy(update=update) if update else static


def merge_entries(
    static: Iterable[ServiceEntry],
    discovered: Iterable[ServiceEntry],
) -> dict[str, ServiceEntry]:
    """Merge two ordered sources. Static entries are the baseline."""
    merged: dict[str, ServiceEntry] = {entry.id: entry for entry in static}
    static_ids = set(merged)
    seen_discovered: set[str] = set()
    for entry in discovered:
        if entry.id in seen_discovered:
            logger.warning("Duplicate discovered service id %r, keeping the first", entry.id)
            continue
        seen_discovered.add(entry.id)
        if entry.id in static_ids:
            merged[entry.id] = _override(merged[entry.id], entry)
        else:
            merged[entry.id] = entry
    return merged
