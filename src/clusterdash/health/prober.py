"""Bounded-concurrency health prober. Sole owner of HealthStatus records."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime

import httpx

from clusterdash.config.models import DiscoverySettings, ProbeSettings, ServiceEntry
from clusterdash.events.emitter import HEALTH_CHANGED, REGISTRY_CHANGED, DashboardEvent, EventEmitter
from clusterdash.health.models import HealthState, HealthStatus, ProbeOutcome, ProbeResult
from clusterdash.health.probe import check_health, probe_url

logger = logging.getLogger(__name__)


class HealthProber:
    """Probes every enabled service that has a health path, once per cycle.

    Each probe gets its own timeout and the whole fan-out is bounded by
    ``cycle_ceiling``; probes still running at the ceiling are cancelled and
    counted as failures. State transitions are queued and only reach
    listeners through ``flush_changes``.
    """

    def __init__(
        self,
        probe: ProbeSettings,
        discovery: DiscoverySettings,
        emitter: EventEmitter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = probe
        self._discovery = discovery
        self._emitter = emitter
        self._transport = transport
        self._statuses: dict[str, HealthStatus] = {}
        self._changes: list[DashboardEvent] = []

    def get(self, service_id: str) -> HealthStatus | None:
        return self._statuses.get(service_id)

    def statuses(self) -> dict[str, HealthStatus]:
        return dict(self._statuses)

    def _track(self, service_id: str, health_path: str | None) -> None:
        if health_path:
            self._statuses.setdefault(service_id, HealthStatus(service_id=service_id))
        else:
            self._statuses.pop(service_id, None)

    def sync(self, entries: Iterable[ServiceEntry]) -> None:
        """Make the tracked set match *entries* exactly."""
        wanted = {e.id: e.health_path for e in entries}
        for key in list(self._statuses):
            if key not in wanted:
                del self._statuses[key]
        for key, health_path in wanted.items():
            self._track(key, health_path)

    async def on_event(self, event: DashboardEvent) -> None:
        """Follow registry changes so the probe set matches the registry."""
        if event.event_type != REGISTRY_CHANGED:
            return
        for key in event.data.get("removed", []):
            self._statuses.pop(key, None)
        for key, health_path in event.data.get("health_paths", {}).items():
            self._track(key, health_path)

    async def _probe_one(
        self,
        client: httpx.AsyncClient,
        semaphore: asyncio.Semaphore,
        entry: ServiceEntry,
    ) -> ProbeResult:
        timeout = self._settings.timeout
        url = probe_url(entry, self._discovery)
        async with semaphore:
            try:
                result = await asyncio.wait_for(check_health(client, url, timeout=timeout), timeout=timeout)
            except TimeoutError:
                result = ProbeResult(
                    outcome=ProbeOutcome.TIMEOUT,
                    latency_ms=timeout * 1000,
                    error=f"Timeout after {timeout}s",
                )
        logger.debug("Probe %s -> %s (%.1fms)", url, result.outcome.value, result.latency_ms)
        return result

    async def probe_all(self, entries: Iterable[ServiceEntry]) -> dict[str, HealthStatus]:
        """Run one probe cycle and return the updated statuses."""
        targets = [e for e in entries if e.enabled and e.health_path]
        for entry in targets:
            self._track(entry.id, entry.health_path)
        if not targets:
            return self.statuses()

        ceiling = self._settings.cycle_ceiling
        semaphore = asyncio.Semaphore(self._settings.concurrency)
        results: dict[str, ProbeResult] = {}

        async with httpx.AsyncClient(transport=self._transport, follow_redirects=True) as client:
            tasks = {
                asyncio.create_task(self._probe_one(client, semaphore, entry), name=f"probe-{entry.id}"): entry
                for entry in targets
            }
            try:
                done, pending = await asyncio.wait(tasks, timeout=ceiling)
            finally:
                # Also runs when probe_all itself is cancelled; nothing outlives the client
                stragglers = [t for t in tasks if not t.done()]
                for task in stragglers:
                    task.cancel()
                await asyncio.gather(*stragglers, return_exceptions=True)
            if pending:
                logger.warning("Abandoned %d probe(s) at the %.1fs cycle ceiling", len(pending), ceiling)

        for task, entry in tasks.items():
            if task in done and task.exception() is None:
                results[entry.id] = task.result()
            elif task in done:
                results[entry.id] = ProbeResult(outcome=ProbeOutcome.FAILURE, error=str(task.exception()))
            else:
                results[entry.id] = ProbeResult(
                    outcome=ProbeOutcome.TIMEOUT,
                    latency_ms=ceiling * 1000,
                    error=f"Abandoned at {ceiling}s cycle ceiling",
                )

        self._apply(results)
        return self.statuses()

    def _apply(self, results: dict[str, ProbeResult]) -> None:
        now = datetime.now(UTC)
        threshold = self._settings.failure_threshold
        for key, result in results.items():
            previous = self._statuses.get(key)
            if previous is None:
                # Removed from the registry while its probe was in flight
                continue
            current = previous.advance(result, now, threshold)
            self._statuses[key] = current
            if current.state is previous.state:
                continue
            if current.state is HealthState.UNREACHABLE:
                logger.warning(
                    "Service %s unreachable after %d consecutive failures",
                    current.service_id,
                    current.consecutive_failures,
                )
            self._changes.append(
                DashboardEvent(
                    event_type=HEALTH_CHANGED,
                    timestamp=now,
                    subject=current.service_id,
                    data={
                        "previous": previous.state.value,
                        "current": current.state.value,
                        "consecutive_failures": current.consecutive_failures,
                        "error": current.last_error,
                    },
                )
            )

    async def flush_changes(self) -> int:
        """Emit the health.changed events held back by probe_all.

        Kept out of probe_all so slow listeners never count against the
        cycle ceiling. Returns the number of events emitted.
        """
        changes, self._changes = self._changes, []
        if self._emitter is not None:
            await self._emitter.emit_all(changes)
        return len(changes)
