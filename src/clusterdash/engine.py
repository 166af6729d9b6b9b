"""Orchestration loop: reload -> (probe || stats) -> publish, on a fixed tick."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

import httpx

from clusterdash.config.models import DashboardConfig
from clusterdash.errors import ApiError
from clusterdash.events.emitter import REGISTRY_CHANGED, EventEmitter
from clusterdash.health.prober import HealthProber
from clusterdash.registry.registry import ServiceRegistry
from clusterdash.snapshot.models import Snapshot
from clusterdash.snapshot.store import SnapshotStore
from clusterdash.stats.aggregator import StatsAggregator

if TYPE_CHECKING:
    from clusterdash.cluster.client import ClusterClient

logger = logging.getLogger(__name__)


class DashboardEngine:
    """Runs one coordinated cycle per tick and is the only snapshot writer."""

    def __init__(
        self,
        config: DashboardConfig,
        client: ClusterClient | None = None,
        emitter: EventEmitter | None = None,
        store: SnapshotStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self.emitter = emitter or EventEmitter()
        self.registry = ServiceRegistry(config, client=client, emitter=self.emitter)
        self.prober = HealthProber(config.probe, config.discovery, emitter=self.emitter, transport=transport)
        self.emitter.add_listener(self.prober, event_types=[REGISTRY_CHANGED])
        self.prober.sync(self.registry.all())
        self.aggregator = StatsAggregator(client)
        self.store = store or SnapshotStore()
        self.cycles = 0
        self._task: asyncio.Task[None] | None = None
        self._stop: asyncio.Event | None = None

    @property
    def cycle_deadline(self) -> float:
        """Upper bound for one cycle: a reload, then the slower of probing and stats."""
        api = self._config.cluster.api_timeout
        return api + max(self._config.probe.cycle_ceiling, api) + 1.0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_cycle(self) -> Snapshot:
        """Run one full cycle and publish its snapshot."""
        degraded: list[str] = []
        try:
            await self.registry.reload()
        except ApiError as exc:
            logger.warning("Registry reload failed, keeping previous entries: %s", exc)
            degraded.append("registry")

        # Discovery first, then probing and stats side by side; publish after both.
        # A failure in either cancels the other and nothing is published.
        async with asyncio.TaskGroup() as tg:
            probing = tg.create_task(self.prober.probe_all(self.registry.all()))
            refreshing = tg.create_task(self.aggregator.refresh())
        health, stats = probing.result(), refreshing.result()
        if self.aggregator.last_error is not None:
            degraded.append("stats")

        snapshot = self.store.publish(
            self.registry.all(),
            health,
            stats,
            registry_synced_at=self.registry.synced_at,
            degraded=degraded,
        )
        self.cycles += 1
        await self.prober.flush_changes()
        return snapshot

    async def run_forever(self) -> None:
        if self._stop is None:
            self._stop = asyncio.Event()
        stop = self._stop
        interval = self._config.probe.interval
        while not stop.is_set():
            started = time.monotonic()
            try:
                await asyncio.wait_for(self.run_cycle(), timeout=self.cycle_deadline)
            except TimeoutError:
                logger.error("Cycle exceeded %.1fs deadline, skipping publish", self.cycle_deadline)
            except Exception:
                logger.exception("Cycle failed")
            remaining = max(0.0, interval - (time.monotonic() - started))
            try:
                await asyncio.wait_for(stop.wait(), timeout=remaining)
            except TimeoutError:
                pass

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.run_forever(), name="clusterdash-engine")
        logger.info("Engine started (interval %.0fs)", self._config.probe.interval)

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        if self._task is not None:
            # Do not wait out an in-flight cycle on shutdown
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        logger.info("Engine stopped after %d cycle(s)", self.cycles)
