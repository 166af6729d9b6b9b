"""FastAPI application factory for clusterdash."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from clusterdash import __version__
from clusterdash.api.routes import events, services, status
from clusterdash.cluster.client import try_connect
from clusterdash.config.loader import load_config
from clusterdash.config.models import DashboardConfig
from clusterdash.engine import DashboardEngine
from clusterdash.events.emitter import HEALTH_CHANGED, EventEmitter
from clusterdash.events.log import EventLog
from clusterdash.events.webhook import WebhookListener
from clusterdash.history.memory import InMemoryHealthHistory
from clusterdash.history.recorder import HealthHistoryRecorder
from clusterdash.history.sqlite import SqliteHealthHistory

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent.parent / "static"


def create_app(
    config: DashboardConfig | None = None,
    engine: DashboardEngine | None = None,
    start_engine: bool = True,
) -> FastAPI:
    """Wire config, engine, events and history into a FastAPI app.

    A missing config file falls back to defaults; an invalid one raises
    ConfigInvalid before anything starts.
    """
    if config is None:
        try:
            config = load_config()
        except FileNotFoundError:
            logger.warning("No config file found, using defaults")
            config = DashboardConfig()

    # Event system
    emitter = engine.emitter if engine is not None else EventEmitter()
    event_log = EventLog(config.event_log_size)
    emitter.add_listener(event_log)
    webhooks = WebhookListener(config.webhooks, source=config.dashboard.name) if config.webhooks else None
    if webhooks is not None:
        emitter.add_listener(webhooks)

    # History backend: SQLite when a path is configured, in-memory otherwise
    if config.history_db_path:
        history = SqliteHealthHistory(config.history_db_path, config.history_max_records)
    else:
        history = InMemoryHealthHistory(config.history_max_records)
    emitter.add_listener(HealthHistoryRecorder(history), event_types=[HEALTH_CHANGED])

    if engine is None:
        engine = DashboardEngine(config, client=try_connect(config.cluster), emitter=emitter)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_engine:
            engine.start()
        yield
        await engine.stop()
        if webhooks is not None:
            await webhooks.drain()

    app = FastAPI(
        title=config.dashboard.name,
        version=__version__,
        description="Service discovery and health for a K3s cluster",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.engine = engine
    app.state.store = engine.store
    app.state.event_log = event_log
    app.state.history = history

    app.include_router(status.router, prefix="/api")
    app.include_router(services.router, prefix="/api")
    app.include_router(events.router, prefix="/api")

    # Serve the dashboard UI at root
    if STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="ui")

    return app
