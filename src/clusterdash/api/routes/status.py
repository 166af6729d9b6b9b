"""Snapshot and liveness endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["status"])


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """The current snapshot. Always answers, however stale."""
    return request.app.state.store.current().to_dict()


@router.get("/health")
async def liveness(request: Request) -> dict[str, Any]:
    """Process liveness, not cluster health."""
    engine = getattr(request.app.state, "engine", None)
    snapshot = request.app.state.store.current()
    return {
        "status": "ok",
        "engine_running": bool(engine and engine.running),
        "cycles": engine.cycles if engine else 0,
        "snapshot_version": snapshot.version,
        "generated_at": snapshot.generated_at.isoformat(),
    }
