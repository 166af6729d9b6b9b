"""Recent events and health transition history."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Query, Request

router = APIRouter(tags=["events"])


@router.get("/events")
async def get_recent_events(
    request: Request,
    limit: int = Query(20, ge=1, le=500),
    event_type: str | None = None,
    subject: str | None = None,
    since: datetime | None = None,
) -> list[dict[str, Any]]:
    """Recent registry and health events from the in-memory log, newest first."""
    if since is not None and since.tzinfo is None:
        since = since.replace(tzinfo=UTC)
    event_log = request.app.state.event_log
    events = await event_log.get_recent(limit=limit, event_type=event_type, subject=subject, since=since)
    return [e.to_dict() for e in events]


@router.get("/history")
async def get_recent_history(request: Request, limit: int = Query(20, ge=1, le=500)) -> list[dict[str, Any]]:
    history = request.app.state.history
    return [t.to_dict() for t in await history.get_recent(limit)]


@router.get("/history/{service_id}")
async def get_service_history(request: Request, service_id: str) -> list[dict[str, Any]]:
    history = request.app.state.history
    return [t.to_dict() for t in await history.get_history(service_id)]
