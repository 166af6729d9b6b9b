"""Read-only service listing backed by the snapshot."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

router = APIRouter(tags=["services"])


@router.get("/services")
async def list_services(request: Request, category: str | None = None) -> list[dict[str, Any]]:
    snapshot = request.app.state.store.current()
    return [
        snapshot.service_to_dict(entry)
        for entry in snapshot.services
        if category is None or entry.category.value.lower() == category.lower()
    ]


@router.get("/services/{service_id}")
async def get_service(request: Request, service_id: str) -> dict[str, Any]:
    snapshot = request.app.state.store.current()
    entry = snapshot.service(service_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Unknown service: {service_id}")
    return snapshot.service_to_dict(entry)
