"""Outbound webhooks for dashboard events."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from clusterdash import __version__
from clusterdash.events.emitter import DashboardEvent

if TYPE_CHECKING:
    from clusterdash.config.models import WebhookConfig

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Clusterdash-Signature"
EVENT_HEADER = "X-Clusterdash-Event"


def build_payload(event: DashboardEvent, source: str) -> bytes:
    """The JSON body posted for *event*, tagged with the dashboard it came from."""
    body: dict[str, Any] = {"dashboard": source, **event.to_dict()}
    return json.dumps(body, sort_keys=True).encode()


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookListener:
    """Posts subscribed events to each configured URL. Implements EventListener protocol.

    Deliveries run as background tasks so a slow receiver never holds up a
    cycle; ``drain`` waits for whatever is still in flight.
    """

    def __init__(self, webhooks: list[WebhookConfig], source: str = "clusterdash", timeout: float = 10.0) -> None:
        self._webhooks = webhooks
        self._source = source
        self._timeout = timeout
        self._pending: set[asyncio.Task[None]] = set()

    @staticmethod
    def _wants(wh: WebhookConfig, event: DashboardEvent) -> bool:
        return "*" in wh.events or event.event_type in wh.events

    async def on_event(self, event: DashboardEvent) -> None:
        targets = [wh for wh in self._webhooks if self._wants(wh, event)]
        if not targets:
            return
        body = build_payload(event, self._source)
        for wh in targets:
            task = asyncio.create_task(self._deliver(wh, event, body), name=f"webhook-{wh.url}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, wh: WebhookConfig, event: DashboardEvent, body: bytes) -> None:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"clusterdash/{__version__}",
            EVENT_HEADER: event.event_type,
        }
        if wh.secret:
            headers[SIGNATURE_HEADER] = sign(wh.secret, body)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(wh.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Webhook %s unreachable for %s on %s: %s", wh.url, event.event_type, event.subject, exc)
            return
        except Exception:
            logger.exception("Webhook delivery to %s failed for %s", wh.url, event.event_type)
            return
        if resp.status_code >= 400:
            logger.warning("Webhook %s answered %d for %s", wh.url, resp.status_code, event.event_type)
