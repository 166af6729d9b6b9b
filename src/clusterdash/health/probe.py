"""Single health probe over httpx."""

from __future__ import annotations

import time

import httpx

from clusterdash.config.models import DiscoverySettings, ServiceEntry
from clusterdash.errors import ProbeFailure, ProbeTimeout
from clusterdash.health.models import ProbeOutcome, ProbeResult


def probe_url(entry: ServiceEntry, settings: DiscoverySettings) -> str:
    """Absolute health URL for an entry that has a health path."""
    target = entry.target
    if target is None:
        base = entry.url or ""
    else:
        base = settings.service_url_template.format(
            service=target.service,
            namespace=target.namespace,
            port=target.port,
        )
    return base.rstrip("/") + (entry.health_path or "")


async def _request(client: httpx.AsyncClient, url: str, timeout: float) -> int:
    try:
        resp = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise ProbeTimeout(f"Timeout after {timeout}s") from exc
    except httpx.ConnectError as exc:
        raise ProbeFailure(f"Connection refused: {exc}") from exc
    except httpx.HTTPError as exc:
        raise ProbeFailure(str(exc) or exc.__class__.__name__) from exc
    if not 200 <= resp.status_code < 300:
        raise ProbeFailure(f"HTTP {resp.status_code}", status_code=resp.status_code)
    return resp.status_code


async def check_health(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 3.0,
) -> ProbeResult:
    """Probe *url* once. Never raises; every outcome becomes a ProbeResult."""
    start = time.monotonic()
    try:
        status_code = await _request(client, url, timeout)
    except ProbeTimeout as exc:
        return ProbeResult(
            outcome=ProbeOutcome.TIMEOUT,
            latency_ms=round((time.monotonic() - start) * 1000, 1),
            error=str(exc),
        )
    except ProbeFailure as exc:
        return ProbeResult(
            outcome=ProbeOutcome.FAILURE,
            status_code=exc.status_code,
            latency_ms=round((time.monotonic() - start) * 1000, 1),
            error=str(exc),
        )
    return ProbeResult(
        outcome=ProbeOutcome.SUCCESS,
        status_code=status_code,
        latency_ms=round((time.monotonic() - start) * 1000, 1),
    )
