"""Probe the local translation servers' health endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass

import aiohttp

from hotkeytranslator.config import Settings

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
ALIVE = "alive"


@dataclass
class HealthStatus:
    name: str
    url: str
    alive: bool
    detail: str = ""


async def probe_health(session: aiohttp.ClientSession, name: str, base_url: str) -> HealthStatus:
    """GET ``{base_url}/health`` and expect ``{"status": "alive"}``."""
    url = base_url.rstrip("/") + HEALTH_PATH
    try:
        async with session.get(url) as response:
            status = response.status
            body = await response.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("%s health check failed: %s", name, e)
        return HealthStatus(name, url, alive=False, detail=str(e) or type(e).__name__)

    if not 200 <= status < 300:
        return HealthStatus(name, url, alive=False, detail=f"HTTP {status}")

    try:
        data = json.loads(body)
    except ValueError:
        return HealthStatus(name, url, alive=False, detail="malformed response")

    reported = data.get("status") if isinstance(data, dict) else None
    message = data.get("message", "") if isinstance(data, dict) else ""
    return HealthStatus(
        name,
        url,
        alive=reported == ALIVE,
        detail=str(message or reported or ""),
    )


async def check_servers(settings: Settings, session: aiohttp.ClientSession) -> list[HealthStatus]:
    """Probe the gateway and, when enabled, the DeepL server concurrently."""
    probes = [
        probe_health(session, "gateway", f"http://{settings.gateway.host}:{settings.gateway.port}"),
    ]
    if settings.deepl.enabled:
        probes.append(
            probe_health(session, "DeepL", f"http://{settings.deepl.host}:{settings.deepl.port}")
        )
    return list(await asyncio.gather(*probes))
