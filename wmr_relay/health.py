"""Relay health: per-component status with counters, served over HTTP."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from aiohttp import web

from . import __version__

LOGGER = logging.getLogger(__name__)


def _timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


@dataclass(slots=True)
class ComponentStatus:
    """Last reported state of one part of the relay (station, mqtt, ...)."""

    name: str
    healthy: bool
    detail: Optional[str] = None
    counters: Dict[str, int] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        entry: Dict[str, object] = {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": _timestamp(self.updated_at),
        }
        if self.counters:
            entry["counters"] = dict(self.counters)
        return entry


class HealthReporter:
    """Collects component statuses and the relay state for `/healthz`.

    Counters are merged across updates, so a component can report its
    throughput once per interval and keep it visible while degraded.
    """

    def __init__(self) -> None:
        self._components: Dict[str, ComponentStatus] = {}
        self._agent: Optional[ComponentStatus] = None
        self._started = time.monotonic()
        self._lock = asyncio.Lock()

    async def update(
        self,
        name: str,
        healthy: bool,
        detail: Optional[str] = None,
        *,
        counters: Optional[Mapping[str, int]] = None,
    ) -> None:
        async with self._lock:
            previous = self._components.get(name)
            merged = dict(previous.counters) if previous is not None else {}
            merged.update(counters or {})
            self._components[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail, counters=merged
            )

    async def set_agent_state(
        self, state: str, *, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._agent = ComponentStatus(
                name=state, healthy=healthy, detail=detail or state
            )

    async def get(self, name: str) -> Optional[ComponentStatus]:
        async with self._lock:
            return self._components.get(name)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            components = [status.as_dict() for status in self._components.values()]
            agent = self._agent

        healthy = all(entry["healthy"] for entry in components)
        if agent is not None and not agent.healthy:
            healthy = False

        payload: Dict[str, object] = {
            "status": "ok" if healthy else "degraded",
            "version": __version__,
            "uptimeSeconds": int(time.monotonic() - self._started),
            "components": components,
        }
        if agent is not None:
            payload["agentState"] = {
                "state": agent.name,
                "detail": agent.detail,
                "healthy": agent.healthy,
                "updatedAt": _timestamp(agent.updated_at),
            }
        return payload


class HealthServer:
    """Serves the reporter snapshot on ``GET /healthz`` (503 when degraded)."""

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._sites: List[web.TCPSite] = []

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        self._sites.append(site)
        LOGGER.info("Health endpoint on http://%s:%s/healthz", self._host, self._port)

    async def stop(self) -> None:
        for site in self._sites:
            with contextlib.suppress(RuntimeError):
                await site.stop()
        self._sites.clear()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        return web.json_response(
            snapshot, status=200 if snapshot["status"] == "ok" else 503
        )
