"""Supervision of the station reader.

The supervisor keeps exactly one reader alive. It wakes on a fixed interval
to compare command throughput against a minimum, and immediately when the
reader exits on its own. A dead reader is replaced right away (with backoff
while replacements keep failing); a quiet station is only reinitialised after
several consecutive quiet intervals, so a short radio dropout does not cause a
restart storm.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from enum import Enum
from typing import Callable, Optional

from .config import SupervisorConfig
from .health import HealthReporter
from .reader import StationReader
from .sink import ReadingSink

LOGGER = logging.getLogger(__name__)

STATION_COMPONENT = "station"

ReaderFactory = Callable[[Callable[[StationReader], None]], StationReader]


class SupervisorState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    TERMINATED = "terminated"
    REINITIALIZING = "reinitializing"


class StationSupervisor:
    """Owns the reader lifecycle and restarts it when the station misbehaves.

    ``reader_factory`` receives the termination callback to install on the
    new reader and must build it around a freshly discovered transport.
    """

    def __init__(
        self,
        reader_factory: ReaderFactory,
        sink: ReadingSink,
        config: Optional[SupervisorConfig] = None,
        *,
        health: Optional[HealthReporter] = None,
    ) -> None:
        self._reader_factory = reader_factory
        self._sink = sink
        self._config = config or SupervisorConfig()
        self._health = health
        self._state = SupervisorState.STOPPED
        self._reader: Optional[StationReader] = None
        self._monitor_task: Optional[asyncio.Task[None]] = None
        self._terminated_event = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()
        self._quiet_streak = 0
        self._restart_failures = 0
        self._reinitializations = 0

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def reader(self) -> Optional[StationReader]:
        return self._reader

    @property
    def quiet_streak(self) -> int:
        return self._quiet_streak

    @property
    def reinitializations(self) -> int:
        return self._reinitializations

    async def start(self) -> None:
        """Start the reader and the monitoring task."""

        async with self._lifecycle_lock:
            if self._state is not SupervisorState.STOPPED:
                LOGGER.warning("Supervisor already running")
                return

            self._stop_event.clear()
            self._terminated_event.clear()
            self._quiet_streak = 0
            self._restart_failures = 0
            await self._launch_reader()
            self._monitor_task = asyncio.create_task(
                self._monitor(), name="wmr-station-supervisor"
            )

    async def stop(self) -> None:
        """Stop monitoring and release the station."""

        self._stop_event.set()
        task = self._monitor_task
        self._monitor_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        async with self._lifecycle_lock:
            await self._shutdown_reader()
            self._state = SupervisorState.STOPPED
        await self._report(False, "stopped")

    async def restart(self, reason: str = "restart requested") -> None:
        """Close the station, rediscover it and start a new reader."""

        async with self._lifecycle_lock:
            if self._stop_event.is_set():
                return
            LOGGER.warning("Reinitialising weather station: %s", reason)
            self._state = SupervisorState.REINITIALIZING
            await self._report(False, f"reinitialising ({reason})")
            await self._shutdown_reader()
            self._terminated_event.clear()
            self._reinitializations += 1
            await self._launch_reader()

    async def check(self) -> None:
        """Run one monitoring pass over the reader counters."""

        reader = self._reader
        if reader is None or reader.done:
            await self._handle_termination()
            return

        config = self._config
        received = reader.commands_received
        if received < config.min_commands_per_interval:
            self._quiet_streak += 1
            LOGGER.warning(
                "Weather station has gone quiet (%d commands, quiet streak %d/%d)",
                received,
                self._quiet_streak,
                config.quiet_restart_threshold,
            )
            await self._report(
                False,
                f"quiet ({received} commands in last interval)",
                counters={"quiet_streak": self._quiet_streak},
            )
            if self._quiet_streak >= config.quiet_restart_threshold:
                LOGGER.error(
                    "%d successive quiet intervals: restarting weather station",
                    self._quiet_streak,
                )
                self._quiet_streak = 0
                await self.restart("station quiet")
            return

        last = reader.last_data_received
        LOGGER.info(
            "Station last command received: %s, %d commands received, "
            "%d data updates sent",
            last.strftime("%H:%M:%S.%f")[:-4] if last else "never",
            received,
            self._sink.messages_sent,
        )
        await self._report(
            True,
            None,
            counters={
                "commands_received": received,
                "messages_sent": self._sink.messages_sent,
                "quiet_streak": 0,
                "reinitializations": self._reinitializations,
            },
        )
        self._quiet_streak = 0
        self._restart_failures = 0
        reader.reset_command_count()
        self._sink.reset_message_count()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _launch_reader(self) -> None:
        reader = self._reader_factory(self._on_reader_terminated)
        self._reader = reader
        reader.start()
        self._state = SupervisorState.RUNNING
        await self._report(
            True,
            "running",
            counters={"reinitializations": self._reinitializations},
        )

    async def _shutdown_reader(self) -> None:
        reader = self._reader
        self._reader = None
        if reader is not None:
            await reader.stop()

    def _on_reader_terminated(self, reader: StationReader) -> None:
        if reader is self._reader and not self._stop_event.is_set():
            self._terminated_event.set()

    async def _handle_termination(self) -> None:
        reader = self._reader
        failure = getattr(reader, "failure", None) if reader is not None else None
        self._state = SupervisorState.TERMINATED
        LOGGER.warning(
            "Station reader terminated (%s); reinitialising",
            failure or "no reader running",
        )
        await self._report(False, f"terminated ({failure or 'no reader'})")

        delay = self._restart_delay()
        self._restart_failures += 1
        if delay > 0:
            LOGGER.info("Waiting %.1fs before reopening the weather station", delay)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            if self._stop_event.is_set():
                return

        await self.restart("reader terminated")

    def _restart_delay(self) -> float:
        """Exponential backoff with jitter for back-to-back reader failures."""

        if self._restart_failures == 0:
            return 0.0

        config = self._config
        initial = max(0.0, config.restart_initial_seconds)
        max_delay = max(initial, config.restart_max_seconds)
        delay = min(initial * (2 ** (self._restart_failures - 1)), max_delay)
        jitter_ratio = max(0.0, min(1.0, config.restart_jitter_ratio))
        if delay > 0 and jitter_ratio > 0.0:
            jitter = delay * jitter_ratio
            delay = random.uniform(max(0.0, delay - jitter), delay + jitter)
        return delay

    async def _wait_for_tick(self) -> bool:
        """Sleep one monitoring interval; True if woken by reader termination."""

        try:
            await asyncio.wait_for(
                self._terminated_event.wait(),
                timeout=self._config.monitoring_interval_seconds,
            )
        except asyncio.TimeoutError:
            return False
        self._terminated_event.clear()
        return True

    async def _monitor(self) -> None:
        while not self._stop_event.is_set():
            terminated = await self._wait_for_tick()
            if self._stop_event.is_set():
                break

            try:
                if terminated:
                    await self._handle_termination()
                else:
                    await self.check()
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.exception("Station supervision pass failed")

    async def _report(
        self,
        healthy: bool,
        detail: Optional[str],
        *,
        counters: Optional[dict[str, int]] = None,
    ) -> None:
        if self._health is None:
            return
        await self._health.update(
            STATION_COMPONENT, healthy, detail, counters=counters
        )
