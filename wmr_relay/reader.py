"""Station read loop: packets in, readings out.

The reader owns its transport from ``start()`` until the loop exits. Each
completed command is decoded and its readings handed to the sink before the
next packet is read, so readings leave in the order the station sent them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from . import constants
from .adapters.hid import TransportError
from .core.protocols import StationTransport
from .sink import ReadingSink
from .station.commands import CommandDecoder
from .station.framing import FrameAssembler, FrameOverflowError

LOGGER = logging.getLogger(__name__)

# Extra time granted to an in-flight read before the loop is cancelled.
STOP_GRACE_SECONDS = 0.5


class StationReader:
    """Drives transport → assembler → decoder → sink on an asyncio task."""

    def __init__(
        self,
        transport: StationTransport,
        decoder: CommandDecoder,
        sink: ReadingSink,
        *,
        read_timeout_ms: int = 1000,
        initialization: Optional[bytes] = constants.STATION_INITIALIZATION,
        on_terminated: Optional[Callable[["StationReader"], None]] = None,
    ) -> None:
        self._transport = transport
        self._decoder = decoder
        self._sink = sink
        self._read_timeout_ms = read_timeout_ms
        self._initialization = initialization
        self._on_terminated = on_terminated
        self._assembler = FrameAssembler()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._pending_read: Optional[asyncio.Future] = None
        self._commands_received = 0
        self._invalid_commands = 0
        self._last_data_received: Optional[datetime] = None
        self.failure: Optional[BaseException] = None

    @property
    def commands_received(self) -> int:
        """Commands assembled since the last counter reset."""
        return self._commands_received

    @property
    def invalid_commands(self) -> int:
        return self._invalid_commands

    @property
    def last_data_received(self) -> Optional[datetime]:
        return self._last_data_received

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def done(self) -> bool:
        """True once a started loop has exited, for whatever reason."""
        return self._task is not None and self._task.done()

    def reset_command_count(self) -> None:
        self._commands_received = 0

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Station reader already started")
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="wmr-station-reader")

    async def stop(self) -> None:
        """Ask the loop to finish and wait until the transport is released."""

        task = self._task
        if task is None or task.done():
            return

        self._stop_event.set()
        timeout = self._read_timeout_ms / 1000.0 + STOP_GRACE_SECONDS
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Station reader did not stop within %.1fs; cancelling", timeout
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self) -> None:
        LOGGER.info("Starting data collection")
        try:
            self._transport.open()
            if self._initialization:
                self._transport.write_command(self._initialization)
            await self._read_loop()
        except (TransportError, FrameOverflowError) as exc:
            self.failure = exc
            LOGGER.error("Data collection stopped: %s", exc)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failure = exc
            LOGGER.exception("Data collection failed unexpectedly")
        finally:
            await self._await_pending_read()
            self._transport.close()
            LOGGER.info("Stopping data collection")
            if not self._stop_event.is_set() and self._on_terminated is not None:
                self._on_terminated(self)

    async def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            self._pending_read = asyncio.ensure_future(
                asyncio.to_thread(self._transport.read_packet, self._read_timeout_ms)
            )
            # Shielded so cancelling the loop leaves the thread read tracked.
            packet = await asyncio.shield(self._pending_read)
            self._pending_read = None
            if packet is None:
                continue

            self._last_data_received = datetime.now(timezone.utc)
            for buffer in self._assembler.feed(packet):
                self._commands_received += 1
                command = self._decoder.decode(buffer.command)
                if not command.valid:
                    self._invalid_commands += 1
                    LOGGER.debug("Dropped command %s (%s)", command, command.reason)
                    continue
                LOGGER.debug("Command %s", command)
                self._sink.submit_all(command.readings)

    async def _await_pending_read(self) -> None:
        """Wait for a thread read abandoned by cancellation to return."""

        pending = self._pending_read
        self._pending_read = None
        if pending is None or pending.done():
            return
        LOGGER.warning("Waiting for in-flight station read before closing")
        await asyncio.wait([pending])
        if not pending.cancelled() and pending.exception() is not None:
            LOGGER.debug("In-flight station read failed: %s", pending.exception())
