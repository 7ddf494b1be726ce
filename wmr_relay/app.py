"""Main application entry-point for wmr-relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable, Optional

from .adapters import HIDStationTransport, MQTTClient, MQTTConnectionError
from .config import RelayConfig, load_config
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .reader import StationReader
from .sink import ReadingSink
from .station.commands import CommandDecoder
from .supervisor import StationSupervisor

LOGGER = logging.getLogger(__name__)


class AgentState(str, Enum):
    COLD_START = "cold_start"
    AWAITING_MQTT = "awaiting_mqtt"
    ACTIVE = "active"
    DEGRADED = "degraded"
    DEVICE_DETACHED = "device_detached"
    STOPPING = "stopping"


class WMRRelayApp:
    """Coordinates application startup and shutdown.

    The relay owns one MQTT client (when a broker is configured), one reading
    sink, one command decoder shared by every reader the supervisor builds,
    and the supervisor itself. ``transport_factory`` can be injected for tests
    or alternative station connections.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        *,
        transport_factory: Optional[Callable[[], object]] = None,
    ) -> None:
        self._config = config or load_config()
        self._transport_factory = transport_factory or self._build_transport
        self._mqtt_client: Optional[MQTTClient] = None
        self._sink: Optional[ReadingSink] = None
        self._decoder = CommandDecoder(self._config.units)
        self._supervisor: Optional[StationSupervisor] = None
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._mqtt_monitor_task: Optional[asyncio.Task[None]] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._state = AgentState.COLD_START
        self._state_detail: Optional[str] = None
        self._stopping = False

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def supervisor(self) -> Optional[StationSupervisor]:
        return self._supervisor

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        """Start every service and wait for shutdown."""

        self._shutdown_event = asyncio.Event()

        LOGGER.info("wmr-relay starting with config: %s", self._config.path)
        await self._start_services()

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("wmr-relay received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[RelayConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
            log_frames=instance._config.logging.log_frames,
            max_bytes=instance._config.logging.max_bytes,
            backup_count=instance._config.logging.backup_count,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("wmr-relay received shutdown signal")

    # ------------------------------------------------------------------
    # Device hooks
    # ------------------------------------------------------------------
    async def handle_device_attached(self) -> None:
        """Start reading after the station has been plugged in."""

        if self._supervisor is None:
            return
        LOGGER.info("Weather station attached")
        await self._supervisor.start()
        await self._transition_state(AgentState.ACTIVE, detail="station attached")

    async def handle_device_detached(self) -> None:
        """Release the station after it has been unplugged."""

        if self._supervisor is None:
            return
        LOGGER.warning("Weather station detached")
        await self._supervisor.stop()
        await self._transition_state(
            AgentState.DEVICE_DETACHED, detail="station detached"
        )

    async def handle_device_failure(self, reason: str = "device failure") -> None:
        """Reinitialise the station after an externally detected fault."""

        if self._supervisor is None:
            return
        LOGGER.error("Weather station failure: %s", reason)
        await self._supervisor.restart(reason)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def _start_services(self) -> None:
        await self._transition_state(AgentState.COLD_START, detail="initialising")
        self._stopping = False

        mqtt_ready = True
        if self._config.mqtt.enabled:
            await self._transition_state(
                AgentState.AWAITING_MQTT, detail="connecting to mqtt broker"
            )
            self._mqtt_client = MQTTClient(self._config.mqtt)
            self._mqtt_client.register_connect_handler(self._on_mqtt_connect)
            self._mqtt_client.register_disconnect_handler(self._on_mqtt_disconnect)
            mqtt_ready = await self._connect_mqtt()
            self._start_mqtt_monitor()
        else:
            LOGGER.warning("No MQTT broker configured; readings will not be published")
            await self._health.update("mqtt", True, "disabled")

        reporting = self._config.reporting
        self._sink = ReadingSink(
            self._mqtt_client,
            root_topic=self._config.mqtt.root_topic,
            max_reporting_rate_seconds=reporting.max_reporting_rate_seconds,
            qos=self._config.mqtt.qos,
            retain=self._config.mqtt.retain,
        )
        self._supervisor = StationSupervisor(
            self._build_reader,
            self._sink,
            self._config.supervisor,
            health=self._health,
        )

        await self._start_health_server()
        await self._supervisor.start()

        if mqtt_ready:
            await self._transition_state(AgentState.ACTIVE, detail="relay running")
        else:
            await self._transition_state(AgentState.DEGRADED, detail="mqtt unavailable")

    async def _stop_services(self) -> None:
        await self._transition_state(AgentState.STOPPING, detail="shutdown requested")
        self._stopping = True

        await self._stop_mqtt_monitor()

        if self._supervisor is not None:
            await self._supervisor.stop()
            self._supervisor = None

        await self._stop_health_server()

        if self._mqtt_client is not None:
            await self._mqtt_client.disconnect()
            self._mqtt_client = None
            await self._health.update("mqtt", False, "shutdown")

        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def _build_transport(self) -> HIDStationTransport:
        station = self._config.station
        return HIDStationTransport(station.vendor_id, station.product_id)

    def _build_reader(
        self, on_terminated: Callable[[StationReader], None]
    ) -> StationReader:
        assert self._sink is not None
        return StationReader(
            self._transport_factory(),
            self._decoder,
            self._sink,
            read_timeout_ms=self._config.station.read_timeout_ms,
            on_terminated=on_terminated,
        )

    async def _transition_state(
        self, state: AgentState, *, detail: Optional[str] = None
    ) -> None:
        if state == self._state and detail == self._state_detail:
            return

        previous = self._state
        self._state = state
        self._state_detail = detail

        message_detail = detail or state.value
        LOGGER.info(
            "Relay state transition %s -> %s (%s)",
            previous.value,
            state.value,
            message_detail,
        )
        await self._health.set_agent_state(
            state.value,
            healthy=state == AgentState.ACTIVE,
            detail=message_detail,
        )

    # ------------------------------------------------------------------
    # MQTT
    # ------------------------------------------------------------------
    async def _connect_mqtt(self) -> bool:
        assert self._mqtt_client is not None
        try:
            await self._mqtt_client.connect()
        except MQTTConnectionError as exc:
            await self._health.update("mqtt", False, str(exc))
            LOGGER.error("MQTT connection failed: %s", exc)
            return False

        await self._health.update("mqtt", True, None)
        return True

    def _start_mqtt_monitor(self) -> None:
        if self._mqtt_monitor_task is not None and not self._mqtt_monitor_task.done():
            return
        self._mqtt_monitor_task = asyncio.create_task(
            self._monitor_mqtt(), name="wmr-mqtt-monitor"
        )

    async def _stop_mqtt_monitor(self) -> None:
        if self._mqtt_monitor_task is None:
            return
        self._mqtt_monitor_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._mqtt_monitor_task
        self._mqtt_monitor_task = None

    async def _monitor_mqtt(self) -> None:
        """Retry an unreachable broker once per supervision interval."""

        interval = self._config.supervisor.monitoring_interval_seconds
        while not self._stopping:
            await asyncio.sleep(interval)
            client = self._mqtt_client
            if client is None or client.is_connected():
                continue
            if client.network_loop_running:
                LOGGER.debug("MQTT network loop is reconnecting to the broker")
                continue

            LOGGER.info("Retrying MQTT broker connection")
            try:
                await client.reconnect()
            except MQTTConnectionError as exc:
                LOGGER.warning("MQTT reconnect failed: %s", exc)
                await self._health.update("mqtt", False, str(exc))

    def _on_mqtt_connect(self, rc: int) -> None:
        if self._stopping:
            return
        asyncio.create_task(self._health.update("mqtt", True, None))
        asyncio.create_task(
            self._transition_state(AgentState.ACTIVE, detail="mqtt connected")
        )

    def _on_mqtt_disconnect(self, rc: int) -> None:
        if self._stopping:
            return
        asyncio.create_task(
            self._health.update("mqtt", False, f"disconnected (rc={rc})")
        )
        asyncio.create_task(
            self._transition_state(AgentState.DEGRADED, detail="mqtt disconnected")
        )

    # ------------------------------------------------------------------
    # Health endpoint
    # ------------------------------------------------------------------
    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self._health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
            await self._health.update("health-endpoint", False, str(exc))
        else:
            self._health_server = server
            await self._health.update("health-endpoint", True, None)

    async def _stop_health_server(self) -> None:
        if self._health_server is None:
            return
        await self._health_server.stop()
        self._health_server = None
        await self._health.update("health-endpoint", False, "shutdown")
