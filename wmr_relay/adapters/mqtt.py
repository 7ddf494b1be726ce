"""paho-mqtt client wrapper used to publish station readings."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

import paho.mqtt.client as mqtt

from ..config import MQTTConfig

LOGGER = logging.getLogger(__name__)
PAHO_LOGGER = logging.getLogger(f"{__name__}.paho")

# paho keeps QoS>0 messages it cannot send yet; cap that backlog.
MAX_QUEUED_MESSAGES = 100

_CONNECTION_RCS = frozenset(
    {
        mqtt.MQTT_ERR_NO_CONN,
        mqtt.MQTT_ERR_CONN_LOST,
        mqtt.MQTT_ERR_CONN_REFUSED,
        mqtt.MQTT_ERR_QUEUE_SIZE,
    }
)


class MQTTConnectionError(RuntimeError):
    """Raised when the broker cannot be reached or the connection dropped."""


class MQTTProtocolError(RuntimeError):
    """Raised when the client or broker rejects a message."""


def _reason_value(reason_code: Any) -> int:
    """Normalise paho v1 integer codes and v2 ``ReasonCode`` objects."""

    value = getattr(reason_code, "value", reason_code)
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1


class MQTTClient:
    """Async-friendly wrapper over the threaded paho-mqtt client."""

    def __init__(
        self,
        config: MQTTConfig,
        *,
        client_id: Optional[str] = None,
        keepalive: int = 60,
    ) -> None:
        self.config = config
        self.client_id = client_id or config.client_id
        self.keepalive = keepalive

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected_event: Optional[asyncio.Event] = None
        self._disconnect_event: Optional[asyncio.Event] = None
        self._last_connect_rc: Optional[int] = None
        self._connected: bool = False
        self._loop_running: bool = False
        self._disconnect_handlers: List[Callable[[int], None]] = []
        self._connect_handlers: List[Callable[[int], None]] = []

    async def connect(self, timeout: float = 30.0) -> None:
        """Connect to the MQTT broker and wait for acknowledgement."""

        self._loop = asyncio.get_running_loop()
        self._connected_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()
        self._last_connect_rc = None

        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
        )
        client.enable_logger(PAHO_LOGGER)
        client.max_queued_messages_set(MAX_QUEUED_MESSAGES)

        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect

        self._client = client

        LOGGER.info(
            "Connecting to MQTT broker %s:%s",
            self.config.broker_host,
            self.config.broker_port,
        )

        client.connect_async(
            self.config.broker_host, self.config.broker_port, self.keepalive
        )
        client.loop_start()
        self._loop_running = True

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            if self._last_connect_rc is None or self._last_connect_rc != 0:
                raise MQTTConnectionError(
                    f"MQTT broker rejected connection (rc={self._last_connect_rc})"
                )
        except asyncio.TimeoutError as exc:
            client.loop_stop()
            self._loop_running = False
            raise MQTTConnectionError("Timed out connecting to MQTT broker") from exc
        except MQTTConnectionError:
            client.loop_stop()
            self._loop_running = False
            raise

    async def disconnect(self, timeout: float = 5.0) -> None:
        """Gracefully disconnect from the broker."""

        if not self._client:
            return

        assert self._disconnect_event is not None

        self._client.disconnect()

        try:
            if self._connected:
                await asyncio.wait_for(self._disconnect_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.debug("Timed out waiting for MQTT disconnect acknowledgement")
        finally:
            self._client.loop_stop()
            self._client = None
            self._loop_running = False
        self._connected = False

    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None:
        if not self._client or not self._connected:
            raise MQTTConnectionError("MQTT client not connected")

        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retain)
        except ValueError as exc:
            raise MQTTProtocolError(f"Publish to {topic!r} rejected: {exc}") from exc

        if info.rc == mqtt.MQTT_ERR_SUCCESS:
            return
        if info.rc in _CONNECTION_RCS:
            raise MQTTConnectionError(f"Publish failed with rc={info.rc}")
        raise MQTTProtocolError(f"Publish failed with rc={info.rc}")

    def register_disconnect_handler(self, handler: Callable[[int], None]) -> None:
        self._disconnect_handlers.append(handler)

    def register_connect_handler(self, handler: Callable[[int], None]) -> None:
        self._connect_handlers.append(handler)

    def is_connected(self) -> bool:
        return self._connected

    @property
    def network_loop_running(self) -> bool:
        """True while the paho network thread is retrying on its own."""
        return self._loop_running

    async def reconnect(self, timeout: float = 30.0) -> None:
        if not self._client:
            raise MQTTConnectionError("MQTT client not initialised")

        self._connected_event = asyncio.Event()
        self._last_connect_rc = None

        try:
            rc = await asyncio.to_thread(self._client.reconnect)
        except OSError as exc:
            raise MQTTConnectionError(f"MQTT reconnect failed: {exc}") from exc
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"MQTT reconnect failed with rc={rc}")

        # A failed connect() stops the network loop; restart it for the CONNACK.
        if not self._loop_running:
            self._client.loop_start()
            self._loop_running = True

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise MQTTConnectionError("Timed out reconnecting to MQTT broker") from exc

        if self._last_connect_rc is None or self._last_connect_rc != 0:
            raise MQTTConnectionError(
                f"MQTT broker rejected reconnection (rc={self._last_connect_rc})"
            )

    # ------------------------------------------------------------------
    # Internal callbacks bridging the threaded paho callbacks into asyncio
    # ------------------------------------------------------------------
    def _set_event(self, event: Optional[asyncio.Event]) -> None:
        if event is None:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            event.set()
            return
        loop.call_soon_threadsafe(event.set)

    def _on_connect(
        self, client: mqtt.Client, userdata, flags, reason_code, properties=None
    ) -> None:
        rc = _reason_value(reason_code)
        self._last_connect_rc = rc
        if rc == 0:
            LOGGER.info("Connected to MQTT broker")
            self._connected = True
            self._set_event(self._connected_event)
            if self._loop:
                for handler in self._connect_handlers:
                    self._loop.call_soon_threadsafe(handler, rc)
        else:
            LOGGER.error("MQTT connection failed with rc=%s", rc)
            self._connected = False
            self._set_event(self._connected_event)

    def _on_disconnect(
        self, client: mqtt.Client, userdata, flags, reason_code=None, properties=None
    ) -> None:
        rc = _reason_value(reason_code)
        LOGGER.info("Disconnected from MQTT broker (rc=%s)", rc)
        self._set_event(self._disconnect_event)
        self._connected = False
        if self._loop:
            for handler in self._disconnect_handlers:
                self._loop.call_soon_threadsafe(handler, rc)
