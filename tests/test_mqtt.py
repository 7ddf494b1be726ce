"""Tests for the MQTT adapter."""

import asyncio
from types import SimpleNamespace

import pytest
import pytest_asyncio

from wmr_relay.adapters import MQTTClient, MQTTConnectionError, MQTTProtocolError
from wmr_relay.adapters.mqtt import MAX_QUEUED_MESSAGES
from wmr_relay.config import MQTTConfig

import paho.mqtt.client as mqtt


class FakeMqttClient:
    """Minimal fake paho-mqtt client speaking the v2 callback API."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        events: dict,
        *,
        rc_connect: int = 0,
        rc_disconnect: int = 0,
        publish_rc: int = mqtt.MQTT_ERR_SUCCESS,
        publish_error: Exception = None,
        **kwargs,
    ):
        self._loop = loop
        self._events = events
        self._rc_connect = rc_connect
        self._rc_disconnect = rc_disconnect
        self._publish_rc = publish_rc
        self._publish_error = publish_error
        self._events["client_kwargs"] = kwargs

        self.on_connect = None
        self.on_disconnect = None

    # paho interface -------------------------------------------------
    def enable_logger(self, logger):
        self._events.setdefault("logger_enabled", True)

    def max_queued_messages_set(self, limit):
        self._events["max_queued"] = limit

    def username_pw_set(self, username, password=None):
        self._events["auth"] = (username, password)

    def connect_async(self, host, port, keepalive):
        self._events["connect_args"] = (host, port, keepalive)
        self._schedule_connect()

    def _schedule_connect(self):
        if self.on_connect:
            self._loop.call_soon_threadsafe(
                self.on_connect, self, None, None, self._rc_connect, None
            )

    def loop_start(self):
        self._events["loop_start"] = self._events.get("loop_start", 0) + 1

    def loop_stop(self):
        self._events["loop_stop"] = self._events.get("loop_stop", 0) + 1

    def disconnect(self):
        self._events["disconnect_called"] = True
        if self.on_disconnect:
            self._loop.call_soon(
                self.on_disconnect, self, None, None, self._rc_disconnect, None
            )

    def publish(self, topic, payload, qos=0, retain=False):
        if self._publish_error is not None:
            raise self._publish_error
        self._events.setdefault("published", []).append((topic, payload, qos, retain))
        return SimpleNamespace(rc=self._publish_rc)

    def reconnect(self):
        self._events["reconnect_called"] = self._events.get("reconnect_called", 0) + 1
        self._rc_connect = 0
        self._schedule_connect()
        return mqtt.MQTT_ERR_SUCCESS


def _install(monkeypatch, **options):
    loop = asyncio.get_running_loop()
    events: dict = {}

    def factory(*args, **kwargs):
        return FakeMqttClient(loop, events, *args, **options, **kwargs)

    monkeypatch.setattr("wmr_relay.adapters.mqtt.mqtt.Client", factory)
    return events


def _config(**overrides):
    values = dict(
        broker_host="broker.local",
        broker_port=1883,
        username="station",
        password="secret",
    )
    values.update(overrides)
    return MQTTConfig(**values)


@pytest_asyncio.fixture
async def mqtt_client(monkeypatch):
    events = _install(monkeypatch)

    client = MQTTClient(_config())
    await client.connect()

    yield client, events

    await client.disconnect()


@pytest.mark.asyncio
async def test_connect_configures_client(mqtt_client):
    client, events = mqtt_client

    assert events["connect_args"] == ("broker.local", 1883, 60)
    assert events["auth"] == ("station", "secret")
    assert events["loop_start"] == 1
    assert events["max_queued"] == MAX_QUEUED_MESSAGES
    assert events["client_kwargs"]["client_id"] == "WMR100"
    assert (
        events["client_kwargs"]["callback_api_version"]
        == mqtt.CallbackAPIVersion.VERSION2
    )
    assert client.is_connected() is True


@pytest.mark.asyncio
async def test_publish_delegates_to_client(mqtt_client):
    client, events = mqtt_client

    client.publish("WMR100/pressure", b"1013.0", qos=1, retain=True)

    assert events["published"] == [("WMR100/pressure", b"1013.0", 1, True)]


@pytest.mark.asyncio
async def test_connect_rejected_raises(monkeypatch):
    events = _install(monkeypatch, rc_connect=5)
    client = MQTTClient(_config())

    with pytest.raises(MQTTConnectionError):
        await client.connect()

    assert events["loop_stop"] == 1
    assert client.network_loop_running is False


@pytest.mark.asyncio
async def test_reconnect_after_failed_connect(monkeypatch):
    events = _install(monkeypatch, rc_connect=5)
    client = MQTTClient(_config())
    with pytest.raises(MQTTConnectionError):
        await client.connect()

    await client.reconnect(timeout=1.0)

    assert events["reconnect_called"] == 1
    assert events["loop_start"] == 2
    assert client.is_connected() is True
    await client.disconnect()


@pytest.mark.asyncio
async def test_publish_without_connection_raises():
    client = MQTTClient(_config())

    with pytest.raises(MQTTConnectionError):
        client.publish("WMR100/pressure", b"1013.0")


@pytest.mark.asyncio
async def test_publish_connection_failure_raises(monkeypatch):
    _install(monkeypatch, publish_rc=mqtt.MQTT_ERR_NO_CONN)
    client = MQTTClient(_config())
    await client.connect()

    with pytest.raises(MQTTConnectionError):
        client.publish("WMR100/pressure", b"1013.0")

    await client.disconnect()


@pytest.mark.asyncio
async def test_publish_rejected_raises_protocol_error(monkeypatch):
    _install(monkeypatch, publish_error=ValueError("Invalid topic"))
    client = MQTTClient(_config())
    await client.connect()

    with pytest.raises(MQTTProtocolError):
        client.publish("WMR100/#", b"1013.0")

    await client.disconnect()


@pytest.mark.asyncio
async def test_disconnect_notifies_handlers(monkeypatch):
    _install(monkeypatch, rc_disconnect=7)
    client = MQTTClient(_config())
    seen = []
    client.register_disconnect_handler(seen.append)
    await client.connect()

    client._client.disconnect()
    for _ in range(10):
        if seen:
            break
        await asyncio.sleep(0.01)

    assert seen == [7]
    assert client.is_connected() is False
    await client.disconnect()


@pytest.mark.asyncio
async def test_publish_after_failed_connect_is_not_handed_to_paho(monkeypatch):
    events = _install(monkeypatch, rc_connect=5)
    client = MQTTClient(_config())
    with pytest.raises(MQTTConnectionError):
        await client.connect()

    with pytest.raises(MQTTConnectionError):
        client.publish("WMR100/pressure", b"1013.0")

    assert "published" not in events


@pytest.mark.asyncio
async def test_queue_full_is_a_connection_error(monkeypatch):
    _install(monkeypatch, publish_rc=mqtt.MQTT_ERR_QUEUE_SIZE)
    client = MQTTClient(_config())
    await client.connect()

    with pytest.raises(MQTTConnectionError):
        client.publish("WMR100/pressure", b"1013.0")

    await client.disconnect()
