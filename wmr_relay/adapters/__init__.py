"""Adapter modules for external integrations."""

from .hid import (
    DeviceNotFoundError,
    HIDDeviceInfo,
    HIDStationTransport,
    TransportError,
    list_devices,
)
from .mqtt import MQTTClient, MQTTConnectionError, MQTTProtocolError

__all__ = [
    "DeviceNotFoundError",
    "HIDDeviceInfo",
    "HIDStationTransport",
    "MQTTClient",
    "MQTTConnectionError",
    "MQTTProtocolError",
    "TransportError",
    "list_devices",
]
