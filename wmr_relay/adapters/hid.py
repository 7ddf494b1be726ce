"""HID transport for the weather station, built on the hidapi bindings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import hid

from .. import constants

LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when the station cannot be opened, read or written."""


class DeviceNotFoundError(TransportError):
    """Raised when no HID device matches the configured vendor/product id."""


@dataclass(slots=True, frozen=True)
class HIDDeviceInfo:
    vendor_id: int
    product_id: int
    path: str
    manufacturer: str = ""
    product: str = ""

    def __str__(self) -> str:
        label = " ".join(part for part in (self.manufacturer, self.product) if part)
        return (
            f"{self.vendor_id:04x}:{self.product_id:04x} {label or '(unnamed)'} "
            f"[{self.path}]"
        )


def _decode_path(path: Any) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return str(path)


def list_devices(vendor_id: int = 0, product_id: int = 0) -> List[HIDDeviceInfo]:
    """Enumerate attached HID devices, optionally filtered by id."""

    devices: List[HIDDeviceInfo] = []
    for entry in hid.enumerate(vendor_id, product_id):
        devices.append(
            HIDDeviceInfo(
                vendor_id=entry.get("vendor_id", 0),
                product_id=entry.get("product_id", 0),
                path=_decode_path(entry.get("path", "")),
                manufacturer=entry.get("manufacturer_string") or "",
                product=entry.get("product_string") or "",
            )
        )
    return devices


class HIDStationTransport:
    """Reads raw station packets from a USB HID device.

    One instance maps to one open/close cycle of the device handle; the
    supervisor builds a fresh transport for every reinitialisation.
    """

    def __init__(
        self,
        vendor_id: int = constants.DEFAULT_STATION_VENDOR,
        product_id: int = constants.DEFAULT_STATION_PRODUCT,
        *,
        packet_length: int = constants.PACKET_LENGTH,
    ) -> None:
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.packet_length = packet_length
        self._device: Optional[Any] = None

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def open(self) -> None:
        if self._device is not None:
            return

        device = hid.device()
        try:
            device.open(self.vendor_id, self.product_id)
        except (OSError, ValueError) as exc:
            attached = list_devices()
            LOGGER.error(
                "Weather station %04x:%04x not found. Attached devices: %s",
                self.vendor_id,
                self.product_id,
                ", ".join(str(item) for item in attached) or "none",
            )
            raise DeviceNotFoundError(
                f"Weather station {self.vendor_id:04x}:{self.product_id:04x} "
                f"not found: {exc}"
            ) from exc

        self._device = device
        LOGGER.info(
            "Opened weather station %04x:%04x", self.vendor_id, self.product_id
        )

    def close(self) -> None:
        device = self._device
        if device is None:
            return

        self._device = None
        try:
            device.close()
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not properly close weather station: %s", exc)
        else:
            LOGGER.info("Weather station closed")

    def read_packet(self, timeout_ms: int) -> Optional[bytes]:
        device = self._require_device()
        try:
            data = device.read(self.packet_length, timeout_ms)
        except (OSError, ValueError) as exc:
            raise TransportError(f"Station read error: {exc}") from exc

        if not data:
            return None
        return bytes(data)

    def write_command(self, data: bytes) -> None:
        device = self._require_device()
        try:
            written = device.write(bytes(data))
        except (OSError, ValueError) as exc:
            raise TransportError(f"Station write error: {exc}") from exc

        if written is not None and written < 0:
            raise TransportError(f"Station write error: {self._last_error(device)}")

    def _require_device(self) -> Any:
        if self._device is None:
            raise TransportError("Weather station is not open")
        return self._device

    @staticmethod
    def _last_error(device: Any) -> str:
        error = getattr(device, "error", None)
        if error is None:
            return "unknown error"
        try:
            return str(error())
        except (OSError, ValueError):
            return "unknown error"
