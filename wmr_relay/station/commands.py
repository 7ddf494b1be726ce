"""Validation and decoding of station commands.

A command is ``[status, sensor id, data..., checksum low, checksum high]``.
The checksum is the 16-bit little-endian sum of every byte before it. Each
sensor type has a fixed command length; anything else is treated as transport
corruption and dropped.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .. import constants
from ..core.models import DecodedCommand, Reading, SensorType
from . import metrics
from .units import UnitConfiguration

LOGGER = logging.getLogger(__name__)

_MIN_COMMAND_LENGTH = 4  # status, sensor id, 2-byte checksum


def compute_checksum(data: bytes) -> int:
    return sum(data) & 0xFFFF


def _twelve_bit(low: int, high: int) -> int:
    return ((high & 0x0F) << 8) | low


def _sixteen_bit(low: int, high: int) -> int:
    return (high << 8) | low


def _signed_tenths(data: bytes) -> float:
    """Temperature in bytes 3-4: 12-bit magnitude in tenths, sign in bit 7."""

    value = _twelve_bit(data[3], data[4]) / 10.0
    if data[4] & 0x80:
        value = -value
    return value


def _channel_name(base: str, channel: int) -> str:
    return f"{base}/{channel}"


class CommandDecoder:
    """Validates command buffers and unpacks them into readings.

    The decoder carries the most recent average wind speed (m/s) seen in a
    wind command so temperature commands can report wind chill. Keep one
    decoder per station so the value survives reader restarts.
    """

    def __init__(
        self,
        units: Optional[UnitConfiguration] = None,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.units = units or UnitConfiguration()
        self.last_wind_speed = 0.0
        self._clock = clock or time.time
        self._decoders: Dict[SensorType, Callable[[bytes], List[Reading]]] = {
            SensorType.PRESSURE: self._decode_pressure,
            SensorType.RAIN: self._decode_rain,
            SensorType.TEMPERATURE: self._decode_temperature,
            SensorType.WATER_TEMPERATURE: self._decode_water_temperature,
            SensorType.TIMESTAMP: self._decode_timestamp,
            SensorType.UV: self._decode_uv,
            SensorType.WIND: self._decode_wind,
        }
        missing = set(SensorType) - set(self._decoders)
        if missing:
            raise RuntimeError(f"No decoder for sensor types: {sorted(missing)}")

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def validate(self, data: bytes) -> DecodedCommand:
        """Check length, checksum and sensor-specific size of a command."""

        data = bytes(data)
        received_at = self._now()

        if not data:
            return DecodedCommand(
                data=data, sensor=None, valid=True, received_at=received_at
            )

        if len(data) < _MIN_COMMAND_LENGTH:
            LOGGER.warning("Command too short: %d bytes [%s]", len(data), data.hex(" "))
            return DecodedCommand(
                data=data,
                sensor=None,
                valid=False,
                reason=f"too short ({len(data)} bytes)",
                received_at=received_at,
            )

        calculated = compute_checksum(data[:-2])
        frame_value = data[-2] + (data[-1] << 8)
        if calculated != frame_value:
            LOGGER.warning(
                "Checksum error - calculated: %d, frame value: %d, sensor %02x",
                calculated,
                frame_value,
                data[1],
            )
            return DecodedCommand(
                data=data,
                sensor=None,
                valid=False,
                reason=f"checksum mismatch ({calculated} != {frame_value})",
                received_at=received_at,
            )

        try:
            sensor = SensorType(data[1])
        except ValueError:
            LOGGER.warning("Unexpected sensor %02x", data[1])
            return DecodedCommand(
                data=data,
                sensor=None,
                valid=False,
                reason=f"unknown sensor {data[1]:02x}",
                received_at=received_at,
            )

        if len(data) != sensor.command_length:
            LOGGER.warning(
                "Unexpected command length: %d for sensor %02x (expected %d)",
                len(data),
                data[1],
                sensor.command_length,
            )
            return DecodedCommand(
                data=data,
                sensor=sensor,
                valid=False,
                reason=f"length {len(data)} != {sensor.command_length}",
                received_at=received_at,
            )

        return DecodedCommand(
            data=data, sensor=sensor, valid=True, received_at=received_at
        )

    def decode(self, data: bytes) -> DecodedCommand:
        """Validate a command and, when valid, attach its readings."""

        command = self.validate(data)
        if not command.valid or command.sensor is None:
            return command

        readings = self._decoders[command.sensor](command.data)
        return DecodedCommand(
            data=command.data,
            sensor=command.sensor,
            valid=True,
            readings=tuple(readings),
            received_at=command.received_at,
        )

    # ------------------------------------------------------------------
    # Per-sensor decoders
    # ------------------------------------------------------------------
    def _decode_pressure(self, data: bytes) -> List[Reading]:
        hpa = float(_twelve_bit(data[2], data[3]))
        return [Reading(constants.ITEM_PRESSURE, self.units.pressure(hpa))]

    def _decode_rain(self, data: bytes) -> List[Reading]:
        rate = _sixteen_bit(data[2], data[3]) / 100.0
        last_hour = _sixteen_bit(data[4], data[5]) / 100.0
        last_day = _sixteen_bit(data[6], data[7]) / 100.0
        return [
            Reading(constants.ITEM_RAIN_RATE, self.units.rain(rate)),
            Reading(constants.ITEM_RAIN_LASTHOUR, self.units.rain(last_hour)),
            Reading(constants.ITEM_RAIN_LAST24HOURS, self.units.rain(last_day)),
            Reading(constants.ITEM_RAIN_BATTERY, metrics.is_battery_ok(data[0])),
        ]

    def _decode_temperature(self, data: bytes) -> List[Reading]:
        channel = data[2] & 0x0F
        temp_c = _signed_tenths(data)
        humidity = data[5]

        heat_index = metrics.heat_index(temp_c, humidity)
        wind_chill = metrics.wind_chill(temp_c, self.last_wind_speed)
        dew_point = metrics.dew_point(temp_c, humidity)

        units = self.units
        return [
            Reading(_channel_name(constants.ITEM_HUMIDITY, channel), humidity),
            Reading(
                _channel_name(constants.ITEM_HEATINDEX, channel),
                units.temperature(heat_index),
            ),
            Reading(
                _channel_name(constants.ITEM_WINDCHILL, channel),
                units.temperature(wind_chill),
            ),
            Reading(
                _channel_name(constants.ITEM_DEWPOINT, channel),
                units.temperature(dew_point),
            ),
            Reading(
                _channel_name(constants.ITEM_TEMPERATURE, channel),
                units.temperature(temp_c),
            ),
            Reading(
                _channel_name(constants.ITEM_TEMPERATURE_BATTERY, channel),
                metrics.is_battery_ok(data[0]),
            ),
        ]

    def _decode_water_temperature(self, data: bytes) -> List[Reading]:
        # Water probes only use channels 1-3; no derived metrics.
        channel = data[2] & 0x0F
        temp_c = _signed_tenths(data)
        return [
            Reading(
                _channel_name(constants.ITEM_TEMPERATURE, channel),
                self.units.temperature(temp_c),
            ),
            Reading(
                _channel_name(constants.ITEM_TEMPERATURE_BATTERY, channel),
                metrics.is_battery_ok(data[0]),
            ),
        ]

    def _decode_timestamp(self, data: bytes) -> List[Reading]:
        status = data[0]
        return [
            Reading(constants.ITEM_RFSIGNAL, metrics.rf_signal(status)),
            Reading(constants.ITEM_STATIONPOWER, metrics.is_station_powered(status)),
            Reading(constants.ITEM_STATIONBATTERY, metrics.is_battery_ok(status)),
        ]

    def _decode_uv(self, data: bytes) -> List[Reading]:
        uv_index = data[3]
        return [
            Reading(constants.ITEM_UVINDEX, uv_index),
            Reading(constants.ITEM_UVDESCRIPTION, metrics.uv_description(uv_index)),
            Reading(constants.ITEM_UV_BATTERY, metrics.is_battery_ok(data[0])),
        ]

    def _decode_wind(self, data: bytes) -> List[Reading]:
        degrees = (data[2] * 360) // 16
        gust_mps = _twelve_bit(data[4], data[5]) / 10.0
        average_mps = ((data[6] << 4) | ((data[5] & 0xF0) >> 4)) / 10.0
        self.last_wind_speed = average_mps

        units = self.units
        return [
            Reading(constants.ITEM_WIND_DIRECTION, degrees),
            Reading(
                constants.ITEM_WIND_COMPASSDIRECTION,
                metrics.compass_direction(degrees),
            ),
            Reading(constants.ITEM_WIND_GUST, units.wind_speed(gust_mps)),
            Reading(
                constants.ITEM_WIND_BEAUFORTSCALE,
                metrics.beaufort_scale(average_mps),
            ),
            Reading(constants.ITEM_WIND_SPEED, units.wind_speed(average_mps)),
            Reading(constants.ITEM_WIND_BATTERY, metrics.is_battery_ok(data[0])),
        ]
