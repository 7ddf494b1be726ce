"""Domain models for station commands and readings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional, Tuple, Union

ReadingValue = Union[bool, int, float, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorType(IntEnum):
    """Sensor id carried in byte 1 of every station command."""

    RAIN = 0x41
    TEMPERATURE = 0x42
    WATER_TEMPERATURE = 0x44
    PRESSURE = 0x46
    UV = 0x47
    WIND = 0x48
    TIMESTAMP = 0x60

    @property
    def command_length(self) -> int:
        """Length of a command for this sensor, checksum included."""
        return _COMMAND_LENGTHS[self]


_COMMAND_LENGTHS = {
    SensorType.TIMESTAMP: 12,
    SensorType.TEMPERATURE: 12,
    SensorType.WATER_TEMPERATURE: 7,
    SensorType.WIND: 11,
    SensorType.PRESSURE: 8,
    SensorType.RAIN: 17,
    SensorType.UV: 6,
}


@dataclass(slots=True, frozen=True)
class Reading:
    name: str
    value: ReadingValue


@dataclass(slots=True, frozen=True)
class DecodedCommand:
    """A validated station command and the readings unpacked from it.

    Attributes:
        data: Command bytes with the terminator removed (checksum included).
        sensor: Sensor type, or None when the id byte is unknown or missing.
        valid: Whether checksum and length checks passed.
        readings: Readings decoded from a valid command; empty otherwise.
        reason: Why the command was rejected, for invalid commands.
        received_at: When the command was assembled.
    """

    data: bytes
    sensor: Optional[SensorType]
    valid: bool
    readings: Tuple[Reading, ...] = ()
    reason: Optional[str] = None
    received_at: datetime = field(default_factory=_utcnow)

    def hexdump(self) -> str:
        return self.data.hex(" ")

    def __str__(self) -> str:
        stamp = self.received_at.strftime("%H:%M:%S.%f")[:-4]
        return f"{stamp}: valid: {self.valid} len: {len(self.data)} [{self.hexdump()}]"


def format_value(value: ReadingValue) -> str:
    """Render a reading value as the plain-text MQTT payload."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isnan(value):
        return "NaN"
    return str(value)
