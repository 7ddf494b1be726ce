"""Station protocol: packet framing, command decoding and derived metrics."""

from .commands import CommandDecoder, compute_checksum
from .framing import (
    CommandBuffer,
    FrameAssembler,
    FrameOverflowError,
    TransportPacket,
    parse_packet,
)
from .units import (
    PressureUnit,
    RainUnit,
    TemperatureUnit,
    UnitConfiguration,
    WindSpeedUnit,
)

__all__ = [
    "CommandBuffer",
    "CommandDecoder",
    "FrameAssembler",
    "FrameOverflowError",
    "PressureUnit",
    "RainUnit",
    "TemperatureUnit",
    "TransportPacket",
    "UnitConfiguration",
    "WindSpeedUnit",
    "compute_checksum",
    "parse_packet",
]
