"""Reassembly of station commands from HID transport packets.

The station sends 9-byte packets. Byte 0 holds the number of payload bytes
that follow (at most 7); the payload bytes are a slice of a continuous command
stream in which every command ends with ``0xFF 0xFF``. A command therefore
spans one or more packets, and a packet can close one command and open the
next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Union

from ..constants import COMMAND_TERMINATOR, MAX_COMMAND_LENGTH, MAX_PACKET_PAYLOAD

LOGGER = logging.getLogger(__name__)

PacketData = Union[bytes, bytearray, Sequence[int]]

# Accumulations up to this length (terminator included) carry no command.
_DEGENERATE_LENGTH = 3


class FrameOverflowError(RuntimeError):
    """Raised when bytes accumulate past the maximum command length."""


@dataclass(slots=True, frozen=True)
class TransportPacket:
    length: int
    payload: bytes

    @property
    def valid(self) -> bool:
        return self.length <= MAX_PACKET_PAYLOAD


def parse_packet(raw: PacketData) -> TransportPacket:
    """Split a raw HID report into its length prefix and payload bytes."""

    data = bytes(raw)
    if not data:
        return TransportPacket(length=0, payload=b"")
    length = data[0]
    return TransportPacket(length=length, payload=data[1 : 1 + length])


@dataclass(slots=True, frozen=True)
class CommandBuffer:
    """Bytes accumulated for one command, terminator included."""

    raw: bytes

    @property
    def command(self) -> bytes:
        """Command content plus its 2-byte checksum."""
        return self.raw[: -len(COMMAND_TERMINATOR)]

    def __len__(self) -> int:
        return len(self.raw)


class FrameAssembler:
    """Turns a sequence of transport packets into command buffers.

    Not thread-safe; a single reader owns each instance.
    """

    def __init__(self, max_length: int = MAX_COMMAND_LENGTH) -> None:
        self._max_length = max_length
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of bytes accumulated for the command in progress."""
        return len(self._buffer)

    def feed(self, packet: Union[TransportPacket, PacketData]) -> List[CommandBuffer]:
        """Append a packet's payload, returning any commands it completed."""

        if not isinstance(packet, TransportPacket):
            packet = parse_packet(packet)

        if not packet.valid:
            LOGGER.warning(
                "Ignoring packet with bad payload length %d (max %d)",
                packet.length,
                MAX_PACKET_PAYLOAD,
            )
            return []

        completed: List[CommandBuffer] = []
        for value in packet.payload:
            if len(self._buffer) >= self._max_length:
                size = len(self._buffer)
                self._buffer.clear()
                raise FrameOverflowError(
                    f"Command exceeded {self._max_length} bytes without terminator "
                    f"({size} bytes buffered)"
                )

            self._buffer.append(value)
            if len(self._buffer) < 2 or self._buffer[-2:] != COMMAND_TERMINATOR:
                continue

            if len(self._buffer) > _DEGENERATE_LENGTH:
                completed.append(CommandBuffer(raw=bytes(self._buffer)))
            self._buffer.clear()

        return completed

    def feed_all(
        self, packets: Iterable[Union[TransportPacket, PacketData]]
    ) -> List[CommandBuffer]:
        completed: List[CommandBuffer] = []
        for packet in packets:
            completed.extend(self.feed(packet))
        return completed
