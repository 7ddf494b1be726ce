import pytest

from wmr_relay.station.commands import compute_checksum


def build_command(*content: int) -> bytes:
    """Append the little-endian checksum the station puts on every command."""

    body = bytes(content)
    checksum = compute_checksum(body)
    return body + bytes([checksum & 0xFF, checksum >> 8])


def packetize(stream: bytes, size: int = 7) -> list[bytes]:
    """Split a byte stream into 9-byte HID reports of ``size`` payload bytes."""

    packets = []
    for offset in range(0, len(stream), size):
        chunk = stream[offset : offset + size]
        packets.append(bytes([len(chunk)]) + chunk.ljust(8, b"\x00"))
    return packets


@pytest.fixture
def make_command():
    return build_command


@pytest.fixture
def make_packets():
    return packetize
