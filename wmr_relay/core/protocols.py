"""Protocol definitions for the station transport and the reading publisher."""

from __future__ import annotations

from typing import Optional, Protocol


class StationTransport(Protocol):
    """Minimal contract for the link to the weather station."""

    def open(self) -> None:
        """Locate and open the station.

        Raises:
            TransportError: If the station cannot be opened.
        """
        ...

    def close(self) -> None:
        """Release the station; calling it on a closed transport is a no-op."""
        ...

    def read_packet(self, timeout_ms: int) -> Optional[bytes]:
        """Read one raw packet, or return None when nothing arrived in time.

        Raises:
            TransportError: On a read failure; the read loop must end.
        """
        ...

    def write_command(self, data: bytes) -> None:
        """Send a raw command to the station."""
        ...


class MessagePublisher(Protocol):
    """Contract for the message bus used to emit readings."""

    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None:
        """Publish a payload.

        Raises:
            MQTTConnectionError: When the broker cannot be reached.
            MQTTProtocolError: When the broker or client rejects the message.
        """
        ...

    def is_connected(self) -> bool:
        ...
