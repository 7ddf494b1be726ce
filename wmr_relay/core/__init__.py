"""Core primitives for wmr-relay."""

from .models import DecodedCommand, Reading, ReadingValue, SensorType, format_value
from .protocols import MessagePublisher, StationTransport

__all__ = [
    "DecodedCommand",
    "MessagePublisher",
    "Reading",
    "ReadingValue",
    "SensorType",
    "StationTransport",
    "format_value",
]
