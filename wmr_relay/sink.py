"""Throttled forwarding of readings to the message bus.

Every reading name is published at most once per reporting interval. A
failed publish does not count as a send, so the next submission for that name
is tried again straight away instead of waiting a full interval.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, Optional

from .adapters.mqtt import MQTTConnectionError, MQTTProtocolError
from .core.models import Reading, ReadingValue, format_value
from .core.protocols import MessagePublisher

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_REPORTING_RATE_SECONDS = 60.0


class ReadingSink:
    """Publishes readings under ``<root_topic>/<name>`` with per-name throttling.

    Thread-safety: not thread-safe; the station reader calls it from the event
    loop thread.
    """

    def __init__(
        self,
        publisher: Optional[MessagePublisher],
        *,
        root_topic: str,
        max_reporting_rate_seconds: float = DEFAULT_MAX_REPORTING_RATE_SECONDS,
        qos: int = 1,
        retain: bool = True,
        monotonic: Optional[Callable[[], float]] = None,
    ) -> None:
        self._publisher = publisher
        self._root_topic = root_topic.rstrip("/")
        self._interval = max(0.0, max_reporting_rate_seconds)
        self._qos = qos
        self._retain = retain
        self._monotonic = monotonic or time.monotonic
        self._last_sent: Dict[str, float] = {}
        self._messages_sent = 0
        self._failures = 0

    @property
    def enabled(self) -> bool:
        return self._publisher is not None

    @property
    def messages_sent(self) -> int:
        """Readings published since the last counter reset."""
        return self._messages_sent

    @property
    def failures(self) -> int:
        return self._failures

    def reset_message_count(self) -> None:
        self._messages_sent = 0

    def last_sent(self, name: str) -> Optional[float]:
        return self._last_sent.get(name)

    def topic_for(self, name: str) -> str:
        return f"{self._root_topic}/{name}"

    def submit(self, name: str, value: ReadingValue) -> bool:
        """Publish ``value`` unless ``name`` was sent within the interval.

        Returns True when the value was published.
        """

        publisher = self._publisher
        if publisher is None:
            return False

        now = self._monotonic()
        last = self._last_sent.get(name)
        if last is not None and now - last <= self._interval:
            return False

        topic = self.topic_for(name)
        payload = format_value(value)
        try:
            publisher.publish(
                topic, payload.encode("utf-8"), qos=self._qos, retain=self._retain
            )
        except MQTTConnectionError as exc:
            self._failures += 1
            LOGGER.error("MQTT connection failure publishing %s: %s", topic, exc)
            return False
        except MQTTProtocolError as exc:
            self._failures += 1
            LOGGER.error("MQTT protocol failure publishing %s: %s", topic, exc)
            return False

        self._last_sent[name] = now
        self._messages_sent += 1
        LOGGER.debug("Published %s = %s", topic, payload)
        return True

    def submit_all(self, readings: Iterable[Reading]) -> int:
        published = 0
        for reading in readings:
            if self.submit(reading.name, reading.value):
                published += 1
        return published
