"""Logging setup for the relay process."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty below WARNING; only useful when chasing broker or HTTP problems.
NETWORK_LOGGERS = ("aiohttp.access", "paho", "wmr_relay.adapters.mqtt.paho")

# Per-command DEBUG lines, several per second on a busy station.
FRAME_LOGGERS = ("wmr_relay.reader", "wmr_relay.station.framing")


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    log_network: bool = False,
    log_frames: bool = False,
    max_bytes: int = 1_048_576,
    backup_count: int = 3,
) -> None:
    """Replace the root handlers with console (and optional file) output.

    Args:
        level: Root level name such as ``"INFO"``; unknown names fall back to
            INFO with a warning.
        log_path: When set, also write to this file, rotated at ``max_bytes``
            keeping ``backup_count`` old files.
        log_network: Leave the MQTT and HTTP library loggers at the root level.
        log_frames: Leave per-command debug output on when the root level is
            DEBUG.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    resolved = logging.getLevelName(level.upper())
    unknown_level = not isinstance(resolved, int)
    root.setLevel(logging.INFO if unknown_level else resolved)

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(0, max_bytes),
            backupCount=max(0, backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.NOTSET if log_network else logging.WARNING
        )
    for name in FRAME_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.NOTSET if log_frames else logging.INFO
        )

    if unknown_level:
        logging.getLogger(__name__).warning(
            "Unknown log level '%s'; using INFO", level
        )
