"""Command-line interface for wmr-relay."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

from . import __version__, constants
from .adapters import list_devices
from .app import WMRRelayApp
from .config import RelayConfig, load_config

LOGGER = logging.getLogger(__name__)

_SECRET_KEYS = frozenset({"password"})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Relay Oregon Scientific WMR100 weather station readings to MQTT",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("start", help="Read the station and publish its readings")
    commands.add_parser("show-config", help="Print the effective configuration")
    devices = commands.add_parser(
        "list-devices", help="List attached HID devices matching the station ids"
    )
    devices.add_argument(
        "--all", action="store_true", help="List every attached HID device"
    )
    return parser


def _start(config: RelayConfig, args: argparse.Namespace) -> int:
    WMRRelayApp.start(config)
    return 0


def _show_config(config: RelayConfig, args: argparse.Namespace) -> int:
    print(f"# {config.path}")
    for section in config.raw.sections():
        print(f"\n[{section}]")
        for key, value in config.raw.items(section, raw=True):
            if key in _SECRET_KEYS and value:
                value = "********"
            print(f"{key} = {value}")
    return 0


def _list_devices(config: RelayConfig, args: argparse.Namespace) -> int:
    if args.all:
        devices = list_devices()
    else:
        devices = list_devices(config.station.vendor_id, config.station.product_id)

    if not devices:
        print(
            "No HID device found for "
            f"{config.station.vendor_id:04x}:{config.station.product_id:04x}"
        )
        return 1
    for device in devices:
        print(device)
    return 0


_COMMANDS: Dict[str, Callable[[RelayConfig, argparse.Namespace], int]] = {
    "start": _start,
    "show-config": _show_config,
    "list-devices": _list_devices,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        LOGGER.error("Unknown command: %s", args.command)
        return 1
    return handler(config, args)


if __name__ == "__main__":
    sys.exit(main())
