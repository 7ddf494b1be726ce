"""Configuration loader for wmr-relay."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import constants
from .station.units import (
    PressureUnit,
    RainUnit,
    TemperatureUnit,
    UnitConfiguration,
    WindSpeedUnit,
)


class ConfigurationError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(slots=True)
class StationConfig:
    vendor_id: int = constants.DEFAULT_STATION_VENDOR
    product_id: int = constants.DEFAULT_STATION_PRODUCT
    read_timeout_ms: int = 1000


@dataclass(slots=True)
class MQTTConfig:
    broker_host: str = ""  # Empty disables publishing
    broker_port: int = constants.DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: str = constants.DEFAULT_CLIENT_ID
    root_topic: str = constants.DEFAULT_ROOT_TOPIC
    qos: int = 1
    retain: bool = True

    @property
    def enabled(self) -> bool:
        return bool(self.broker_host)


@dataclass(slots=True)
class ReportingConfig:
    max_reporting_rate_seconds: float = 60.0


@dataclass(slots=True)
class SupervisorConfig:
    monitoring_interval_seconds: float = 30.0
    min_commands_per_interval: int = 5
    quiet_restart_threshold: int = 5
    restart_initial_seconds: float = 1.0
    restart_max_seconds: float = 30.0
    restart_jitter_ratio: float = 0.5


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False
    log_frames: bool = False
    max_bytes: int = 1_048_576
    backup_count: int = 3


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class RelayConfig:
    station: StationConfig
    units: UnitConfiguration
    mqtt: MQTTConfig
    reporting: ReportingConfig
    supervisor: SupervisorConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser = field(default_factory=ConfigParser)
    path: Path = constants.DEFAULT_CONFIG_PATH


def _parse_int(value: str, *, option: str) -> int:
    """Parse decimal or prefixed (0x..) integers, as USB ids are usually hex."""

    try:
        return int(value.strip(), 0)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer for {option}: {value!r}") from exc


def _split_broker(host: str, port: int) -> tuple[str, int]:
    host = host.strip()
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.rstrip("/")

    if ":" in host:
        host_part, port_part = host.rsplit(":", 1)
        try:
            parsed_port = int(port_part)
        except ValueError:
            pass
        else:
            return host_part, parsed_port
    return host, port


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "station": {
                "vendor_id": f"0x{constants.DEFAULT_STATION_VENDOR:04X}",
                "product_id": f"0x{constants.DEFAULT_STATION_PRODUCT:04X}",
                "read_timeout_ms": "1000",
            },
            "units": {
                "temperature": TemperatureUnit.C.value,
                "wind_speed": WindSpeedUnit.MPS.value,
                "pressure": PressureUnit.MBAR.value,
                "rain": RainUnit.IN.value,
            },
            "mqtt": {
                "broker_host": "",
                "broker_port": str(constants.DEFAULT_BROKER_PORT),
                "client_id": constants.DEFAULT_CLIENT_ID,
                "root_topic": constants.DEFAULT_ROOT_TOPIC,
                "qos": "1",
                "retain": "true",
            },
            "reporting": {
                "max_reporting_rate_seconds": "60",
            },
            "supervisor": {
                "monitoring_interval_seconds": "30",
                "min_commands_per_interval": "5",
                "quiet_restart_threshold": "5",
                "restart_initial_seconds": "1.0",
                "restart_max_seconds": "30.0",
                "restart_jitter_ratio": "0.5",
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
                "log_frames": "false",
                "max_bytes": "1048576",
                "backup_count": "3",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    station = StationConfig(
        vendor_id=_parse_int(
            parser.get("station", "vendor_id"), option="station.vendor_id"
        ),
        product_id=_parse_int(
            parser.get("station", "product_id"), option="station.product_id"
        ),
        read_timeout_ms=max(
            1, parser.getint("station", "read_timeout_ms", fallback=1000)
        ),
    )

    default_units = UnitConfiguration()
    units = UnitConfiguration(
        temperature_unit=TemperatureUnit.parse(
            parser.get("units", "temperature", fallback=None),
            default=default_units.temperature_unit,
        ),
        wind_speed_unit=WindSpeedUnit.parse(
            parser.get("units", "wind_speed", fallback=None),
            default=default_units.wind_speed_unit,
        ),
        pressure_unit=PressureUnit.parse(
            parser.get("units", "pressure", fallback=None),
            default=default_units.pressure_unit,
        ),
        rain_unit=RainUnit.parse(
            parser.get("units", "rain", fallback=None),
            default=default_units.rain_unit,
        ),
    )

    broker_host, broker_port = _split_broker(
        parser.get("mqtt", "broker_host", fallback=""),
        parser.getint(
            "mqtt", "broker_port", fallback=constants.DEFAULT_BROKER_PORT
        ),
    )
    if broker_host:
        parser.set("mqtt", "broker_host", broker_host)
        parser.set("mqtt", "broker_port", str(broker_port))

    mqtt = MQTTConfig(
        broker_host=broker_host,
        broker_port=broker_port,
        username=parser.get("mqtt", "username", fallback=None) or None,
        password=parser.get("mqtt", "password", fallback=None) or None,
        client_id=parser.get("mqtt", "client_id"),
        root_topic=parser.get("mqtt", "root_topic").rstrip("/"),
        qos=min(2, max(0, parser.getint("mqtt", "qos", fallback=1))),
        retain=parser.getboolean("mqtt", "retain", fallback=True),
    )

    reporting = ReportingConfig(
        max_reporting_rate_seconds=max(
            0.0,
            parser.getfloat("reporting", "max_reporting_rate_seconds", fallback=60.0),
        ),
    )

    supervisor_defaults = SupervisorConfig()
    supervisor = SupervisorConfig(
        monitoring_interval_seconds=max(
            1.0,
            parser.getfloat(
                "supervisor",
                "monitoring_interval_seconds",
                fallback=supervisor_defaults.monitoring_interval_seconds,
            ),
        ),
        min_commands_per_interval=max(
            0,
            parser.getint(
                "supervisor",
                "min_commands_per_interval",
                fallback=supervisor_defaults.min_commands_per_interval,
            ),
        ),
        quiet_restart_threshold=max(
            1,
            parser.getint(
                "supervisor",
                "quiet_restart_threshold",
                fallback=supervisor_defaults.quiet_restart_threshold,
            ),
        ),
        restart_initial_seconds=max(
            0.0,
            parser.getfloat("supervisor", "restart_initial_seconds", fallback=1.0),
        ),
        restart_max_seconds=max(
            0.0,
            parser.getfloat("supervisor", "restart_max_seconds", fallback=30.0),
        ),
        restart_jitter_ratio=max(
            0.0,
            min(
                1.0,
                parser.getfloat("supervisor", "restart_jitter_ratio", fallback=0.5),
            ),
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
        log_frames=parser.getboolean("logging", "log_frames", fallback=False),
        max_bytes=parser.getint("logging", "max_bytes", fallback=1_048_576),
        backup_count=parser.getint("logging", "backup_count", fallback=3),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=parser.getint("health", "port", fallback=0),
    )

    return RelayConfig(
        station=station,
        units=units,
        mqtt=mqtt,
        reporting=reporting,
        supervisor=supervisor,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )

