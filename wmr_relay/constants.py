"""Constants used across the wmr-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "wmr-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

# USB identifiers of the WMR100/WMRS200 family
DEFAULT_STATION_VENDOR = 0x0FDE
DEFAULT_STATION_PRODUCT = 0xCA01

PACKET_LENGTH = 9
MAX_PACKET_PAYLOAD = 7
MAX_COMMAND_LENGTH = 25
COMMAND_TERMINATOR = b"\xff\xff"

# First byte is the HID report id.
STATION_INITIALIZATION = bytes([0x00, 0x20, 0x00, 0x08, 0x01, 0x00, 0x00, 0x00, 0x00])

DEFAULT_ROOT_TOPIC = "WMR100"
DEFAULT_CLIENT_ID = "WMR100"
DEFAULT_BROKER_PORT = 1883

# Reading names
ITEM_TEMPERATURE = "temperature"
ITEM_HUMIDITY = "humidity"
ITEM_HEATINDEX = "temperatureHeatIndex"
ITEM_DEWPOINT = "temperatureDewPoint"
ITEM_WINDCHILL = "temperatureWindChill"
ITEM_TEMPERATURE_BATTERY = "temperatureBattery"
ITEM_WIND_DIRECTION = "windDirection"
ITEM_WIND_COMPASSDIRECTION = "windCompassDirection"
ITEM_WIND_GUST = "windGust"
ITEM_WIND_SPEED = "windSpeed"
ITEM_WIND_BEAUFORTSCALE = "windBeaufortScale"
ITEM_WIND_BATTERY = "windBattery"
ITEM_PRESSURE = "pressure"
ITEM_RAIN_RATE = "rainRate"
ITEM_RAIN_LASTHOUR = "rainLastHour"
ITEM_RAIN_LAST24HOURS = "rainLast24Hours"
ITEM_RAIN_BATTERY = "rainBattery"
ITEM_UVINDEX = "UVIndex"
ITEM_UVDESCRIPTION = "UVDescription"
ITEM_UV_BATTERY = "UVBattery"
ITEM_RFSIGNAL = "RFSignal"
ITEM_STATIONPOWER = "stationPower"
ITEM_STATIONBATTERY = "stationBattery"

COMPASS_DIRECTIONS = (
    "N",
    "NNE",
    "NE",
    "ENE",
    "E",
    "ESE",
    "SE",
    "SSE",
    "S",
    "SSW",
    "SW",
    "WSW",
    "W",
    "WNW",
    "NW",
    "NNW",
)

UV_DESCRIPTIONS = ("Low", "Medium", "High", "Very High", "Extremely High")
