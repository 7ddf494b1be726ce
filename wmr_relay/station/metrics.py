"""Derived weather quantities and status-byte helpers.

All temperatures are in Celsius and wind speeds in m/s. Formulas that are not
defined for the given inputs return ``math.nan`` so the published value is
distinguishable from a computed one.
"""

from __future__ import annotations

import math

from ..constants import COMPASS_DIRECTIONS, UV_DESCRIPTIONS

HEAT_INDEX_MIN_CELSIUS = 26.7
WIND_CHILL_MAX_CELSIUS = 10.0
WIND_CHILL_MIN_KPH = 4.8

# Above this the rounding offset would push the index past "NNW".
COMPASS_WRAP_DEGREES = 348
COMPASS_OFFSET_DEGREES = 11.24
COMPASS_SECTOR_DEGREES = 22.5

BEAUFORT_SCALE = (
    (0.3, "Calm (force 0)"),
    (1.5, "Light Air (f1)"),
    (3.3, "Light Breeze (f2)"),
    (5.5, "Gentle Breeze (f3)"),
    (7.9, "Moderate Breeze (f4)"),
    (10.7, "Fresh Breeze (f5)"),
    (13.8, "Strong Breeze (f6)"),
    (17.1, "Near Gale (f7)"),
    (20.7, "Gale (f8)"),
    (24.4, "Strong Gale (f9)"),
    (28.4, "Storm (f10)"),
    (32.6, "Violent Storm (f11)"),
)
BEAUFORT_HURRICANE = "Hurricane (f12)"


def celsius_to_fahrenheit(value: float) -> float:
    return (value * 9.0 / 5.0) + 32.0


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32.0) * 5.0 / 9.0


def heat_index(temp_c: float, rh: float) -> float:
    """NOAA heat index regression, evaluated in Fahrenheit."""

    if temp_c < HEAT_INDEX_MIN_CELSIUS:
        return math.nan

    t = celsius_to_fahrenheit(temp_c)
    hi = (
        -42.379
        + (2.04901523 * t)
        + (10.14333127 * rh)
        - (0.22475541 * t * rh)
        - (0.00683783 * t**2)
        - (0.05481717 * rh**2)
        + (0.00122874 * t**2 * rh)
        + (0.00085282 * t * rh**2)
        - (0.00000199 * t**2 * rh**2)
    )
    return fahrenheit_to_celsius(hi)


def dew_point(temp_c: float, rh: float) -> float:
    """Magnus formula with the Alduchov-Eskridge coefficients."""

    if rh <= 0:
        return math.nan

    gamma = math.log(rh / 100.0) + ((17.625 * temp_c) / (243.04 + temp_c))
    return 243.04 * gamma / (17.625 - gamma)


def wind_chill(temp_c: float, wind_mps: float) -> float:
    """Environment Canada wind chill index."""

    wind_kph = wind_mps * 3600.0 / 1000.0
    if temp_c > WIND_CHILL_MAX_CELSIUS or wind_kph < WIND_CHILL_MIN_KPH:
        return math.nan

    factor = wind_kph**0.16
    return 13.12 + (0.6215 * temp_c) - (11.37 * factor) + (0.3965 * temp_c * factor)


def beaufort_scale(wind_mps: float) -> str:
    for upper, label in BEAUFORT_SCALE:
        if wind_mps < upper:
            return label
    return BEAUFORT_HURRICANE


def compass_direction(degrees: int) -> str:
    """Map a bearing to one of the 16 compass points.

    Half a sector is added before bucketing so that e.g. 10 degrees reads as
    "N". Bearings above 348 degrees skip the offset to keep the index in range;
    they land on "NNW" rather than wrapping to "N".
    """

    if degrees > COMPASS_WRAP_DEGREES:
        adjusted = float(degrees)
    else:
        adjusted = degrees + COMPASS_OFFSET_DEGREES
    index = int(adjusted / COMPASS_SECTOR_DEGREES)
    if 0 <= index < len(COMPASS_DIRECTIONS):
        return COMPASS_DIRECTIONS[index]
    return "Unknown"


def uv_description(uv_index: int) -> str:
    if uv_index >= 11:
        return UV_DESCRIPTIONS[4]
    if uv_index >= 8:
        return UV_DESCRIPTIONS[3]
    if uv_index >= 6:
        return UV_DESCRIPTIONS[2]
    if uv_index >= 3:
        return UV_DESCRIPTIONS[1]
    return UV_DESCRIPTIONS[0]


def is_battery_ok(status: int) -> bool:
    return (status & 0x40) == 0


def is_station_powered(status: int) -> bool:
    return (status & 0x80) == 0


def rf_signal(status: int) -> str:
    if status & 0x10:
        return "Strong" if status & 0x08 else "Weak"
    return "Inactive"
