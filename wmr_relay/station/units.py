"""Unit selection and conversion for published readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Type, TypeVar

LOGGER = logging.getLogger(__name__)

MPS_TO_MPH = 2.23694
MPS_TO_KNOT = 1.94384
HPA_TO_MMHG = 0.7500615613
HPA_TO_INHG = 0.029529983071
INCH_TO_MM = 2.54

_UnitT = TypeVar("_UnitT", bound="_ParsableUnit")


class _ParsableUnit(str, Enum):
    """String enum accepting a set of case-insensitive aliases."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def parse(
        cls: Type[_UnitT], value: Optional[str], *, default: _UnitT
    ) -> _UnitT:
        if not value:
            return default

        key = value.strip().lower()
        key = cls._aliases().get(key, key)
        for member in cls:
            if member.value == key:
                return member

        LOGGER.warning(
            "Unknown %s '%s'; using %s", cls.__name__, value, default.value
        )
        return default


class TemperatureUnit(_ParsableUnit):
    C = "c"
    F = "f"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"celsius": "c", "fahrenheit": "f", "degc": "c", "degf": "f"}


class WindSpeedUnit(_ParsableUnit):
    MPS = "mps"
    MPH = "mph"
    KNOT = "kt"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"m/s": "mps", "knot": "kt", "knots": "kt", "kn": "kt"}


class PressureUnit(_ParsableUnit):
    MBAR = "mbar"
    MMHG = "mmhg"
    INHG = "inhg"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"hpa": "mbar"}


class RainUnit(_ParsableUnit):
    IN = "in"
    MM = "mm"

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {"inch": "in", "inches": "in"}


@dataclass(slots=True, frozen=True)
class UnitConfiguration:
    """Process-wide unit selection, fixed for the lifetime of a run.

    The station reports temperatures in Celsius, wind speeds in m/s, pressure
    in hPa and rain in hundredths of an inch; each method converts from those
    native units to the configured one.
    """

    temperature_unit: TemperatureUnit = TemperatureUnit.C
    wind_speed_unit: WindSpeedUnit = WindSpeedUnit.MPS
    pressure_unit: PressureUnit = PressureUnit.MBAR
    rain_unit: RainUnit = RainUnit.IN

    def temperature(self, celsius: float) -> float:
        if self.temperature_unit is TemperatureUnit.F:
            return (celsius * 9.0 / 5.0) + 32.0
        return celsius

    def wind_speed(self, mps: float) -> float:
        if self.wind_speed_unit is WindSpeedUnit.MPH:
            return mps * MPS_TO_MPH
        if self.wind_speed_unit is WindSpeedUnit.KNOT:
            return mps * MPS_TO_KNOT
        return mps

    def pressure(self, hpa: float) -> float:
        if self.pressure_unit is PressureUnit.MMHG:
            return hpa * HPA_TO_MMHG
        if self.pressure_unit is PressureUnit.INHG:
            return hpa * HPA_TO_INHG
        return hpa

    def rain(self, inches: float) -> float:
        if self.rain_unit is RainUnit.MM:
            return inches * INCH_TO_MM
        return inches
