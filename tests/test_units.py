import pytest

from wmr_relay.station.units import (
    PressureUnit,
    RainUnit,
    TemperatureUnit,
    UnitConfiguration,
    WindSpeedUnit,
)


def test_defaults_are_native_units():
    units = UnitConfiguration()

    assert units.temperature(21.5) == 21.5
    assert units.wind_speed(3.0) == 3.0
    assert units.pressure(1013.0) == 1013.0
    assert units.rain(1.0) == 1.0


def test_converted_units():
    units = UnitConfiguration(
        temperature_unit=TemperatureUnit.F,
        wind_speed_unit=WindSpeedUnit.KNOT,
        pressure_unit=PressureUnit.INHG,
        rain_unit=RainUnit.MM,
    )

    assert units.temperature(0.0) == pytest.approx(32.0)
    assert units.wind_speed(10.0) == pytest.approx(19.4384)
    assert units.pressure(1000.0) == pytest.approx(29.529983071)
    assert units.rain(1.0) == pytest.approx(2.54)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("mph", WindSpeedUnit.MPH),
        (" KT ", WindSpeedUnit.KNOT),
        ("knots", WindSpeedUnit.KNOT),
        ("m/s", WindSpeedUnit.MPS),
        (None, WindSpeedUnit.MPS),
        ("furlongs", WindSpeedUnit.MPS),
    ],
)
def test_parse_wind_speed_unit(raw, expected):
    assert WindSpeedUnit.parse(raw, default=WindSpeedUnit.MPS) is expected


def test_parse_unknown_unit_logs_warning(caplog):
    with caplog.at_level("WARNING"):
        result = PressureUnit.parse("bar", default=PressureUnit.MBAR)

    assert result is PressureUnit.MBAR
    assert "Unknown PressureUnit 'bar'" in caplog.text
