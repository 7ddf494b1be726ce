import math

import pytest

from wmr_relay.core.models import SensorType
from wmr_relay.station.commands import CommandDecoder, compute_checksum
from wmr_relay.station.units import (
    PressureUnit,
    RainUnit,
    TemperatureUnit,
    UnitConfiguration,
    WindSpeedUnit,
)


def _readings(command):
    return {reading.name: reading.value for reading in command.readings}


def test_compute_checksum_wraps_to_sixteen_bits():
    assert compute_checksum(bytes([0xFF] * 300)) == (0xFF * 300) & 0xFFFF


def test_valid_checksum_is_accepted(make_command):
    decoder = CommandDecoder()

    command = decoder.validate(make_command(0x00, 0x47, 0x00, 0x05))

    assert command.valid is True
    assert command.sensor is SensorType.UV


@pytest.mark.parametrize("index", [0, 2, 3])
def test_single_bit_flip_fails_checksum(make_command, index):
    data = bytearray(make_command(0x00, 0x47, 0x00, 0x05))
    data[index] ^= 0x01

    command = CommandDecoder().decode(bytes(data))

    assert command.valid is False
    assert command.readings == ()
    assert "checksum" in command.reason


def test_short_command_is_rejected():
    command = CommandDecoder().decode(b"\x00\x47\x47")

    assert command.valid is False
    assert "too short" in command.reason


def test_empty_command_is_valid_without_readings():
    command = CommandDecoder().decode(b"")

    assert command.valid is True
    assert command.readings == ()


def test_unknown_sensor_is_rejected(make_command):
    command = CommandDecoder().decode(make_command(0x00, 0x99, 0x01, 0x02))

    assert command.valid is False
    assert command.sensor is None


@pytest.mark.parametrize("sensor", list(SensorType))
def test_length_must_match_sensor(make_command, sensor):
    decoder = CommandDecoder()
    padding = [0x00] * (sensor.command_length - 4)

    exact = make_command(0x00, sensor.value, *padding)
    longer = make_command(0x00, sensor.value, *padding, 0x00)
    shorter = make_command(0x00, sensor.value, *padding[:-1])

    assert len(exact) == sensor.command_length
    assert decoder.validate(exact).valid is True
    for data in (longer, shorter):
        result = decoder.validate(data)
        assert result.valid is False
        assert result.sensor is sensor


def test_wind_command(make_command):
    decoder = CommandDecoder(UnitConfiguration(wind_speed_unit=WindSpeedUnit.MPH))
    data = make_command(0x00, 0x48, 0x08, 0x00, 0x19, 0xC0, 0x00, 0x00, 0x00)

    command = decoder.decode(data)
    readings = _readings(command)

    assert command.sensor is SensorType.WIND
    assert readings["windDirection"] == 180
    assert readings["windCompassDirection"] == "S"
    assert readings["windGust"] == pytest.approx(5.59235, abs=1e-4)
    assert readings["windSpeed"] == pytest.approx(1.2 * 2.23694)
    assert readings["windBeaufortScale"] == "Light Air (f1)"
    assert readings["windBattery"] is True
    assert decoder.last_wind_speed == pytest.approx(1.2)


def test_temperature_command(make_command):
    decoder = CommandDecoder()
    data = make_command(0x00, 0x42, 0x01, 0xD7, 0x00, 0x32, 0x00, 0x00, 0x00, 0x00)

    command = decoder.decode(data)

    assert [reading.name for reading in command.readings] == [
        "humidity/1",
        "temperatureHeatIndex/1",
        "temperatureWindChill/1",
        "temperatureDewPoint/1",
        "temperature/1",
        "temperatureBattery/1",
    ]
    readings = _readings(command)
    assert readings["temperature/1"] == pytest.approx(21.5)
    assert readings["humidity/1"] == 50
    assert math.isnan(readings["temperatureHeatIndex/1"])
    assert math.isnan(readings["temperatureWindChill/1"])
    assert readings["temperatureDewPoint/1"] == pytest.approx(10.64, abs=0.01)
    assert readings["temperatureBattery/1"] is True


def test_negative_temperature_in_fahrenheit(make_command):
    decoder = CommandDecoder(UnitConfiguration(temperature_unit=TemperatureUnit.F))
    data = make_command(0x40, 0x42, 0x00, 0x64, 0x80, 0x46, 0x00, 0x00, 0x00, 0x00)

    readings = _readings(decoder.decode(data))

    assert readings["temperature/0"] == pytest.approx(14.0)
    assert readings["temperatureBattery/0"] is False


def test_wind_chill_uses_last_wind_command(make_command):
    decoder = CommandDecoder()
    wind = make_command(0x00, 0x48, 0x00, 0x00, 0x00, 0x20, 0x03, 0x00, 0x00)
    temperature = make_command(
        0x00, 0x42, 0x01, 0x00, 0x00, 0x32, 0x00, 0x00, 0x00, 0x00
    )

    before = _readings(decoder.decode(temperature))
    decoder.decode(wind)
    after = _readings(decoder.decode(temperature))

    assert math.isnan(before["temperatureWindChill/1"])
    assert decoder.last_wind_speed == pytest.approx(5.0)
    assert after["temperatureWindChill/1"] == pytest.approx(-4.94, abs=0.01)


def test_water_temperature_command(make_command):
    data = make_command(0x00, 0x44, 0x02, 0x2C, 0x01)

    command = CommandDecoder().decode(data)

    assert _readings(command) == {
        "temperature/2": pytest.approx(30.0),
        "temperatureBattery/2": True,
    }


@pytest.mark.parametrize(
    "unit, expected",
    [
        (PressureUnit.MBAR, 1013.0),
        (PressureUnit.MMHG, 759.81),
        (PressureUnit.INHG, 29.91),
    ],
)
def test_pressure_command(make_command, unit, expected):
    decoder = CommandDecoder(UnitConfiguration(pressure_unit=unit))
    data = make_command(0x00, 0x46, 0xF5, 0x03, 0x00, 0x00)

    readings = _readings(decoder.decode(data))

    assert readings == {"pressure": pytest.approx(expected, abs=0.01)}


def test_rain_command(make_command):
    decoder = CommandDecoder(UnitConfiguration(rain_unit=RainUnit.MM))
    data = make_command(
        0x40, 0x41, 0x0A, 0x00, 0x64, 0x00, 0xC8, 0x00, *([0x00] * 7)
    )

    readings = _readings(decoder.decode(data))

    assert readings["rainRate"] == pytest.approx(0.254)
    assert readings["rainLastHour"] == pytest.approx(2.54)
    assert readings["rainLast24Hours"] == pytest.approx(5.08)
    assert readings["rainBattery"] is False


def test_uv_command(make_command):
    command = CommandDecoder().decode(make_command(0x00, 0x47, 0x00, 0x07))
    readings = _readings(command)

    assert readings == {"UVIndex": 7, "UVDescription": "High", "UVBattery": True}


@pytest.mark.parametrize(
    "status, signal, powered, battery",
    [
        (0x18, "Strong", True, True),
        (0x10, "Weak", True, True),
        (0xC0, "Inactive", False, False),
    ],
)
def test_timestamp_command(make_command, status, signal, powered, battery):
    data = make_command(status, 0x60, *([0x00] * 8))

    readings = _readings(CommandDecoder().decode(data))

    assert readings == {
        "RFSignal": signal,
        "stationPower": powered,
        "stationBattery": battery,
    }


def test_decoded_command_string_includes_hexdump(make_command):
    command = CommandDecoder(clock=lambda: 0.0).decode(
        make_command(0x00, 0x47, 0x00, 0x05)
    )

    assert str(command) == "00:00:00.00: valid: True len: 6 [00 47 00 05 4c 00]"
