import math

import pytest

from wmr_relay.station import metrics


def test_temperature_conversions_round_trip():
    assert metrics.celsius_to_fahrenheit(100.0) == pytest.approx(212.0)
    assert metrics.fahrenheit_to_celsius(32.0) == pytest.approx(0.0)


def test_heat_index_below_threshold_is_nan():
    assert math.isnan(metrics.heat_index(26.6, 80))


def test_heat_index_hot_and_humid():
    # 32.2C / 70% rh is ~105F on the NOAA chart
    assert metrics.heat_index(32.2, 70) == pytest.approx(41.0, abs=0.1)


def test_dew_point_saturated_equals_temperature():
    assert metrics.dew_point(15.0, 100) == pytest.approx(15.0, abs=1e-6)


@pytest.mark.parametrize("rh", [0, -5])
def test_dew_point_without_humidity_is_nan(rh):
    assert math.isnan(metrics.dew_point(20.0, rh))


@pytest.mark.parametrize(
    "temp_c, wind_mps",
    [(10.1, 10.0), (5.0, 1.3), (-5.0, 0.0)],
)
def test_wind_chill_outside_domain_is_nan(temp_c, wind_mps):
    assert math.isnan(metrics.wind_chill(temp_c, wind_mps))


def test_wind_chill_cold_and_windy():
    # -10C at 20 km/h
    assert metrics.wind_chill(-10.0, 20.0 / 3.6) == pytest.approx(-17.9, abs=0.1)


@pytest.mark.parametrize(
    "speed, label",
    [
        (0.0, "Calm (force 0)"),
        (0.3, "Light Air (f1)"),
        (5.5, "Moderate Breeze (f4)"),
        (20.0, "Gale (f8)"),
        (32.6, "Hurricane (f12)"),
        (50.0, "Hurricane (f12)"),
    ],
)
def test_beaufort_scale(speed, label):
    assert metrics.beaufort_scale(speed) == label


@pytest.mark.parametrize(
    "degrees, point",
    [
        (0, "N"),
        (10, "N"),
        (12, "NNE"),
        (90, "E"),
        (180, "S"),
        (337, "NNW"),
        (348, "NNW"),
        (349, "NNW"),
        (359, "NNW"),
        (400, "Unknown"),
    ],
)
def test_compass_direction(degrees, point):
    assert metrics.compass_direction(degrees) == point


@pytest.mark.parametrize(
    "index, label",
    [
        (0, "Low"),
        (2, "Low"),
        (3, "Medium"),
        (6, "High"),
        (8, "Very High"),
        (11, "Extremely High"),
    ],
)
def test_uv_description(index, label):
    assert metrics.uv_description(index) == label


def test_status_bits():
    assert metrics.is_battery_ok(0x00) is True
    assert metrics.is_battery_ok(0x40) is False
    assert metrics.is_station_powered(0x80) is False
    assert metrics.rf_signal(0x08) == "Inactive"
