import pytest

from navigation.routing.measurement_utils import format_distance, split_distance


@pytest.mark.parametrize("meters, units, expected", [
    (0.5,     "metric",   "0 m"),
    (250.0,   "metric",   "250 m"),
    (999.4,   "metric",   "999 m"),
    (1000.0,  "metric",   "1.0 km"),
    (12345.0, "metric",   "12.3 km"),
    (0.2,     "imperial", "0 ft"),
    (100.0,   "imperial", "328 ft"),
    (2000.0,  "imperial", "1.2 mi"),
    (100.0,   "yards",    "109 yd"),
])
def test_format_distance(meters, units, expected):
    assert format_distance(meters, units) == expected


def test_format_distance_unknown_units():
    with pytest.raises(ValueError):
        format_distance(10.0, "furlongs")


def test_split_distance_at_first_space():
    assert split_distance("1.2 km") == ("1.2", "km")
    assert split_distance("0 m") == ("0", "m")


def test_split_distance_without_unit():
    with pytest.raises(ValueError):
        split_distance("12")
