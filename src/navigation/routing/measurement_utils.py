# measurement_utils.py
# Distance → display string conversion.
# Every formatted distance is "<value> <unit>" with exactly one space.

from typing import Dict, Tuple


# unit system → (high unit, low unit, metres per high unit, metres per low unit)
_UNIT_TABLE: Dict[str, Tuple[str, str, float, float]] = {
    "metric":   ("km", "m",  1000.0,   1.0),
    "imperial": ("mi", "ft", 1609.344, 0.3048),
    "yards":    ("mi", "yd", 1609.344, 0.9144),
}


def format_distance(meters: float, units: str = "metric") -> str:
    """
    Format a distance for display.

    Below one low unit the result is "0 <low>". Below one high unit the value
    is a whole number of low units, otherwise high units with one decimal.

    Args:
        meters: Distance in metres.
        units:  "metric", "imperial" or "yards".

    Returns:
        Formatted string such as "350 m" or "1.2 km".
    """
    try:
        high, low, high_f, low_f = _UNIT_TABLE[units]
    except KeyError:
        raise ValueError(f"Unknown unit system: {units!r}") from None

    low_value = meters / low_f
    if low_value < 1.0:
        return f"0 {low}"
    if meters >= high_f:
        return f"{meters / high_f:.1f} {high}"
    return f"{low_value:.0f} {low}"


def split_distance(formatted: str) -> Tuple[str, str]:
    """Split "1.2 km" into ("1.2", "km") at the first space."""
    value, sep, suffix = formatted.partition(" ")
    if not sep:
        raise ValueError(f"Formatted distance has no unit separator: {formatted!r}")
    return value, suffix
