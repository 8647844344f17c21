# geo_utils.py
# Pure mathematical / geometric helper functions.
# No side effects, no imports from other project modules.

import math
from typing import Tuple

import numpy as np


EARTH_RADIUS_M = 6_378_137.0
MAX_MERCATOR_LAT = 85.051128779806


# ---------------------------------------------------------------------------
# Spherical mercator projection (metres)
# ---------------------------------------------------------------------------

def lon_to_x(lon: float) -> float:
    return EARTH_RADIUS_M * math.radians(lon)


def lat_to_y(lat: float) -> float:
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    return EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))


def x_to_lon(x: float) -> float:
    return math.degrees(x / EARTH_RADIUS_M)


def y_to_lat(y: float) -> float:
    return math.degrees(2 * math.atan(math.exp(y / EARTH_RADIUS_M)) - math.pi / 2)


def mercator_scale(y):
    """
    Ground metres per projected unit at mercator y, i.e. cos(latitude).

    Accepts a scalar or an array of y values.
    """
    return 1.0 / np.cosh(np.asarray(y, dtype=np.float64) / EARTH_RADIUS_M)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


# ---------------------------------------------------------------------------
# Polyline geometry
# ---------------------------------------------------------------------------

def cumulative_distances(points: np.ndarray) -> np.ndarray:
    """
    Running ground length of a mercator polyline, in metres.

    Each segment is scaled by cos(latitude) at its midpoint.

    Args:
        points: (N, 2) array of projected coordinates.

    Returns:
        (N,) array, first element 0.0, non-decreasing.
    """
    if len(points) == 0:
        return np.zeros(0)
    mid_y = (points[:-1, 1] + points[1:, 1]) / 2
    seg = np.hypot(*np.diff(points, axis=0).T) * mercator_scale(mid_y)
    return np.concatenate(([0.0], np.cumsum(seg)))


def project_onto_segments(
    point: np.ndarray, starts: np.ndarray, ends: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Orthogonal projection of one point onto many segments at once.

    Args:
        point:  (2,) array.
        starts: (M, 2) segment start points.
        ends:   (M, 2) segment end points.

    Returns:
        (projections (M, 2), parameters t in [0, 1] (M,), squared distances (M,))
    """
    d = ends - starts
    len_sq = np.einsum("ij,ij->i", d, d)
    rel = point - starts
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(len_sq > 0.0, np.einsum("ij,ij->i", rel, d) / len_sq, 0.0)
    t = np.clip(t, 0.0, 1.0)
    proj = starts + d * t[:, None]
    diff = proj - point
    return proj, t, np.einsum("ij,ij->i", diff, diff)


# ---------------------------------------------------------------------------
# Float comparison
# ---------------------------------------------------------------------------

def _ordered_bits(value: float) -> int:
    bits = int(np.array(value, dtype=np.float64).view(np.int64))
    # Map negative floats so the integer order matches the float order.
    return bits if bits >= 0 else -(1 << 63) - bits


def almost_equal_ulps(x: float, y: float, max_ulps: int) -> bool:
    """
    True when x and y are fewer than max_ulps representable doubles apart.

    Relative comparison: the allowed absolute gap scales with magnitude.
    """
    if math.isnan(x) or math.isnan(y):
        return False
    if x == y:
        return True
    return abs(_ordered_bits(x) - _ordered_bits(y)) < max_ulps
