# route.py
# Planned path (polyline + turns + time estimates) with a forward-only
# progress cursor. move_iterator() is the only method that changes progress.

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .geo_utils import cumulative_distances, mercator_scale, project_onto_segments
from .models import GpsInfo, Point, TimeItem, TurnItem
from .nav_config import NavConfig

logger = logging.getLogger(__name__)

PointLike = Union[Point, Tuple[float, float], Sequence[float]]


def _as_array(points: Iterable[PointLike]) -> np.ndarray:
    coords = [(p.x, p.y) if isinstance(p, Point) else (float(p[0]), float(p[1])) for p in points]
    if not coords:
        return np.zeros((0, 2))
    return np.asarray(coords, dtype=np.float64)


class Route:
    """
    A computed route and the agent's position along it.

    The cursor is a segment index plus the projected point on that segment.
    It only ever moves forward; once it reaches the final polyline point it
    stays there until the route is reset or swapped out.

    Args:
        router_name: Name of the router that built the route.
        points:      Mercator polyline, at least two points. Empty → invalid route.
        turns:       TurnItem list; indices refer to polyline points.
        times:       TimeItem list of cumulative seconds from the start.
        config:      NavConfig with matching tolerances.
    """

    def __init__(
        self,
        router_name: str = "",
        points: Optional[Iterable[PointLike]] = None,
        turns: Optional[Iterable[TurnItem]] = None,
        times: Optional[Iterable[TimeItem]] = None,
        config: Optional[NavConfig] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._router_name = router_name
        self._set_geometry(
            _as_array(points or []),
            list(turns or []),
            list(times or []),
        )

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _set_geometry(self, poly: np.ndarray, turns: List[TurnItem], times: List[TimeItem]) -> None:
        if len(poly) == 1:
            raise ValueError("A route needs at least two points")
        for item in [*turns, *times]:
            if not 0 <= item.index < len(poly):
                raise ValueError(f"Index {item.index} outside polyline of {len(poly)} points")

        self._poly = poly
        self._cum_dist = cumulative_distances(poly)
        self._turns = sorted(turns, key=lambda t: t.index)
        self._times = sorted(times, key=lambda t: t.index)
        if any(b.time_s < a.time_s for a, b in zip(self._times, self._times[1:])):
            raise ValueError("Route time estimates must be non-decreasing")

        self._current_index = 0
        self._current_dist = 0.0
        self._current_point = poly[0].copy() if len(poly) else None
        self._current_time: Optional[float] = None

    def reset(self) -> None:
        """Drop the geometry and make the route invalid."""
        self._router_name = ""
        self._set_geometry(np.zeros((0, 2)), [], [])

    def swap(self, other: "Route") -> None:
        """Exchange all contents with another route (ownership transfer)."""
        self.__dict__, other.__dict__ = other.__dict__, self.__dict__

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def router_name(self) -> str:
        return self._router_name

    @property
    def points(self) -> List[Point]:
        return [Point(float(x), float(y)) for x, y in self._poly]

    @property
    def turns(self) -> Tuple[TurnItem, ...]:
        return tuple(self._turns)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_point(self) -> Optional[Point]:
        if self._current_point is None:
            return None
        return Point(float(self._current_point[0]), float(self._current_point[1]))

    @property
    def total_distance(self) -> float:
        return float(self._cum_dist[-1]) if len(self._cum_dist) else 0.0

    def is_valid(self) -> bool:
        return len(self._poly) >= 2

    def is_current_on_end(self) -> bool:
        return self.is_valid() and self._current_dist >= self.total_distance

    # ------------------------------------------------------------------
    # Progress (the only mutating operation)
    # ------------------------------------------------------------------

    def move_iterator(self, info: GpsInfo) -> bool:
        """
        Snap a location fix onto the route at or ahead of the cursor.

        Args:
            info: Location fix in projected coordinates.

        Returns:
            True if the fix matched the route and the cursor moved to it.
        """
        if not self.is_valid():
            return False

        predict_distance = -1.0
        if self._current_time is not None and info.has_speed:
            dt = info.timestamp - self._current_time
            if 0.0 < dt < self.config.prediction_max_dt_s:
                predict_distance = info.speed * dt

        radius = max(self.config.matching_threshold_m, info.horizontal_accuracy)
        found = self._find_projection(info.position, radius, predict_distance)
        if found is None:
            return False

        index, point, dist = found
        if self.total_distance - dist <= self.config.on_end_tolerance_m:
            index = max(len(self._poly) - 2, 0)
            point = self._poly[-1].copy()
            dist = self.total_distance

        self._current_index = index
        self._current_point = point
        self._current_dist = dist
        self._current_time = info.timestamp
        return True

    def _segments(self, first: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._poly[first:-1], self._poly[first + 1:]

    def _find_projection(
        self, position: Point, radius: float, predict_distance: float
    ) -> Optional[Tuple[int, np.ndarray, float]]:
        first = self._current_index
        starts, ends = self._segments(first)
        pos = np.array([position.x, position.y])
        proj, t, sq = project_onto_segments(pos, starts, ends)

        seg_start = self._cum_dist[first:first + len(starts)]
        seg_len = np.diff(self._cum_dist)[first:first + len(starts)]
        along = seg_start + t * seg_len

        # The cursor's own segment: never step back behind the cursor.
        if along[0] < self._current_dist:
            along[0] = self._current_dist
            proj[0] = self._current_point

        # radius is in metres; sq is in projected units at the fix latitude.
        radius_proj = radius / float(mercator_scale(position.y))
        candidates = np.flatnonzero(sq <= radius_proj * radius_proj)
        if candidates.size == 0:
            return None

        if predict_distance >= 0.0:
            target = self._current_dist + predict_distance
            best = candidates[np.argmin(np.abs(along[candidates] - target))]
        else:
            best = candidates[np.argmin(sq[candidates])]

        index = first + int(best)
        # A projection on a segment's end point belongs to the next segment.
        if t[best] >= 1.0 and index + 2 < len(self._poly):
            index += 1
        return index, proj[best].copy(), float(along[best])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_sq_distance(self, point: Point) -> float:
        """Squared ground distance (m²) from point to the nearest point of the route."""
        if not self.is_valid():
            return 0.0
        starts, ends = self._segments(0)
        _, _, sq = project_onto_segments(np.array([point.x, point.y]), starts, ends)
        return float(sq.min()) * float(mercator_scale(point.y)) ** 2

    def get_current_distance_to_end(self) -> float:
        if not self.is_valid():
            return 0.0
        return max(0.0, self.total_distance - self._current_dist)

    def get_turn(self) -> Tuple[float, TurnItem]:
        """Distance along the route to the next turn, and that turn."""
        if self.is_valid():
            for turn in self._turns:
                if turn.index > self._current_index:
                    return max(0.0, float(self._cum_dist[turn.index]) - self._current_dist), turn
        return 0.0, TurnItem()

    def get_time(self) -> float:
        """Estimated seconds remaining from the cursor to the end."""
        if not self.is_valid() or not self._times:
            return 0.0
        xs = [float(self._cum_dist[t.index]) for t in self._times]
        ys = [t.time_s for t in self._times]
        if xs[0] > 0.0:
            xs.insert(0, 0.0)
            ys.insert(0, 0.0)
        elapsed = float(np.interp(self._current_dist, xs, ys))
        return max(0.0, ys[-1] - elapsed)

    def __repr__(self) -> str:
        return (
            f"Route(router={self._router_name!r}, points={len(self._poly)}, "
            f"turns={len(self._turns)}, passed={self._current_dist:.1f}/{self.total_distance:.1f} m)"
        )
