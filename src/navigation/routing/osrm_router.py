# osrm_router.py
# Router variant backed by an OSRM server's /route service.
# One instance per travel profile; talks HTTP, converts the answer into a Route.

import logging
import re
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

import requests

from .geo_utils import lat_to_y, lon_to_x, x_to_lon, y_to_lat
from .models import Point, ResultCode, RouterProfile, TimeItem, TurnDirection, TurnItem
from .nav_config import NavConfig
from .route import Route
from .router import AsyncRouter, RoutingError

logger = logging.getLogger(__name__)


OSRM_PROFILES: Dict[RouterProfile, str] = {
    RouterProfile.CAR:        "driving",
    RouterProfile.PEDESTRIAN: "walking",
    RouterProfile.BICYCLE:    "cycling",
}

MODIFIER_TURNS: Dict[str, TurnDirection] = {
    "uturn":        TurnDirection.U_TURN,
    "sharp right":  TurnDirection.TURN_SHARP_RIGHT,
    "right":        TurnDirection.TURN_RIGHT,
    "slight right": TurnDirection.TURN_SLIGHT_RIGHT,
    "straight":     TurnDirection.GO_STRAIGHT,
    "slight left":  TurnDirection.TURN_SLIGHT_LEFT,
    "left":         TurnDirection.TURN_LEFT,
    "sharp left":   TurnDirection.TURN_SHARP_LEFT,
}

CACHE_SIZE = 8

_SEGMENT_RE = re.compile(r"coordinate (\d+)")


class OSRMError(RoutingError):
    """OSRM answered with something that is not a usable route."""
    pass


# ---------------------------------------------------------------------------
# Response → Route helpers
# ---------------------------------------------------------------------------

def maneuver_to_turn(maneuver: Dict[str, Any]) -> Optional[TurnItem]:
    """
    Map an OSRM step maneuver to a turn. Index is filled in by the caller.

    Returns:
        TurnItem with index 0, or None for maneuvers that are not turns.
    """
    kind = maneuver.get("type", "")
    modifier = maneuver.get("modifier", "straight")

    if kind in ("depart", "new name", "notification"):
        return None
    if kind == "arrive":
        return TurnItem(turn=TurnDirection.REACHED_YOUR_DESTINATION)
    if kind in ("roundabout", "rotary"):
        return TurnItem(turn=TurnDirection.ENTER_ROUND_ABOUT, exit_num=int(maneuver.get("exit") or 0))
    if kind in ("exit roundabout", "exit rotary"):
        return TurnItem(turn=TurnDirection.LEAVE_ROUND_ABOUT)
    if kind == "off ramp":
        return TurnItem(turn=TurnDirection.TAKE_THE_EXIT)
    if kind == "continue" and modifier == "straight":
        return None
    return TurnItem(turn=MODIFIER_TURNS.get(modifier, TurnDirection.GO_STRAIGHT))


def route_from_osrm(name: str, data: Dict[str, Any], config: NavConfig) -> Route:
    """
    Build a Route from the first route of an OSRM /route response
    requested with steps=true and geometries=geojson.

    Raises:
        OSRMError: If the response has no usable geometry.
    """
    try:
        steps = data["routes"][0]["legs"][0]["steps"]
    except (KeyError, IndexError, TypeError) as e:
        raise OSRMError(f"Malformed OSRM response: {e!r}") from e

    points: List[Point] = []
    turns: List[TurnItem] = []
    times: List[TimeItem] = [TimeItem(0, 0.0)]
    elapsed = 0.0

    for step in steps:
        coords = step.get("geometry", {}).get("coordinates", [])
        step_points = [Point(lon_to_x(lon), lat_to_y(lat)) for lon, lat in coords]

        # Consecutive steps share their boundary point.
        start_index = max(len(points) - 1, 0)
        if points and step_points and step_points[0] != points[-1]:
            start_index = len(points)
        for p in step_points:
            if not points or p != points[-1]:
                points.append(p)

        turn = maneuver_to_turn(step.get("maneuver", {}))
        if turn is not None and points:
            if turn.turn == TurnDirection.REACHED_YOUR_DESTINATION:
                index = len(points) - 1
            else:
                index = min(start_index, len(points) - 1)
            turns.append(TurnItem(index=index, turn=turn.turn, exit_num=turn.exit_num))

        elapsed += float(step.get("duration", 0.0))
        if points:
            item = TimeItem(len(points) - 1, elapsed)
            if times[-1].index == item.index:
                times[-1] = item
            else:
                times.append(item)

    if len(points) < 2:
        raise OSRMError("OSRM route has no geometry.")
    return Route(name, points, turns, times, config=config)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class OsrmRouter(AsyncRouter):
    """
    Route calculation through an OSRM HTTP server.

    Args:
        profile:  Travel profile; selects the OSRM profile in the URL.
        config:   NavConfig with osrm_base_url and router_timeout_s.
        base_url: Overrides config.osrm_base_url.
    """

    def __init__(
        self,
        profile: RouterProfile = RouterProfile.CAR,
        config: Optional[NavConfig] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(config)
        self.profile = profile
        self.base_url = (base_url or self.config.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL not set. Pass base_url or set OSRM_BASE_URL.")
        self.timeout = self.config.router_timeout_s

        self._cache: "OrderedDict[Tuple[float, float, float, float], Dict[str, Any]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"osrm-{self.profile.value}"

    def clear_state(self) -> None:
        with self._cache_lock:
            self._cache.clear()
        logger.info(f"[{self.name}] Cached routes cleared.")

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def calculate(
        self, start: Point, final: Point, cancelled: threading.Event
    ) -> Tuple[Route, ResultCode]:
        empty = Route(self.name, config=self.config)
        key = (start.x, start.y, final.x, final.y)

        with self._cache_lock:
            data = self._cache.get(key)
        if data is None:
            try:
                data = self._request(start, final)
            except requests.RequestException as e:
                logger.warning(f"[{self.name}] OSRM request failed: {e}")
                return empty, ResultCode.INTERNAL_ERROR
            except OSRMError as e:
                logger.warning(f"[{self.name}] {e}")
                return empty, ResultCode.INTERNAL_ERROR

        if cancelled.is_set():
            return empty, ResultCode.CANCELLED

        code = self._result_code(data)
        if code != ResultCode.NO_ERROR:
            logger.info(f"[{self.name}] No route: {data.get('code')} {data.get('message', '')}")
            return empty, code

        try:
            route = route_from_osrm(self.name, data, self.config)
        except OSRMError as e:
            logger.warning(f"[{self.name}] {e}")
            return empty, ResultCode.INTERNAL_ERROR

        with self._cache_lock:
            self._cache[key] = data
            while len(self._cache) > CACHE_SIZE:
                self._cache.popitem(last=False)
        return route, ResultCode.NO_ERROR

    def _request(self, start: Point, final: Point) -> Dict[str, Any]:
        coordinates = ";".join(
            f"{x_to_lon(p.x)},{y_to_lat(p.y)}" for p in (start, final)
        )
        url = f"{self.base_url}/route/v1/{OSRM_PROFILES[self.profile]}/{coordinates}"
        response = requests.get(
            url,
            params={
                "overview": "false",
                "steps": "true",
                "geometries": "geojson",
                "alternatives": "false",
            },
            timeout=self.timeout,
        )
        # OSRM reports routing failures as 4xx with a JSON body.
        try:
            data = response.json()
        except ValueError as e:
            raise OSRMError(f"OSRM returned non-JSON (HTTP {response.status_code})") from e
        if not isinstance(data, dict) or "code" not in data:
            raise OSRMError(f"OSRM returned unexpected payload (HTTP {response.status_code})")
        return data

    @staticmethod
    def _result_code(data: Dict[str, Any]) -> ResultCode:
        code = data.get("code")
        if code == "Ok":
            return ResultCode.NO_ERROR
        if code == "NoRoute":
            return ResultCode.ROUTE_NOT_FOUND
        if code == "NoSegment":
            match = _SEGMENT_RE.search(data.get("message", ""))
            if match and int(match.group(1)) > 0:
                return ResultCode.END_POINT_NOT_FOUND
            return ResultCode.START_POINT_NOT_FOUND
        return ResultCode.INTERNAL_ERROR
