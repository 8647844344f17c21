# models.py
# Shared data structures and enums used across all modules.

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .geo_utils import lat_to_y, lon_to_x


# ---------------------------------------------------------------------------
# Coordinates and location fixes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """Immutable projected map coordinate (spherical mercator, R = 6378137 m)."""
    x: float
    y: float


@dataclass(frozen=True)
class GpsInfo:
    """A single location fix, already projected to map coordinates."""
    timestamp: float                       # seconds
    position: Point
    horizontal_accuracy: float             # metres
    speed: Optional[float] = None          # m/s, when the sensor reports it

    @property
    def has_speed(self) -> bool:
        return self.speed is not None and self.speed >= 0.0

    @staticmethod
    def from_lat_lon(
        timestamp: float,
        lat: float,
        lon: float,
        accuracy: float,
        speed: Optional[float] = None,
    ) -> "GpsInfo":
        """Build a fix from raw sensor values (decimal degrees)."""
        return GpsInfo(
            timestamp=float(timestamp),
            position=Point(lon_to_x(lon), lat_to_y(lat)),
            horizontal_accuracy=float(accuracy),
            speed=speed,
        )


# ---------------------------------------------------------------------------
# Turn instructions
# ---------------------------------------------------------------------------

class TurnDirection(Enum):
    NO_TURN                   = "no_turn"
    GO_STRAIGHT               = "go_straight"
    TURN_RIGHT                = "turn_right"
    TURN_SHARP_RIGHT          = "turn_sharp_right"
    TURN_SLIGHT_RIGHT         = "turn_slight_right"
    TURN_LEFT                 = "turn_left"
    TURN_SHARP_LEFT           = "turn_sharp_left"
    TURN_SLIGHT_LEFT          = "turn_slight_left"
    U_TURN                    = "u_turn"
    TAKE_THE_EXIT             = "take_the_exit"
    ENTER_ROUND_ABOUT         = "enter_round_about"
    LEAVE_ROUND_ABOUT         = "leave_round_about"
    STAY_ON_ROUND_ABOUT       = "stay_on_round_about"
    START_AT_END_OF_STREET    = "start_at_end_of_street"
    REACHED_YOUR_DESTINATION  = "reached_your_destination"


@dataclass(frozen=True)
class TurnItem:
    """A manoeuvre at polyline point `index`."""
    index: int = 0
    turn: TurnDirection = TurnDirection.NO_TURN
    exit_num: int = 0                      # roundabout exit, 0 if not applicable


@dataclass(frozen=True)
class TimeItem:
    """Estimated seconds from the route start to polyline point `index`."""
    index: int
    time_s: float


# ---------------------------------------------------------------------------
# Router results
# ---------------------------------------------------------------------------

class ResultCode(Enum):
    NO_ERROR                    = 0
    CANCELLED                   = 1
    NO_CURRENT_POSITION         = 2
    INCONSISTENT_MWM_AND_ROUTE  = 3
    START_POINT_NOT_FOUND       = 4
    END_POINT_NOT_FOUND         = 5
    POINTS_IN_DIFFERENT_MWM     = 6
    ROUTE_NOT_FOUND             = 7
    INTERNAL_ERROR              = 8

    NO_ROUTE                    = 7        # alias of ROUTE_NOT_FOUND


class RouterProfile(Enum):
    CAR        = "car"
    PEDESTRIAN = "pedestrian"
    BICYCLE    = "bicycle"


# ---------------------------------------------------------------------------
# Session status
# ---------------------------------------------------------------------------

class SessionState(Enum):
    INACTIVE      = "inactive"
    BUILDING      = "building"
    NOT_READY     = "not_ready"
    NOT_STARTED   = "not_started"
    ON_ROUTE      = "on_route"
    NEED_REBUILD  = "need_rebuild"
    FINISHED      = "finished"

    BUILD_FAILED  = "not_ready"            # a failed build leaves the session NOT_READY


@dataclass
class FollowingInfo:
    """Presentation-ready progress snapshot. All fields empty when no route."""
    dist_to_target: str = ""
    target_units_suffix: str = ""
    dist_to_turn: str = ""
    turn_units_suffix: str = ""
    turn: TurnDirection = TurnDirection.NO_TURN
    exit_num: int = 0
    time: int = 0                          # remaining seconds

    def is_valid(self) -> bool:
        return bool(self.dist_to_target)

    def to_dict(self) -> dict:
        return {
            "dist_to_target": self.dist_to_target,
            "target_units_suffix": self.target_units_suffix,
            "dist_to_turn": self.dist_to_turn,
            "turn_units_suffix": self.turn_units_suffix,
            "turn": self.turn.value,
            "exit_num": self.exit_num,
            "time": self.time,
        }
