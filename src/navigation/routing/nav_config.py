# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass, field
from typing import Optional


# ---------------------------------------------------------------------------
# Off-route detection constants
# ---------------------------------------------------------------------------

ON_ROUTE_MISSED_COUNT: int = 5

# Tolerance (in units in the last place) under which two squared distances
# count as equal. GPS jitter, not real movement.
DISTANCE_EQUAL_MAX_ULPS: int = 1 << 16

UNIT_SYSTEMS: frozenset = frozenset({"metric", "imperial", "yards"})


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Off-route hysteresis
    on_route_missed_count: int = ON_ROUTE_MISSED_COUNT
    distance_equal_max_ulps: int = DISTANCE_EQUAL_MAX_ULPS

    # Route matching
    matching_threshold_m: float = 50.0     # minimum radius when snapping a fix to the route
    on_end_tolerance_m: float = 10.0       # closer than this to the end → cursor on last point
    prediction_max_dt_s: float = 60.0      # older fixes are not used for speed prediction

    # Presentation
    units: str = "metric"                  # "metric" | "imperial" | "yards"

    # Routing data files
    data_dir: str = "."
    routing_file_ext: str = ".routing"

    # Router
    osrm_base_url: Optional[str] = field(default_factory=lambda: os.getenv("OSRM_BASE_URL"))
    router_timeout_s: float = 10.0

    # Logging
    log_dir: str = "."                     # directory for the session event log
    event_log_enabled: bool = False
    event_log_filename: str = "nav_session.jsonl"

    def __post_init__(self) -> None:
        if self.units not in UNIT_SYSTEMS:
            raise ValueError(f"Unknown unit system {self.units!r}; expected one of {sorted(UNIT_SYSTEMS)}")
        if self.on_route_missed_count < 0:
            raise ValueError("on_route_missed_count must be >= 0")

    def routing_data_path(self, profile_id: str) -> str:
        return os.path.join(self.data_dir, f"{profile_id}{self.routing_file_ext}")

    @property
    def event_log_filepath(self) -> str:
        return os.path.join(self.log_dir, self.event_log_filename)
