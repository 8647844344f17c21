# main.py
# Entry point: builds a route through OSRM and replays simulated GPS fixes
# along it through a RoutingSession.
# In production, replace replay_fixes() with your real location source.

import argparse
import logging
import time
from typing import Iterator, List, Optional

import numpy as np

from .dispatch import OwnerThreadQueue
from .geo_utils import cumulative_distances
from .models import GpsInfo, Point, ResultCode, RouterProfile, SessionState
from .nav_config import NavConfig
from .osrm_router import OsrmRouter
from .route import Route
from .routing_session import RoutingSession

logger = logging.getLogger(__name__)

# Simulation coordinates (Sıhhiye → Kurtuluş, Ankara)
ORIGIN      = (39.92409, 32.845382)
DESTINATION = (39.9210086, 32.8529793)


def replay_fixes(
    points: List[Point],
    step_m: float = 20.0,
    speed_ms: float = 1.4,
    accuracy_m: float = 5.0,
    start_time: float = 0.0,
) -> Iterator[GpsInfo]:
    """
    Fake fixes every `step_m` metres along a polyline, ending on its last point.

    Args:
        points:     Mercator polyline; spacing is measured in ground metres.
        step_m:     Spacing between fixes.
        speed_ms:   Simulated speed; also sets the fix timestamps.
        accuracy_m: Reported horizontal accuracy.
        start_time: Timestamp of the first fix.
    """
    if not points:
        return
    poly = np.array([(p.x, p.y) for p in points])
    cum = cumulative_distances(poly)
    total = float(cum[-1])
    marks = np.append(np.arange(0.0, total, step_m), total)

    xs = np.interp(marks, cum, poly[:, 0])
    ys = np.interp(marks, cum, poly[:, 1])
    for dist, x, y in zip(marks, xs, ys):
        yield GpsInfo(
            timestamp=start_time + float(dist) / speed_ms,
            position=Point(float(x), float(y)),
            horizontal_accuracy=accuracy_m,
            speed=speed_ms,
        )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Route-following session replay")
    parser.add_argument("--osrm-url", default=None,
                        help="OSRM server base URL (default: $OSRM_BASE_URL)")
    parser.add_argument("--profile", default=RouterProfile.PEDESTRIAN.value,
                        choices=[p.value for p in RouterProfile],
                        help="Travel profile (default: pedestrian)")
    parser.add_argument("--units", default="metric", choices=["metric", "imperial", "yards"])
    parser.add_argument("--step", type=float, default=20.0,
                        help="Metres between simulated fixes (default: 20)")
    parser.add_argument("--log-dir", default="logs")
    args = parser.parse_args(argv)

    # ------------------------------------------------------------------
    # Logging setup: configure once here, all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = NavConfig(units=args.units, log_dir=args.log_dir, event_log_enabled=True)
    router = OsrmRouter(RouterProfile(args.profile), config=config, base_url=args.osrm_url)
    tasks = OwnerThreadQueue()
    session = RoutingSession(router, config=config, dispatcher=tasks.post)

    def on_ready(route: Route, code: ResultCode) -> None:
        print(f"[Nav] Build finished: {code.name}, {route}")

    try:
        start = GpsInfo.from_lat_lon(time.time(), *ORIGIN, accuracy=5.0).position
        finish = GpsInfo.from_lat_lon(time.time(), *DESTINATION, accuracy=5.0).position
        session.build_route(start, finish, on_ready)
        if not tasks.wait_and_run(timeout=config.router_timeout_s + 5.0):
            print("[Nav] Router did not answer in time.")
            return 1
        if session.state != SessionState.NOT_STARTED:
            print(f"[Nav] Could not start navigation: {session.state.name}")
            return 1

        print("\n--- GPS Loop Active ---")
        for fix in replay_fixes(session.route.points, step_m=args.step):
            state = session.on_location_position_changed(fix.position, fix)
            info = session.get_route_following_info()
            print(
                f"  [{state.name}] {info.dist_to_target} {info.target_units_suffix} left, "
                f"{info.turn.value} in {info.dist_to_turn} {info.turn_units_suffix}, "
                f"{info.time} s"
            )
            if state == SessionState.NEED_REBUILD:
                print("  ⚠  Off-route detected, rebuilding.")
                session.rebuild_route(fix.position, on_ready)
                tasks.wait_and_run(timeout=config.router_timeout_s + 5.0)
            elif state == SessionState.FINISHED:
                print("  ✓  Destination reached. Navigation ended.")
                break
    finally:
        router.close()

    print("\n--- Session complete ---")
    print(f"    Event log written to: {config.event_log_filepath}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
