# routing_session.py
# State machine that mediates between "a route exists" and "the agent is
# following it". Build once, then call on_location_position_changed() on
# every location fix.

import logging
from typing import Callable, Optional

from .dispatch import Task, run_inline
from .geo_utils import almost_equal_ulps
from .measurement_utils import format_distance, split_distance
from .models import FollowingInfo, GpsInfo, Point, ResultCode, SessionState
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .route import Route
from .router import ReadyCallback, Router, RouterNotSetError

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Task], None]


class _ReadyCallback:
    """
    Completion handler for one build request.

    Fires at most once. The result is handed to the session's dispatcher
    together with the generation it was issued for; the session drops it if
    a newer build or a reset happened in between.
    """

    def __init__(self, session: "RoutingSession", generation: int, callback: Optional[ReadyCallback]) -> None:
        self._session = session
        self._generation = generation
        self._callback = callback
        self._fired = False

    def __call__(self, route: Route, code: ResultCode) -> None:
        if self._fired:
            logger.warning(f"Route callback for build #{self._generation} fired twice, ignored.")
            return
        self._fired = True
        self._session._dispatch(
            lambda: self._session._on_route_ready(self._generation, route, code, self._callback)
        )


class RoutingSession:
    """
    Route-following session for a single agent.

    Typical lifecycle:
        session = RoutingSession(router)
        session.build_route(start, finish, on_ready)

        # Location loop:
        state = session.on_location_position_changed(fix.position, fix)
        if state == SessionState.NEED_REBUILD:
            session.rebuild_route(fix.position, on_ready)

    Not thread-safe: call every method from one owner thread. Routers that
    complete on other threads must be paired with a dispatcher that posts to
    the owner thread (see dispatch.OwnerThreadQueue).

    Args:
        router:     Router capability; may be set later with set_router().
        config:     Optional NavConfig; defaults to NavConfig().
        dispatcher: Runs build results on the owner thread. Defaults to
                    running them inline.
    """

    def __init__(
        self,
        router: Optional[Router] = None,
        config: Optional[NavConfig] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._router = router
        self._dispatch: Dispatcher = dispatcher or run_inline
        self._logger = NavLogger(self.config)

        self._route = Route(config=self.config)
        self._state = SessionState.INACTIVE
        self._move_away_counter = 0
        self._last_distance = 0.0
        self._generation = 0

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def route(self) -> Route:
        return self._route

    @property
    def router(self) -> Optional[Router]:
        return self._router

    @property
    def move_away_counter(self) -> int:
        return self._move_away_counter

    @property
    def last_distance(self) -> float:
        return self._last_distance

    @property
    def generation(self) -> int:
        return self._generation

    def is_active(self) -> bool:
        return self._state != SessionState.INACTIVE

    # ------------------------------------------------------------------
    # Route building
    # ------------------------------------------------------------------

    def build_route(self, start: Point, finish: Point, callback: Optional[ReadyCallback] = None) -> None:
        """
        Set the destination on the router and start building a route.

        Raises:
            RouterNotSetError: If no router has been set.
        """
        router = self._require_router()
        router.set_final_point(finish)
        self.rebuild_route(start, callback)

    def rebuild_route(self, start: Point, callback: Optional[ReadyCallback] = None) -> None:
        """
        Throw the current route away and ask the router for a new one from
        `start` to the destination already set on the router.

        The callback gets (route, code) once the router answers, unless a
        newer build or a reset overtakes it.

        Raises:
            RouterNotSetError: If no router has been set.
        """
        router = self._require_router()
        self.reset()
        self._set_state(SessionState.BUILDING)

        generation = self._generation
        logger.info(f"Building route #{generation} with {router.name}.")
        router.calculate_route(start, _ReadyCallback(self, generation, callback))

    def _on_route_ready(
        self,
        generation: int,
        route: Route,
        code: ResultCode,
        callback: Optional[ReadyCallback],
    ) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping stale result of build #{generation} ({code.name}).")
            return

        if code == ResultCode.NO_ERROR and not route.is_valid():
            logger.error(f"Router reported success for build #{generation} with an empty route.")
            code = ResultCode.INTERNAL_ERROR

        if code == ResultCode.NO_ERROR:
            self._route.swap(route)
            self._reset_counters()
            self._set_state(SessionState.NOT_STARTED)
        else:
            logger.warning(f"Route build #{generation} failed: {code.name}")
            self._set_state(SessionState.NOT_READY)

        if callback is not None:
            callback(self._route, code)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Back to INACTIVE: no route, counters cleared, pending build abandoned."""
        if self._state == SessionState.BUILDING and self._router is not None:
            self._router.cancel()
        self._generation += 1
        self._set_state(SessionState.INACTIVE)
        self._reset_counters()
        self._route.reset()

    def set_router(self, router: Optional[Router]) -> None:
        """
        Replace the router. Any route or build in progress is discarded and
        the previous router is closed.
        """
        self.reset()
        old, self._router = self._router, router
        if old is not None and old is not router:
            old.close()
            logger.info(f"Router {old.name} closed.")

    def delete_routing_data(self, profile_id: str) -> None:
        """
        Reset the session, clear the router's cached state and delete the
        routing data file of `profile_id`. File deletion is best-effort.

        Raises:
            RouterNotSetError: If no router has been set.
        """
        router = self._require_router()
        self.reset()
        router.clear_state()
        self._logger.remove_file(self.config.routing_data_path(profile_id))

    # ------------------------------------------------------------------
    # Location update: call this on every fix
    # ------------------------------------------------------------------

    def on_location_position_changed(self, position: Point, info: GpsInfo) -> SessionState:
        """
        Advance the session with a new location fix.

        Args:
            position: Agent position in projected coordinates.
            info:     The fix (timestamp, position, accuracy, speed).

        Returns:
            Session state after the fix.
        """
        state = self._state

        if state == SessionState.INACTIVE:
            logger.debug("Location fix ignored: no active route.")
            return state

        if state in (SessionState.NEED_REBUILD, SessionState.FINISHED, SessionState.BUILDING):
            return state

        if state == SessionState.NOT_READY:
            self._move_away_counter += 1
            if self._move_away_counter > self.config.on_route_missed_count:
                self._set_state(SessionState.NEED_REBUILD)
        elif self._route.move_iterator(info):
            self._reset_counters()
            if self._route.is_current_on_end():
                self._set_state(SessionState.FINISHED)
            else:
                self._set_state(SessionState.ON_ROUTE)
        else:
            self._count_miss(self._route.get_current_sq_distance(position))

        if self.config.event_log_enabled:
            self._logger.log_event(self._state, info, self.get_route_following_info())
        return self._state

    def _count_miss(self, dist: float) -> None:
        """Off-route hysteresis: only sustained, non-shrinking drift counts."""
        if dist > self._last_distance or almost_equal_ulps(
            dist, self._last_distance, self.config.distance_equal_max_ulps
        ):
            self._move_away_counter += 1
            self._last_distance = dist
        else:
            # Getting closer again: a GPS glitch, not a departure.
            self._reset_counters()

        logger.debug(f"Off-route miss {self._move_away_counter}, sq distance {dist:.1f}")
        if self._move_away_counter > self.config.on_route_missed_count:
            self._set_state(SessionState.NEED_REBUILD)

    # ------------------------------------------------------------------
    # Progress query
    # ------------------------------------------------------------------

    def get_route_following_info(self) -> FollowingInfo:
        """Formatted progress for the UI. Empty when there is no valid route."""
        info = FollowingInfo()
        if not self._route.is_valid():
            return info

        units = self.config.units
        info.dist_to_target, info.target_units_suffix = split_distance(
            format_distance(self._route.get_current_distance_to_end(), units)
        )

        dist, turn = self._route.get_turn()
        info.dist_to_turn, info.turn_units_suffix = split_distance(format_distance(dist, units))
        info.turn = turn.turn
        info.exit_num = turn.exit_num

        info.time = int(self._route.get_time())
        return info

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_router(self) -> Router:
        if self._router is None:
            raise RouterNotSetError("RoutingSession has no router; call set_router() first.")
        return self._router

    def _reset_counters(self) -> None:
        self._move_away_counter = 0
        self._last_distance = 0.0

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.info(f"Routing session: {self._state.name} → {state.name}")
            self._state = state
