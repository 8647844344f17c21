from typing import Callable, List, Optional

import pytest

from navigation.routing.models import Point, ResultCode, TimeItem, TurnDirection, TurnItem
from navigation.routing.nav_config import NavConfig
from navigation.routing.route import Route
from navigation.routing.router import ReadyCallback, Router


class FakeRouter(Router):
    """
    In-memory router. Answers right away, or holds the callbacks until
    complete() is called when `deferred` is set.
    """

    def __init__(
        self,
        make_route: Callable[[], Route],
        code: ResultCode = ResultCode.NO_ERROR,
        deferred: bool = False,
        name: str = "fake",
    ) -> None:
        self._make_route = make_route
        self._name = name
        self.code = code
        self.deferred = deferred
        self.final_point: Optional[Point] = None
        self.starts: List[Point] = []
        self.pending: List[ReadyCallback] = []
        self.built: List[Route] = []
        self.cleared = 0
        self.cancelled = 0
        self.closed = 0

    @property
    def name(self) -> str:
        return self._name

    def set_final_point(self, point: Point) -> None:
        self.final_point = point

    def calculate_route(self, start: Point, callback: ReadyCallback) -> None:
        self.starts.append(start)
        if self.deferred:
            self.pending.append(callback)
        else:
            self._answer(callback, self.code, self._make_route)

    def clear_state(self) -> None:
        self.cleared += 1

    def cancel(self) -> None:
        self.cancelled += 1

    def close(self) -> None:
        self.closed += 1

    def complete(
        self,
        index: int = 0,
        code: Optional[ResultCode] = None,
        make_route: Optional[Callable[[], Route]] = None,
    ) -> None:
        callback = self.pending.pop(index)
        self._answer(callback, self.code if code is None else code, make_route or self._make_route)

    def _answer(self, callback: ReadyCallback, code: ResultCode, make_route: Callable[[], Route]) -> None:
        route = make_route() if code == ResultCode.NO_ERROR else Route(self._name)
        self.built.append(route)
        callback(route, code)


@pytest.fixture
def config() -> NavConfig:
    return NavConfig(matching_threshold_m=5.0, on_end_tolerance_m=10.0)


@pytest.fixture
def make_route(config) -> Callable[..., Route]:
    """(0,0) → (100,0) → (200,0), left turn at the middle point, 1 m/s."""

    def factory(name: str = "fake") -> Route:
        return Route(
            name,
            points=[Point(0, 0), Point(100, 0), Point(200, 0)],
            turns=[
                TurnItem(1, TurnDirection.TURN_LEFT),
                TurnItem(2, TurnDirection.REACHED_YOUR_DESTINATION),
            ],
            times=[TimeItem(0, 0.0), TimeItem(1, 100.0), TimeItem(2, 200.0)],
            config=config,
        )

    return factory


@pytest.fixture
def router(make_route) -> FakeRouter:
    return FakeRouter(make_route)


@pytest.fixture
def deferred_router(make_route) -> FakeRouter:
    return FakeRouter(make_route, deferred=True)


@pytest.fixture
def failing_router(make_route) -> FakeRouter:
    return FakeRouter(make_route, code=ResultCode.ROUTE_NOT_FOUND)


@pytest.fixture
def empty_router() -> FakeRouter:
    """Claims success but hands back a route with no points."""
    return FakeRouter(lambda: Route("fake"))
