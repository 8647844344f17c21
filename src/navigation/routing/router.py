# router.py
# Router capability consumed by RoutingSession, plus a worker-thread base
# class for routers whose calculation blocks (network, disk, heavy search).

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Tuple

from .models import Point, ResultCode
from .nav_config import NavConfig
from .route import Route

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[Route, ResultCode], None]


class RoutingError(Exception):
    """Base class for routing errors."""
    pass


class RouterNotSetError(RoutingError):
    """Raised when a session operation needs a router and none is set."""
    pass


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------

class Router(ABC):
    """
    Computes a Route from a start point to a previously set final point.

    calculate_route() may return before the route is ready; the callback is
    invoked exactly once per request, possibly from another thread.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def set_final_point(self, point: Point) -> None:
        ...

    @abstractmethod
    def calculate_route(self, start: Point, callback: ReadyCallback) -> None:
        ...

    @abstractmethod
    def clear_state(self) -> None:
        """Drop any cached routing state."""
        ...

    def cancel(self) -> None:
        """Give up on the request in flight, if the router supports it."""
        pass

    def close(self) -> None:
        """Release threads or connections held by the router."""
        pass


# ---------------------------------------------------------------------------
# Worker-thread base
# ---------------------------------------------------------------------------

class AsyncRouter(Router):
    """
    Runs calculate() on a single worker thread.

    A new request cancels the previous one. A cancelled request still calls
    back, with ResultCode.CANCELLED and an empty route.

    Args:
        config: NavConfig passed to the routes this router builds.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._final_point: Optional[Point] = None
        self._cancel_event: Optional[threading.Event] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="router")

    @property
    def final_point(self) -> Optional[Point]:
        return self._final_point

    def set_final_point(self, point: Point) -> None:
        self._final_point = point

    def calculate_route(self, start: Point, callback: ReadyCallback) -> None:
        self.cancel()
        cancelled = threading.Event()
        self._cancel_event = cancelled
        future = self._executor.submit(self._run, start, self._final_point, cancelled, callback)
        future.add_done_callback(self._log_failure)

    def cancel(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()

    def close(self) -> None:
        """Cancel outstanding work and stop the worker thread."""
        self.cancel()
        self._executor.shutdown(wait=True)

    @abstractmethod
    def calculate(
        self, start: Point, final: Point, cancelled: threading.Event
    ) -> Tuple[Route, ResultCode]:
        """Blocking route calculation. Runs on the worker thread."""
        ...

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(
        self,
        start: Point,
        final: Optional[Point],
        cancelled: threading.Event,
        callback: ReadyCallback,
    ) -> None:
        if final is None:
            route, code = Route(self.name, config=self.config), ResultCode.END_POINT_NOT_FOUND
        elif cancelled.is_set():
            route, code = Route(self.name, config=self.config), ResultCode.CANCELLED
        else:
            try:
                route, code = self.calculate(start, final, cancelled)
            except Exception:
                logger.exception(f"[{self.name}] Route calculation crashed.")
                route, code = Route(self.name, config=self.config), ResultCode.INTERNAL_ERROR

            if cancelled.is_set() and code == ResultCode.NO_ERROR:
                route.reset()
                code = ResultCode.CANCELLED

        logger.debug(f"[{self.name}] Route calculation finished: {code.name}")
        callback(route, code)

    def _log_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(f"[{self.name}] Route callback raised: {exc!r}")
