import threading

import pytest
import requests

from navigation.routing.geo_utils import lat_to_y, lon_to_x
from navigation.routing.models import GpsInfo, Point, ResultCode, RouterProfile, TurnDirection, TurnItem
from navigation.routing.nav_config import NavConfig
from navigation.routing.osrm_router import OSRMError, OsrmRouter, maneuver_to_turn, route_from_osrm

BASE_URL = "http://osrm.test:5000"

START = Point(lon_to_x(32.0), lat_to_y(39.0))
FINISH = Point(lon_to_x(32.001), lat_to_y(39.001))

OK_RESPONSE = {
    "code": "Ok",
    "routes": [{
        "legs": [{
            "steps": [
                {
                    "maneuver": {"type": "depart"},
                    "geometry": {"coordinates": [[32.0, 39.0], [32.001, 39.0]]},
                    "duration": 10.0,
                },
                {
                    "maneuver": {"type": "turn", "modifier": "left"},
                    "geometry": {"coordinates": [[32.001, 39.0], [32.001, 39.001]]},
                    "duration": 12.0,
                },
                {
                    "maneuver": {"type": "arrive"},
                    "geometry": {"coordinates": [[32.001, 39.001], [32.001, 39.001]]},
                    "duration": 0.0,
                },
            ],
        }],
    }],
}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeGet:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def osrm():
    router = OsrmRouter(RouterProfile.PEDESTRIAN, config=NavConfig(), base_url=BASE_URL + "/")
    yield router
    router.close()


def _patch_get(monkeypatch, **kwargs) -> FakeGet:
    fake = FakeGet(**kwargs)
    monkeypatch.setattr("navigation.routing.osrm_router.requests.get", fake)
    return fake


def _calculate(router):
    return router.calculate(START, FINISH, threading.Event())


# ---------------------------------------------------------------------------
# Response conversion
# ---------------------------------------------------------------------------

def test_route_from_osrm_builds_points_turns_and_times():
    route = route_from_osrm("osrm-pedestrian", OK_RESPONSE, NavConfig())

    assert route.is_valid()
    assert len(route.points) == 3
    assert route.points[0] == START
    assert route.points[-1] == FINISH
    assert [(t.index, t.turn) for t in route.turns] == [
        (1, TurnDirection.TURN_LEFT),
        (2, TurnDirection.REACHED_YOUR_DESTINATION),
    ]
    assert route.get_time() == pytest.approx(22.0)
    assert route.move_iterator(GpsInfo(10.0, route.points[1], 5.0))
    assert route.get_time() == pytest.approx(12.0)


def test_route_from_osrm_rejects_malformed_payload():
    with pytest.raises(OSRMError):
        route_from_osrm("osrm", {"code": "Ok", "routes": []}, NavConfig())


@pytest.mark.parametrize("maneuver, expected", [
    ({"type": "depart"}, None),
    ({"type": "continue", "modifier": "straight"}, None),
    ({"type": "continue", "modifier": "left"}, TurnItem(turn=TurnDirection.TURN_LEFT)),
    ({"type": "turn", "modifier": "sharp right"}, TurnItem(turn=TurnDirection.TURN_SHARP_RIGHT)),
    ({"type": "roundabout", "modifier": "right", "exit": 2},
     TurnItem(turn=TurnDirection.ENTER_ROUND_ABOUT, exit_num=2)),
    ({"type": "exit roundabout"}, TurnItem(turn=TurnDirection.LEAVE_ROUND_ABOUT)),
    ({"type": "off ramp", "modifier": "slight right"}, TurnItem(turn=TurnDirection.TAKE_THE_EXIT)),
    ({"type": "arrive"}, TurnItem(turn=TurnDirection.REACHED_YOUR_DESTINATION)),
])
def test_maneuver_to_turn(maneuver, expected):
    assert maneuver_to_turn(maneuver) == expected


# ---------------------------------------------------------------------------
# HTTP side
# ---------------------------------------------------------------------------

def test_requests_walking_route_with_steps(osrm, monkeypatch):
    fake = _patch_get(monkeypatch, response=FakeResponse(OK_RESPONSE))

    route, code = _calculate(osrm)

    assert code == ResultCode.NO_ERROR
    assert route.router_name == "osrm-pedestrian"
    url, params, timeout = fake.calls[0]
    assert url.startswith(BASE_URL + "/route/v1/walking/")
    assert params["steps"] == "true"
    assert params["geometries"] == "geojson"
    assert timeout == osrm.config.router_timeout_s


@pytest.mark.parametrize("payload, expected", [
    ({"code": "NoRoute", "message": "Impossible route between points"}, ResultCode.ROUTE_NOT_FOUND),
    ({"code": "NoSegment", "message": "Could not find a matching segment for coordinate 1"},
     ResultCode.END_POINT_NOT_FOUND),
    ({"code": "NoSegment", "message": "Could not find a matching segment for coordinate 0"},
     ResultCode.START_POINT_NOT_FOUND),
    ({"code": "InvalidQuery"}, ResultCode.INTERNAL_ERROR),
])
def test_osrm_error_codes(osrm, monkeypatch, payload, expected):
    _patch_get(monkeypatch, response=FakeResponse(payload, status_code=400))

    route, code = _calculate(osrm)

    assert code == expected
    assert not route.is_valid()


def test_connection_error_is_internal_error(osrm, monkeypatch):
    _patch_get(monkeypatch, error=requests.ConnectionError("refused"))

    route, code = _calculate(osrm)

    assert code == ResultCode.INTERNAL_ERROR
    assert not route.is_valid()


def test_non_json_answer_is_internal_error(osrm, monkeypatch):
    _patch_get(monkeypatch, response=FakeResponse(None, status_code=502))

    assert _calculate(osrm)[1] == ResultCode.INTERNAL_ERROR


def test_cancel_during_request(osrm, monkeypatch):
    _patch_get(monkeypatch, response=FakeResponse(OK_RESPONSE))
    cancelled = threading.Event()
    cancelled.set()

    route, code = osrm.calculate(START, FINISH, cancelled)

    assert code == ResultCode.CANCELLED
    assert not route.is_valid()


def test_answers_are_cached_until_clear_state(osrm, monkeypatch):
    fake = _patch_get(monkeypatch, response=FakeResponse(OK_RESPONSE))

    _calculate(osrm)
    _calculate(osrm)
    assert len(fake.calls) == 1

    osrm.clear_state()
    _calculate(osrm)
    assert len(fake.calls) == 2


def test_requires_base_url():
    with pytest.raises(ValueError):
        OsrmRouter(config=NavConfig(osrm_base_url=None))


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("OSRM_BASE_URL", BASE_URL)

    router = OsrmRouter(RouterProfile.BICYCLE)

    assert router.base_url == BASE_URL
    assert router.name == "osrm-bicycle"
    router.close()
