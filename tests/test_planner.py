import pytest
import requests

from wayfinder import planner as planner_module
from wayfinder.models import InstructionType, Position
from wayfinder.planner import (
    DirectRoutePlanner,
    OSRMRoutePlanner,
    RoutePlanningError,
    describe_maneuver,
    maneuver_step_type,
)

OSRM_ROUTE = {
    "distance": 1500.0,
    "duration": 120.0,
    "legs": [{"steps": [
        {"distance": 800.0, "name": "Main Street",
         "maneuver": {"type": "depart", "location": [121.5654, 25.033], "bearing_after": 270}},
        {"distance": 700.0, "name": "Oak Avenue",
         "maneuver": {"type": "turn", "modifier": "left", "location": [121.558, 25.033]}},
        {"distance": 0.0, "name": "Oak Avenue",
         "maneuver": {"type": "arrive", "location": [121.558, 25.04]}},
    ]}],
}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def install(response=None, error=None):
        def get(url, params=None, timeout=None):
            calls.append({"url": url, "params": params, "timeout": timeout})
            if error:
                raise error
            return response
        monkeypatch.setattr(planner_module.requests, "get", get)
        return calls

    return install


def test_osrm_request_uses_lon_lat_order(fake_get):
    calls = fake_get(FakeResponse({"code": "Ok", "routes": [OSRM_ROUTE]}))

    OSRMRoutePlanner("http://osrm.local/").calculate_route(
        Position(25.033, 121.5654), (25.04, 121.558)
    )

    assert calls[0]["url"] == "http://osrm.local/route/v1/driving/121.5654,25.033;121.558,25.04"
    assert calls[0]["params"] == {"steps": "true", "overview": "false"}
    assert calls[0]["timeout"] == 10


def test_osrm_profile_follows_mode(fake_get):
    calls = fake_get(FakeResponse({"code": "Ok", "routes": [OSRM_ROUTE]}))

    route = OSRMRoutePlanner("http://osrm.local").calculate_route(
        Position(25.033, 121.5654), (25.04, 121.558), mode="walking"
    )

    assert "/route/v1/foot/" in calls[0]["url"]
    assert route.mode == "walking"


def test_parse_route_builds_steps_between_maneuvers():
    route = OSRMRoutePlanner.parse_route(OSRM_ROUTE, "driving")

    assert len(route.steps) == 2
    first, second = route.steps
    assert (first.start_lat, first.start_lon) == (25.033, 121.5654)
    assert (first.end_lat, first.end_lon) == (25.033, 121.558)
    assert first.instruction == "Depart onto Main Street"
    assert first.bearing == pytest.approx(270, abs=0.1)
    assert second.step_type == InstructionType.TURN_LEFT
    assert second.instruction == "Turn left onto Oak Avenue"
    assert second.bearing == pytest.approx(0, abs=0.1)
    assert [s.index for s in route.steps] == [0, 1]
    assert route.destination == (25.04, 121.558)
    assert route.distance == 1500.0
    assert route.duration == 120.0


def test_osrm_no_route_raises(fake_get):
    fake_get(FakeResponse({"code": "NoRoute", "message": "Impossible route"}))

    with pytest.raises(RoutePlanningError, match="Impossible route"):
        OSRMRoutePlanner("http://osrm.local").calculate_route(Position(0, 0), (1, 1))


def test_osrm_network_failure_raises(fake_get):
    fake_get(error=requests.ConnectionError("connection refused"))

    with pytest.raises(RoutePlanningError, match="request failed"):
        OSRMRoutePlanner("http://osrm.local").calculate_route(Position(0, 0), (1, 1))


def test_osrm_http_error_raises(fake_get):
    fake_get(FakeResponse({}, status_code=503))

    with pytest.raises(RoutePlanningError):
        OSRMRoutePlanner("http://osrm.local").calculate_route(Position(0, 0), (1, 1))


@pytest.mark.parametrize("maneuver,step_type", [
    ({"type": "turn", "modifier": "sharp right"}, InstructionType.TURN_RIGHT),
    ({"type": "turn", "modifier": "slight left"}, InstructionType.SLIGHT_LEFT),
    ({"type": "continue", "modifier": "uturn"}, InstructionType.U_TURN),
    ({"type": "merge", "modifier": "left"}, InstructionType.MERGE),
    ({"type": "off ramp", "modifier": "right"}, InstructionType.EXIT),
    ({"type": "roundabout", "exit": 2}, InstructionType.ROUNDABOUT_ENTER),
    ({"type": "depart"}, InstructionType.CONTINUE),
])
def test_maneuver_step_type(maneuver, step_type):
    assert maneuver_step_type(maneuver) == step_type


def test_describe_roundabout_exit_number():
    text = describe_maneuver({"type": "roundabout", "exit": 2}, "High Street")
    assert text == "Enter the roundabout and take exit 2 onto High Street"


def test_direct_planner_single_step():
    route = DirectRoutePlanner().calculate_route(Position(0.0, 0.0), (0.0, 0.01), mode="walking")

    assert len(route.steps) == 1
    assert route.destination == (0.0, 0.01)
    assert route.mode == "walking"
    assert route.distance == pytest.approx(1111.95, rel=1e-4)


def test_direct_planner_rejects_same_point():
    with pytest.raises(RoutePlanningError):
        DirectRoutePlanner().calculate_route(Position(1.0, 1.0), (1.0, 1.0))
