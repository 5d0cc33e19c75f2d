import pytest

from wayfinder import geo
from wayfinder.geo import (
    bearing_between,
    bearing_delta,
    bearing_to_compass,
    classify_turn,
    haversine_distance,
    point_to_segment_distance,
    retry_with_backoff,
)

from conftest import METERS_PER_DEGREE


def test_haversine_same_point_is_zero():
    assert haversine_distance(25.033, 121.5654, 25.033, 121.5654) == 0.0


def test_haversine_one_degree_of_latitude():
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(METERS_PER_DEGREE, rel=1e-6)


def test_haversine_handles_antipodes():
    assert haversine_distance(0, 0, 0, 180) == pytest.approx(geo.EARTH_RADIUS * 3.141592653589793)


def test_bearing_cardinal_directions():
    assert bearing_between(0, 0, 1, 0) == pytest.approx(0.0)
    assert bearing_between(0, 0, 0, 1) == pytest.approx(90.0)
    assert bearing_between(0, 0, -1, 0) == pytest.approx(180.0)
    assert bearing_between(0, 0, 0, -1) == pytest.approx(270.0)


def test_cross_track_example_taipei():
    start = (25.0330, 121.5654)
    end = (25.0478, 121.5170)
    point = (start[0] + 0.01, start[1])

    distance = point_to_segment_distance(*point, *start, *end)

    to_start = haversine_distance(*point, *start)
    to_end = haversine_distance(*point, *end)
    assert distance > 0
    assert distance <= to_start
    assert distance <= to_end


def test_point_on_segment_is_near_zero():
    distance = point_to_segment_distance(0.0, 0.005, 0.0, 0.0, 0.0, 0.01)
    assert distance < 1.0


def test_point_abeam_segment_uses_cross_track():
    # 100 m north of the middle of an east-west segment
    lat = 100 / METERS_PER_DEGREE
    distance = point_to_segment_distance(lat, 0.005, 0.0, 0.0, 0.0, 0.01)
    assert distance == pytest.approx(100.0, rel=1e-3)


def test_point_past_the_end_uses_end_distance():
    distance = point_to_segment_distance(0.0, 0.02, 0.0, 0.0, 0.0, 0.01)
    assert distance == pytest.approx(haversine_distance(0.0, 0.02, 0.0, 0.01))


def test_point_before_the_start_uses_start_distance():
    distance = point_to_segment_distance(0.0, -0.005, 0.0, 0.0, 0.0, 0.01)
    assert distance == pytest.approx(haversine_distance(0.0, -0.005, 0.0, 0.0))


def test_degenerate_segment_is_point_distance():
    distance = point_to_segment_distance(0.001, 0.0, 0.0, 0.0, 0.0, 0.0)
    assert distance == pytest.approx(haversine_distance(0.001, 0.0, 0.0, 0.0))


def test_point_at_segment_start_is_zero():
    assert point_to_segment_distance(0.0, 0.0, 0.0, 0.0, 0.0, 0.01) == 0.0


@pytest.mark.parametrize("bearing,label", [
    (0, "N"), (44, "NE"), (90, "E"), (135, "SE"), (180, "S"),
    (225, "SW"), (270, "W"), (315, "NW"), (350, "N"), (359.9, "N"),
])
def test_bearing_to_compass(bearing, label):
    assert bearing_to_compass(bearing) == label


def test_bearing_delta_wraps_around_north():
    assert bearing_delta(350, 10) == pytest.approx(20)
    assert bearing_delta(10, 350) == pytest.approx(-20)
    assert bearing_delta(0, 180) == pytest.approx(180)


@pytest.mark.parametrize("before,after,expected", [
    (90, 0, "left"),
    (0, 90, "right"),
    (0, 10, "straight"),
    (355, 5, "straight"),
    (350, 80, "right"),
    (0, 180, "u-turn"),
    (90, 200, "u-turn"),
    (90, 190, "right"),
])
def test_classify_turn(before, after, expected):
    assert classify_turn(before, after) == expected


def test_retry_with_backoff_returns_first_success(monkeypatch):
    sleeps = []
    monkeypatch.setattr(geo.time, "sleep", sleeps.append)
    results = iter([None, None, "fix"])

    assert retry_with_backoff(lambda: next(results), max_time=60, initial_delay=1) == "fix"
    assert sleeps == [1, 2]


def test_retry_with_backoff_gives_up(monkeypatch):
    monkeypatch.setattr(geo.time, "sleep", lambda s: None)
    assert retry_with_backoff(lambda: None, max_time=0) is None
