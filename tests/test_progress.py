import pytest

from wayfinder.models import Route
from wayfinder.progress import ProgressTracker

from conftest import METERS_PER_DEGREE, fix

LEG = 0.01 * METERS_PER_DEGREE


def test_start_of_route(l_route):
    progress = ProgressTracker().measure(l_route, fix(0.0, 0.0), 0)

    assert progress.traveled == pytest.approx(0.0)
    assert progress.fraction == pytest.approx(0.0)
    assert progress.remaining == pytest.approx(l_route.distance)
    # 50 km/h for driving
    assert progress.time_remaining == pytest.approx(l_route.distance / 1000 / 50 * 3600)


def test_partway_along_second_step(l_route):
    progress = ProgressTracker().measure(l_route, fix(0.004, 0.01), 1)

    assert progress.traveled == pytest.approx(LEG + 0.004 * METERS_PER_DEGREE, rel=1e-6)
    assert progress.fraction == pytest.approx(0.7, rel=1e-3)


def test_partial_distance_is_capped_at_step_length(straight_route):
    progress = ProgressTracker().measure(straight_route, fix(0.0, 0.02), 0)
    assert progress.traveled == pytest.approx(straight_route.distance)
    assert progress.fraction == 1.0
    assert progress.remaining == 0.0
    assert progress.time_remaining == 0.0


def test_progress_never_moves_backwards(straight_route):
    tracker = ProgressTracker()
    ahead = tracker.measure(straight_route, fix(0.0, 0.006), 0)
    behind = tracker.measure(straight_route, fix(0.0, 0.005), 0)

    assert behind.traveled == ahead.traveled
    assert behind.fraction == ahead.fraction


def test_reset_starts_over_for_a_new_route(straight_route):
    tracker = ProgressTracker()
    tracker.measure(straight_route, fix(0.0, 0.006), 0)
    tracker.reset()

    assert tracker.measure(straight_route, fix(0.0, 0.001), 0).fraction == pytest.approx(0.1, rel=1e-3)


def test_speed_depends_on_mode():
    tracker = ProgressTracker()
    assert tracker.speed_for("walking") == 5.0
    assert tracker.speed_for("cycling") == 15.0
    assert tracker.speed_for("hovercraft") == 50.0


def test_walking_eta():
    route = Route.from_waypoints([(0.0, 0.0), (0.0, 0.01)], mode="walking")
    progress = ProgressTracker().measure(route, fix(0.0, 0.0), 0)
    assert progress.time_remaining == pytest.approx(route.distance / 1000 / 5 * 3600)


def test_route_without_steps_uses_distance_to_destination():
    route = Route(steps=(), start_lat=0.0, start_lon=0.0, end_lat=0.0, end_lon=0.01, distance=LEG)
    progress = ProgressTracker().measure(route, fix(0.0, 0.0025), 0)
    assert progress.fraction == pytest.approx(0.25, rel=1e-6)


def test_zero_length_route_reports_no_progress():
    route = Route(steps=(), start_lat=0.0, start_lon=0.0, end_lat=0.0, end_lon=0.0, distance=0.0)
    progress = ProgressTracker().measure(route, fix(0.0, 0.0), 0)
    assert progress.fraction == 0.0
    assert progress.time_remaining == 0.0
