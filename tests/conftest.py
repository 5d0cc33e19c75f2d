import math
import queue
import time

import pytest

from wayfinder.geo import EARTH_RADIUS
from wayfinder.logger import Logger
from wayfinder.models import Position, Route


METERS_PER_DEGREE = EARTH_RADIUS * math.pi / 180


def fix(lat, lon, accuracy=5.0, timestamp=None, **kwargs):
    return Position(lat=lat, lon=lon, accuracy=accuracy, timestamp=timestamp, **kwargs)


def drain(events: queue.Queue) -> list:
    out = []
    while True:
        try:
            out.append(events.get_nowait())
        except queue.Empty:
            return out


def wait_for(events: queue.Queue, kind, timeout: float = 3.0):
    """Pull events until one of `kind` shows up; None on timeout"""
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        try:
            event = events.get(timeout=remaining)
        except queue.Empty:
            return None
        if event.kind == kind:
            return event


class QueueGPS:
    """Provider fed by the test; returns None when nothing has been pushed"""

    def __init__(self):
        self.fixes = queue.Queue()
        self.calls = 0

    def push(self, position):
        self.fixes.put(position)

    def get_location(self, timeout=30):
        self.calls += 1
        try:
            return self.fixes.get(timeout=min(timeout, 0.05))
        except queue.Empty:
            return None

    def get_status(self):
        return "queue"


class FakePlanner:
    def __init__(self, route=None, error=None):
        self.route = route
        self.error = error
        self.calls = []

    def calculate_route(self, origin, destination, mode="driving"):
        self.calls.append((origin, destination, mode))
        if self.error:
            raise self.error
        return self.route


class RecordingAnnouncer:
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


@pytest.fixture
def quiet_logger():
    return Logger(echo=False)


@pytest.fixture
def straight_route():
    """About 1.1 km due east along the equator"""
    return Route.from_waypoints([(0.0, 0.0), (0.0, 0.01)], names=["Main Street"])


@pytest.fixture
def l_route():
    """East along Main Street, then a left turn north up Oak Avenue"""
    return Route.from_waypoints(
        [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01)],
        names=["Main Street", "Oak Avenue"],
    )


@pytest.fixture
def gps():
    return QueueGPS()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()
