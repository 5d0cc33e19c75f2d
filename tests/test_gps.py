import json
import subprocess

import pytest

from wayfinder import gps as gps_module
from wayfinder.gps import (
    GPS,
    GPSPlayback,
    GPSRecorder,
    LocationDisabled,
    LocationPermissionDenied,
    LocationUnsupported,
)
from wayfinder.models import Position


class Completed:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def fake_run(monkeypatch, result=None, error=None):
    def run(cmd, capture_output=True, text=True, timeout=None):
        if error:
            raise error
        return result
    monkeypatch.setattr(gps_module.subprocess, "run", run)


def test_gps_parses_termux_output(monkeypatch):
    payload = {"latitude": 25.033, "longitude": 121.5654, "accuracy": 4.5,
               "speed": 1.2, "bearing": 87.0}
    fake_run(monkeypatch, Completed(stdout=json.dumps(payload)))

    gps = GPS()
    location = gps.get_location(timeout=5)

    assert (location.lat, location.lon) == (25.033, 121.5654)
    assert location.accuracy == 4.5
    assert location.course == 87.0
    assert gps.get_status() == "GPS OK, accuracy 4m"


def test_gps_missing_termux_is_unsupported(monkeypatch):
    fake_run(monkeypatch, error=FileNotFoundError("termux-location"))
    with pytest.raises(LocationUnsupported):
        GPS().get_location()


@pytest.mark.parametrize("stderr,error", [
    ("Permission denied for location", LocationPermissionDenied),
    ("Location is disabled", LocationDisabled),
])
def test_gps_classifies_failures(monkeypatch, stderr, error):
    fake_run(monkeypatch, Completed(returncode=1, stderr=stderr))
    with pytest.raises(error):
        GPS().get_location()


def test_gps_timeout_is_a_missed_fix(monkeypatch):
    fake_run(monkeypatch, error=subprocess.TimeoutExpired("termux-location", 5))
    gps = GPS()

    assert gps.get_location(timeout=5) is None
    assert gps.get_status() == "GPS: 1 consecutive failures"


def test_gps_garbage_output_is_a_missed_fix(monkeypatch):
    fake_run(monkeypatch, Completed(stdout="not json"))
    assert GPS().get_location() is None


class ScriptedGPS:
    def __init__(self, locations):
        self.locations = list(locations)

    def get_location(self, timeout=30):
        return self.locations.pop(0)

    def get_status(self):
        return "scripted"


def test_recorder_saves_fixes_and_gaps(tmp_path):
    path = tmp_path / "trace.json"
    recorder = GPSRecorder(ScriptedGPS([Position(1.0, 2.0, accuracy=5.0), None]), str(path))

    assert recorder.get_location() == Position(1.0, 2.0, accuracy=5.0)
    assert recorder.get_location() is None
    recorder.save()

    data = json.loads(path.read_text())
    assert [e["location"] is None for e in data["trace"]] == [False, True]
    assert data["trace"][0]["location"]["lat"] == 1.0
    assert data["trace"][0]["status"] == "scripted"


def test_recorder_output_plays_back(tmp_path):
    path = tmp_path / "trace.json"
    recorder = GPSRecorder(ScriptedGPS([Position(1.0, 2.0), Position(1.5, 2.5)]), str(path))
    recorder.get_location()
    recorder.get_location()
    recorder.save()

    playback = GPSPlayback(str(path))
    first = playback.get_location()
    second = playback.get_location()

    assert (first.lat, first.lon) == (1.0, 2.0)
    assert (second.lat, second.lon) == (1.5, 2.5)
    assert playback.is_finished()


@pytest.fixture
def trace_file(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text(json.dumps({"trace": [
        {"elapsed": 0.0, "location": {"lat": 0.0, "lon": 0.0}},
        {"elapsed": 2.0, "location": None},
        {"elapsed": 4.0, "location": {"lat": 0.001, "lon": 0.0, "accuracy": 6.0,
                                      "timestamp": 1700000000.0}},
    ]}))
    return str(path)


def test_playback_steps_through_trace(trace_file):
    playback = GPSPlayback(trace_file, speed=2.0)

    first = playback.get_location()
    assert (first.lat, first.lon) == (0.0, 0.0)
    assert playback.get_poll_interval() == 1.0
    assert playback.get_location() is None
    assert playback.get_status() == "Playback: 1 failures (2/3)"
    assert playback.get_location().accuracy == 6.0
    assert playback.is_finished()
    assert playback.get_location() is None


def test_playback_stamps_fixes_on_trace_clock(trace_file):
    playback = GPSPlayback(trace_file, speed=10.0)

    first = playback.get_location()
    playback.get_location()
    last = playback.get_location()

    assert first.timestamp == playback.epoch
    # Recorded timestamps are kept as they are
    assert last.timestamp == 1700000000.0


def test_playback_rejects_non_positive_speed(trace_file):
    with pytest.raises(ValueError):
        GPSPlayback(trace_file, speed=0)


def test_playback_interval_is_clamped(tmp_path):
    path = tmp_path / "trace.json"
    path.write_text(json.dumps({"trace": [
        {"elapsed": 0.0, "location": {"lat": 0.0, "lon": 0.0}},
        {"elapsed": 60.0, "location": {"lat": 0.0, "lon": 0.0}},
        {"elapsed": 60.01, "location": {"lat": 0.0, "lon": 0.0}},
    ]}))
    playback = GPSPlayback(str(path))

    playback.get_location()
    assert playback.get_poll_interval() == 5.0
    playback.get_location()
    assert playback.get_poll_interval() == 0.1
