"""Position providers: live GPS, recording and playback."""

import json
import subprocess
import time
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import Position


class PositionUnavailable(Exception):
    """No fix could be produced this time around."""


class LocationUnsupported(PositionUnavailable):
    """The device has no usable location source."""


class LocationDisabled(PositionUnavailable):
    """Location services are switched off."""


class LocationPermissionDenied(PositionUnavailable):
    """The app is not allowed to read the location."""


class GPS:
    """GPS access via Termux API"""

    def __init__(self, provider: str = "gps"):
        self.provider = provider
        self.last_location: Optional[Position] = None
        self.consecutive_failures = 0

    def get_location(self, timeout: int = 30) -> Optional[Position]:
        """Get current location using termux-location"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", self.provider, "-r", "once"],
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except FileNotFoundError:
            self.consecutive_failures += 1
            raise LocationUnsupported("termux-location not found")
        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            return None

        if result.returncode != 0:
            self.consecutive_failures += 1
            error_msg = result.stderr.strip().lower() if result.stderr else ""
            if "permission" in error_msg:
                raise LocationPermissionDenied(error_msg)
            if "disabled" in error_msg or "not enabled" in error_msg:
                raise LocationDisabled(error_msg)
            return None

        if not result.stdout or not result.stdout.strip():
            self.consecutive_failures += 1
            return None

        try:
            data = json.loads(result.stdout)
            location = Position(
                lat=data["latitude"],
                lon=data["longitude"],
                accuracy=data.get("accuracy"),
                speed=data.get("speed"),
                course=data.get("bearing"),
                timestamp=time.time()
            )
        except (json.JSONDecodeError, KeyError):
            self.consecutive_failures += 1
            return None

        self.last_location = location
        self.consecutive_failures = 0
        return location

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_location.accuracy:.0f}m" if self.last_location and self.last_location.accuracy else ""
            return f"GPS OK{acc}"
        else:
            return f"GPS: {self.consecutive_failures} consecutive failures"


class GPSRecorder:
    """Records GPS trace to file"""

    def __init__(self, gps, record_path: str):
        self.gps = gps
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def get_location(self, timeout: int = 30) -> Optional[Position]:
        """Get location and record it"""
        location = None
        try:
            location = self.gps.get_location(timeout)
        finally:
            # Record failed attempts too, they replay as gaps
            entry = {
                "elapsed": time.time() - self.start_time,
                "timestamp": time.time(),
                "location": location.to_dict() if location else None,
                "status": self.gps.get_status()
            }
            self.trace.append(entry)

        return location

    def get_status(self) -> str:
        return self.gps.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"GPS trace saved to {self.record_path} ({len(self.trace)} entries)")


class GPSPlayback:
    """Replays a recorded trace, one entry per request.

    Fixes recorded without a timestamp are stamped on the trace's own clock
    (load time + elapsed), so the location filter sees the recorded spacing
    whatever the playback speed.
    """

    def __init__(self, playback_path: str, speed: float = 1.0,
                 min_interval: float = 0.1, max_interval: float = 5.0):
        if speed <= 0:
            raise ValueError(f"Playback speed must be positive, got {speed}")
        with open(playback_path) as f:
            self.trace: list[dict] = json.load(f)["trace"]

        self.playback_path = playback_path
        self.speed = speed
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.index = 0
        self.epoch = time.time()
        self.last_location: Optional[Position] = None
        self.consecutive_failures = 0
        print(f"Loaded GPS trace from {playback_path} ({len(self.trace)} entries)")

    def _elapsed(self, index: int) -> float:
        return self.trace[index].get("elapsed", 0.0)

    def _position(self, entry: dict) -> Optional[Position]:
        data = entry.get("location")
        if not data:
            return None
        position = Position.from_dict(data)
        if position.timestamp is None:
            position = replace(position, timestamp=self.epoch + entry.get("elapsed", 0.0))
        return position

    def get_location(self, timeout: int = 30) -> Optional[Position]:
        if self.is_finished():
            return None

        location = self._position(self.trace[self.index])
        self.index += 1
        if location is None:
            self.consecutive_failures += 1
            return None

        self.last_location = location
        self.consecutive_failures = 0
        return location

    def get_poll_interval(self) -> float:
        """Wait before the next entry: the recorded gap scaled by speed, clamped"""
        if 0 < self.index < len(self.trace):
            gap = self._elapsed(self.index) - self._elapsed(self.index - 1)
        else:
            gap = CONFIG["tick_interval"]
        return max(self.min_interval, min(gap / self.speed, self.max_interval))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        else:
            return f"Playback: {self.consecutive_failures} failures ({progress})"
