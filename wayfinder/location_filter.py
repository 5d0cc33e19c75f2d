"""Position smoothing and signal quality classification."""

from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Optional

from .config import merged_config
from .geo import haversine_distance
from .models import Position


class SignalQuality(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NO_SIGNAL = "no_signal"


def classify_signal(accuracy: Optional[float], limits: Optional[dict] = None) -> SignalQuality:
    """Bucket a reported accuracy (meters) into a signal quality"""
    limits = limits or merged_config()["signal_quality_limits"]
    if accuracy is None:
        return SignalQuality.NO_SIGNAL
    if accuracy <= limits["excellent"]:
        return SignalQuality.EXCELLENT
    elif accuracy <= limits["good"]:
        return SignalQuality.GOOD
    elif accuracy <= limits["fair"]:
        return SignalQuality.FAIR
    elif accuracy <= limits["poor"]:
        return SignalQuality.POOR
    return SignalQuality.NO_SIGNAL


def _wrap_lon(lon: float) -> float:
    return ((lon + 180) % 360) - 180


class LocationHistory:
    """Fixed-capacity ring buffer of recent fixes, most recent last"""

    def __init__(self, capacity: int = 10):
        self.capacity = capacity
        self._fixes: deque[Position] = deque(maxlen=capacity)

    def append(self, fix: Position):
        self._fixes.append(fix)

    def recent(self, count: int) -> list[Position]:
        """Up to `count` most recent fixes, oldest first"""
        if count <= 0:
            return []
        return list(self._fixes)[-count:]

    @property
    def last(self) -> Optional[Position]:
        return self._fixes[-1] if self._fixes else None

    def clear(self):
        self._fixes.clear()

    def __len__(self) -> int:
        return len(self._fixes)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._fixes)


@dataclass(frozen=True)
class FilteredFix:
    position: Position
    quality: SignalQuality
    accuracy_change: Optional[float] = None  # meters, set when the jump exceeds the threshold
    rejected: bool = False  # raw fix discarded as an implausible jump


class LocationFilter:
    """Smooths raw fixes using accuracy- and recency-weighted averaging.

    In high precision mode the new fix is instead blended with a position
    extrapolated from the velocity of the last two smoothed fixes.
    """

    def __init__(self, config: Optional[dict] = None, high_precision: bool = False):
        self.config = merged_config(config)
        self.high_precision = high_precision
        self.history = LocationHistory(self.config["history_size"])
        self._last_accuracy: Optional[float] = None
        self.quality = SignalQuality.NO_SIGNAL

    def reset(self):
        self.history.clear()
        self._last_accuracy = None
        self.quality = SignalQuality.NO_SIGNAL

    def update(self, fix: Position) -> FilteredFix:
        """Feed a raw fix, returning the smoothed fix and its signal quality"""
        accuracy_change = self._accuracy_change(fix)
        self.quality = classify_signal(fix.accuracy, self.config["signal_quality_limits"])

        if len(self.history) < 2 or not self.config["location_smoothing"]:
            self.history.append(fix)
            return FilteredFix(fix, self.quality, accuracy_change)

        if self._is_jump(fix):
            return FilteredFix(self.history.last, self.quality, accuracy_change, rejected=True)

        if self.high_precision:
            lat, lon = self._blend_with_prediction(fix)
        else:
            lat, lon = self._weighted_average(fix)

        smoothed = replace(fix, lat=lat, lon=lon)
        self.history.append(smoothed)
        return FilteredFix(smoothed, self.quality, accuracy_change)

    def poll_interval(self) -> float:
        """Seconds to wait before requesting the next fix, given current quality"""
        return self.config["poll_intervals"][self.quality.value]

    def statistics(self) -> dict:
        """Summary of the fixes currently held in history"""
        accuracies = [p.accuracy for p in self.history if p.accuracy is not None]
        speeds = [p.speed for p in self.history if p.speed is not None]
        return {
            "samples": len(self.history),
            "average_accuracy": sum(accuracies) / len(accuracies) if accuracies else 0.0,
            "min_accuracy": min(accuracies) if accuracies else 0.0,
            "max_accuracy": max(accuracies) if accuracies else 0.0,
            "average_speed": sum(speeds) / len(speeds) if speeds else 0.0,
            "signal_quality": self.quality.value,
        }

    def _accuracy_weight(self, fix: Position) -> float:
        accuracy = fix.accuracy if fix.accuracy is not None else self.config["unknown_accuracy"]
        return 1.0 / max(1.0, accuracy)

    def _accuracy_change(self, fix: Position) -> Optional[float]:
        previous = self._last_accuracy
        if fix.accuracy is not None:
            self._last_accuracy = fix.accuracy
        if previous is None or fix.accuracy is None:
            return None
        change = fix.accuracy - previous
        if abs(change) > self.config["accuracy_change_threshold"]:
            return change
        return None

    def _is_jump(self, fix: Position) -> bool:
        last = self.history.last
        if last is None or last.timestamp is None or fix.timestamp is None:
            return False
        elapsed = fix.timestamp - last.timestamp
        if elapsed <= 0:
            return False
        speed_kmh = haversine_distance(last.lat, last.lon, fix.lat, fix.lon) / elapsed * 3.6
        return speed_kmh > self.config["max_plausible_speed_kmh"]

    def _weighted_average(self, fix: Position) -> tuple[float, float]:
        window = self.history.recent(self.config["smoothing_window"])

        total_weight = 0.0
        lat_sum = 0.0
        dlon_sum = 0.0
        for rank, past in enumerate(window, start=1):
            weight = rank * self._accuracy_weight(past)
            total_weight += weight
            lat_sum += weight * past.lat
            # Longitudes relative to the new fix so the antimeridian doesn't tear the mean
            dlon_sum += weight * _wrap_lon(past.lon - fix.lon)

        new_accuracy_weight = self._accuracy_weight(fix)
        new_weight = ((len(window) + 1) * new_accuracy_weight +
                      self.config["new_fix_boost"] * new_accuracy_weight)
        total_weight += new_weight
        lat_sum += new_weight * fix.lat

        return lat_sum / total_weight, _wrap_lon(fix.lon + dlon_sum / total_weight)

    def _predict(self, fix: Position) -> tuple[float, float, Optional[float]]:
        """Extrapolate the last smoothed fix along the velocity of the last two"""
        previous, last = self.history.recent(2)
        if (previous.timestamp is None or last.timestamp is None or fix.timestamp is None
                or last.timestamp <= previous.timestamp):
            return last.lat, last.lon, last.accuracy

        span = last.timestamp - previous.timestamp
        lat_rate = (last.lat - previous.lat) / span
        lon_rate = _wrap_lon(last.lon - previous.lon) / span
        ahead = max(0.0, fix.timestamp - last.timestamp)
        return last.lat + lat_rate * ahead, _wrap_lon(last.lon + lon_rate * ahead), last.accuracy

    def _blend_with_prediction(self, fix: Position) -> tuple[float, float]:
        pred_lat, pred_lon, pred_accuracy = self._predict(fix)
        if pred_accuracy is None:
            pred_accuracy = self.config["unknown_accuracy"]
        pred_weight = 1.0 / max(1.0, pred_accuracy)
        meas_weight = self._accuracy_weight(fix)
        total = pred_weight + meas_weight

        lat = (pred_weight * pred_lat + meas_weight * fix.lat) / total
        dlon = _wrap_lon(pred_lon - fix.lon)
        lon = _wrap_lon(fix.lon + pred_weight * dlon / total)
        return lat, lon
