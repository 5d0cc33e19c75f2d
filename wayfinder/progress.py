"""Route completion and ETA estimation."""

from dataclasses import dataclass
from typing import Optional

from .config import merged_config
from .geo import haversine_distance
from .models import Position, Route


@dataclass(frozen=True)
class Progress:
    traveled: float  # meters
    fraction: float  # 0..1
    remaining: float  # meters
    time_remaining: float  # seconds


class ProgressTracker:
    """Converts the position on a route into distance traveled, completion and ETA.

    Traveled distance is held at its high-water mark while the route stays the
    same, so GPS noise can't move progress backwards. Call reset() when the
    route is replaced.
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = merged_config(config)
        self._best_traveled = 0.0

    def reset(self):
        self._best_traveled = 0.0

    def speed_for(self, mode: str) -> float:
        """Assumed average speed in km/h for a travel mode"""
        return self.config["assumed_speeds_kmh"].get(mode, self.config["default_speed_kmh"])

    def traveled_distance(self, route: Route, position: Position, step_index: int) -> float:
        if not route.steps:
            along = route.distance - haversine_distance(
                position.lat, position.lon, route.end_lat, route.end_lon
            )
            return min(max(along, 0.0), route.distance)

        step_index = min(max(step_index, 0), len(route.steps) - 1)
        completed = sum(step.distance for step in route.steps[:step_index])
        current = route.steps[step_index]
        into_step = haversine_distance(
            current.start_lat, current.start_lon, position.lat, position.lon
        )
        return completed + min(max(into_step, 0.0), current.distance)

    def measure(self, route: Route, position: Position, step_index: int) -> Progress:
        traveled = self.traveled_distance(route, position, step_index)
        self._best_traveled = max(self._best_traveled, traveled)
        traveled = self._best_traveled

        total = route.distance
        fraction = min(max(traveled / total, 0.0), 1.0) if total > 0 else 0.0
        remaining = max(0.0, total - traveled)
        hours = (remaining / 1000.0) / self.speed_for(route.mode)
        return Progress(traveled, fraction, remaining, hours * 3600)
