"""Off-route detection with hysteresis."""

from typing import Optional

from .config import merged_config
from .geo import point_to_segment_distance
from .models import DeviationResult, DeviationState, Position, Route, RouteAction


class DeviationMonitor:
    """Tracks cross-track distance to the active route across ticks.

    A single fix beyond the threshold only counts; the deviation fires once
    `deviation_count_required` consecutive fixes are off route. Any fix back
    within the threshold resets the count immediately.
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = merged_config(config)
        self.threshold = self.config["route_deviation_threshold"]
        self.required = self.config["deviation_count_required"]
        self.state = DeviationState()

    def reset(self):
        self.state = DeviationState()

    @staticmethod
    def distance_to_route(route: Route, position: Position) -> float:
        """Minimum distance in meters from the position to any step of the route"""
        if not route.steps:
            return point_to_segment_distance(
                position.lat, position.lon,
                route.start_lat, route.start_lon, route.end_lat, route.end_lon,
            )
        return min(
            point_to_segment_distance(
                position.lat, position.lon,
                step.start_lat, step.start_lon, step.end_lat, step.end_lon,
            )
            for step in route.steps
        )

    def check(self, route: Route, position: Position) -> DeviationResult:
        distance = self.distance_to_route(route, position)
        self.state.last_distance = distance

        if distance <= self.threshold:
            self.state.consecutive = 0
            self.state.off_route = False
            return DeviationResult(False, distance)

        self.state.consecutive += 1
        if self.state.consecutive >= self.required:
            self.state.off_route = True
            return DeviationResult(
                True, distance, RouteAction.RECALCULATE,
                f"Off route by {distance:.0f} m",
            )
        return DeviationResult(False, distance)

    def recalculate(self, planner, route: Route, position: Position) -> Route:
        """Ask the planner for a route from the position to the original destination.

        On success the hysteresis state is cleared. On failure the planner's
        exception propagates and the off-route state is left as it was.
        """
        new_route = planner.calculate_route(position, route.destination, route.mode)
        self.reset()
        return new_route
