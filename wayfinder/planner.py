"""Route planner adapters: the navigator consumes routes, these produce them."""

from typing import Optional

import requests

from .config import merged_config
from .geo import bearing_between
from .models import InstructionType, Position, Route, Step


class RoutePlanningError(Exception):
    """A route could not be obtained from the planner."""


MODIFIER_TYPES = {
    "uturn": InstructionType.U_TURN,
    "sharp left": InstructionType.TURN_LEFT,
    "left": InstructionType.TURN_LEFT,
    "slight left": InstructionType.SLIGHT_LEFT,
    "straight": InstructionType.CONTINUE,
    "slight right": InstructionType.SLIGHT_RIGHT,
    "right": InstructionType.TURN_RIGHT,
    "sharp right": InstructionType.TURN_RIGHT,
}

MANEUVER_TYPES = {
    "merge": InstructionType.MERGE,
    "off ramp": InstructionType.EXIT,
    "roundabout": InstructionType.ROUNDABOUT_ENTER,
    "rotary": InstructionType.ROUNDABOUT_ENTER,
    "exit roundabout": InstructionType.ROUNDABOUT_EXIT,
    "exit rotary": InstructionType.ROUNDABOUT_EXIT,
    "arrive": InstructionType.ARRIVE,
}


def maneuver_step_type(maneuver: dict) -> InstructionType:
    """Map an OSRM maneuver to an instruction type"""
    kind = maneuver.get("type", "")
    if kind in MANEUVER_TYPES:
        return MANEUVER_TYPES[kind]
    if kind == "depart":
        return InstructionType.CONTINUE
    return MODIFIER_TYPES.get(maneuver.get("modifier", ""), InstructionType.CONTINUE)


def describe_maneuver(maneuver: dict, name: Optional[str]) -> str:
    """Short human readable text for an OSRM maneuver"""
    kind = maneuver.get("type", "")
    modifier = maneuver.get("modifier")
    onto = f" onto {name}" if name else ""

    if kind == "depart":
        return f"Depart{onto}" if name else "Depart"
    if kind == "arrive":
        return "Arrive at destination"
    if kind in ("roundabout", "rotary"):
        exit_number = maneuver.get("exit")
        if exit_number:
            return f"Enter the roundabout and take exit {exit_number}{onto}"
        return f"Enter the roundabout{onto}"
    if kind in ("exit roundabout", "exit rotary"):
        return f"Exit the roundabout{onto}"
    if kind == "merge":
        return f"Merge{onto}"
    if kind == "off ramp":
        return f"Take the exit{onto}"
    if modifier == "uturn":
        return f"Make a U-turn{onto}"
    if modifier == "straight" or not modifier:
        return f"Continue straight{onto}"
    return f"Turn {modifier}{onto}"


class OSRMRoutePlanner:
    """Fetches driving/walking/cycling routes from an OSRM server"""

    def __init__(self, base_url: Optional[str] = None, config: Optional[dict] = None):
        self.config = merged_config(config)
        self.base_url = (base_url or self.config["osrm_base_url"]).rstrip("/")
        self.timeout = self.config["http_timeout"]

    def _route_url(self, origin: tuple[float, float], destination: tuple[float, float],
                   mode: str) -> str:
        profile = self.config["osrm_profiles"].get(mode, mode)
        # OSRM wants lon,lat
        coords = f"{origin[1]},{origin[0]};{destination[1]},{destination[0]}"
        return f"{self.base_url}/route/v1/{profile}/{coords}"

    def calculate_route(self, origin: Position, destination: tuple[float, float],
                        mode: str = "driving") -> Route:
        url = self._route_url((origin.lat, origin.lon), destination, mode)
        try:
            response = requests.get(
                url,
                params={"steps": "true", "overview": "false"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise RoutePlanningError(f"OSRM request failed: {e}") from e
        except ValueError as e:
            raise RoutePlanningError(f"OSRM returned invalid JSON: {e}") from e

        if data.get("code") != "Ok" or not data.get("routes"):
            raise RoutePlanningError(
                f"OSRM could not route: {data.get('message') or data.get('code')}"
            )
        return self.parse_route(data["routes"][0], mode, destination)

    @staticmethod
    def parse_route(osrm_route: dict, mode: str,
                    destination: Optional[tuple[float, float]] = None) -> Route:
        """Convert one OSRM route object (with steps) into a Route"""
        raw_steps = [s for leg in osrm_route.get("legs", []) for s in leg.get("steps", [])]
        # lon,lat -> lat,lon
        points = [(s["maneuver"]["location"][1], s["maneuver"]["location"][0]) for s in raw_steps]

        steps = []
        for i, raw in enumerate(raw_steps):
            maneuver = raw["maneuver"]
            if maneuver.get("type") == "arrive":
                continue
            start = points[i]
            end = points[i + 1] if i + 1 < len(points) else (destination or start)
            if start == end:
                bearing = maneuver.get("bearing_after", 0.0)
            else:
                bearing = bearing_between(start[0], start[1], end[0], end[1])
            name = raw.get("name") or None
            steps.append(Step(
                index=len(steps),
                start_lat=start[0], start_lon=start[1],
                end_lat=end[0], end_lon=end[1],
                distance=raw.get("distance", 0.0),
                bearing=bearing,
                instruction=describe_maneuver(maneuver, name),
                step_type=maneuver_step_type(maneuver),
                name=name,
            ))

        if points:
            start_point, end_point = points[0], points[-1]
        elif destination:
            start_point, end_point = destination, destination
        else:
            raise RoutePlanningError("OSRM route has no steps")

        return Route(
            steps=tuple(steps),
            start_lat=start_point[0], start_lon=start_point[1],
            end_lat=end_point[0], end_lon=end_point[1],
            distance=osrm_route.get("distance", sum(s.distance for s in steps)),
            duration=osrm_route.get("duration", 0.0),
            mode=mode,
        )


class DirectRoutePlanner:
    """Offline planner: a single straight step from origin to destination"""

    def calculate_route(self, origin: Position, destination: tuple[float, float],
                        mode: str = "driving") -> Route:
        route = Route.from_waypoints([(origin.lat, origin.lon), destination], mode=mode)
        if route.distance == 0:
            raise RoutePlanningError("Origin and destination are the same point")
        return route
