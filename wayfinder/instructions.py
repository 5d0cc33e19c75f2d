"""Turn-by-turn instruction generation and announcement gating."""

import time
from typing import Callable, Optional

from .config import merged_config
from .geo import (
    COMPASS_NAMES,
    bearing_between,
    bearing_to_compass,
    classify_turn,
    haversine_distance,
)
from .models import Instruction, InstructionType, Position, Route, Step

ARRIVAL_TEXT = "You have arrived at your destination"

TURN_TYPES = {
    "straight": InstructionType.CONTINUE,
    "left": InstructionType.TURN_LEFT,
    "right": InstructionType.TURN_RIGHT,
    "u-turn": InstructionType.U_TURN,
}

MANEUVER_PHRASES = {
    InstructionType.CONTINUE: "continue straight",
    InstructionType.TURN_LEFT: "turn left",
    InstructionType.TURN_RIGHT: "turn right",
    InstructionType.SLIGHT_LEFT: "bear left",
    InstructionType.SLIGHT_RIGHT: "bear right",
    InstructionType.U_TURN: "make a U-turn",
    InstructionType.MERGE: "merge",
    InstructionType.EXIT: "take the exit",
    InstructionType.ROUNDABOUT_ENTER: "enter the roundabout",
    InstructionType.ROUNDABOUT_EXIT: "exit the roundabout",
    InstructionType.ARRIVE: "arrive",
}

# Maneuvers the step geometry alone can't express; the route's own type wins
DECLARED_MANEUVERS = {
    InstructionType.MERGE,
    InstructionType.EXIT,
    InstructionType.ROUNDABOUT_ENTER,
    InstructionType.ROUNDABOUT_EXIT,
}


def format_distance(meters: float) -> str:
    """'350 meters' below a kilometer, '1.2 kilometers' from there up"""
    rounded = round(meters)
    if rounded < 1000:
        return f"{rounded} meters"
    return f"{meters / 1000:.1f} kilometers"


def distance_to_destination(route: Route, *positions: Optional[Position]) -> float:
    """Distance from whichever of the given positions is nearest the route end"""
    return min(
        haversine_distance(p.lat, p.lon, route.end_lat, route.end_lon)
        for p in positions if p is not None
    )


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


class InstructionGenerator:
    """Picks the relevant route step for a fix and phrases the next instruction"""

    def __init__(self, config: Optional[dict] = None):
        self.config = merged_config(config)

    def nearest_step_index(self, route: Route, position: Position) -> int:
        """Index of the step with a start or end point nearest to the position.

        Ties go to the earlier step.
        """
        best_index = 0
        best_distance = float("inf")
        for i, step in enumerate(route.steps):
            dist = min(
                haversine_distance(position.lat, position.lon, step.start_lat, step.start_lon),
                haversine_distance(position.lat, position.lon, step.end_lat, step.end_lon),
            )
            if dist < best_distance:
                best_distance = dist
                best_index = i
        return best_index

    def maneuver_type(self, current: Step, following: Step) -> InstructionType:
        """Type of the maneuver joining two consecutive steps"""
        if following.step_type in DECLARED_MANEUVERS:
            return following.step_type
        kind = classify_turn(
            current.bearing, following.bearing,
            straight_angle=self.config["straight_angle"],
            sharp_angle=self.config["sharp_turn_angle"],
        )
        return TURN_TYPES[kind]

    def generate(self, route: Route, position: Position,
                 raw: Optional[Position] = None) -> tuple[Instruction, int]:
        """Return the instruction to surface for this fix and the current step index.

        position is the smoothed fix. raw, when given, is the unsmoothed one;
        arrival counts from whichever of the two is closer to the destination.
        """
        step_index = self.nearest_step_index(route, position) if route.steps else 0

        if distance_to_destination(route, position, raw) <= self.config["arrival_threshold"]:
            return Instruction(ARRIVAL_TEXT, InstructionType.ARRIVE, 0.0), step_index

        to_destination = haversine_distance(
            position.lat, position.lon, route.end_lat, route.end_lon
        )
        if not route.steps:
            return self._head_towards(position, route, to_destination), step_index

        current = route.steps[step_index]
        following = route.steps[step_index + 1] if step_index + 1 < len(route.steps) else None
        to_step_end = haversine_distance(
            position.lat, position.lon, current.end_lat, current.end_lon
        )
        distance_text = format_distance(to_step_end)

        if following is not None and to_step_end <= self.config["next_instruction_threshold"]:
            maneuver = self.maneuver_type(current, following)
            phrase = MANEUVER_PHRASES[maneuver]
            onto = f" onto {following.name}" if following.name else ""
            if to_step_end <= self.config["approach_threshold"]:
                text = f"In {distance_text}, {phrase}{onto}"
            else:
                text = f"Prepare to {phrase}{onto} in {distance_text}"
            return Instruction(text, maneuver, to_step_end, following.name), step_index

        if current.name:
            text = f"Continue on {current.name} for {distance_text}"
        else:
            text = f"Continue straight for {distance_text}"
        return Instruction(text, InstructionType.CONTINUE, to_step_end, current.name), step_index

    def _head_towards(self, position: Position, route: Route, distance: float) -> Instruction:
        bearing = bearing_between(position.lat, position.lon, route.end_lat, route.end_lon)
        direction = COMPASS_NAMES[bearing_to_compass(bearing)]
        text = _sentence(f"head {direction} for {format_distance(distance)}")
        return Instruction(text, InstructionType.CONTINUE, distance)


class AnnouncementGate:
    """Decides whether an instruction should be passed to the voice announcer"""

    def __init__(self, speak_distance: float = 500, repeat_interval: float = 10,
                 clock: Callable[[], float] = time.monotonic):
        self.speak_distance = speak_distance
        self.repeat_interval = repeat_interval
        self.clock = clock
        self.last_text: Optional[str] = None
        self.last_spoken_at: Optional[float] = None

    def should_announce(self, instruction: Instruction) -> bool:
        if instruction.distance > self.speak_distance:
            return False
        if instruction.text != self.last_text or self.last_spoken_at is None:
            return True
        return self.clock() - self.last_spoken_at >= self.repeat_interval

    def mark_spoken(self, instruction: Instruction):
        self.last_text = instruction.text
        self.last_spoken_at = self.clock()

    def reset(self):
        self.last_text = None
        self.last_spoken_at = None
