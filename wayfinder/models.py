"""Data classes for Wayfinder."""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional

from .geo import haversine_distance, bearing_between


@dataclass(frozen=True)
class Position:
    lat: float
    lon: float
    accuracy: Optional[float] = None  # meters, None when unknown
    speed: Optional[float] = None  # m/s
    course: Optional[float] = None  # degrees
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Position":
        return cls(**d)


class InstructionType(Enum):
    CONTINUE = "continue"
    TURN_LEFT = "turn-left"
    TURN_RIGHT = "turn-right"
    SLIGHT_LEFT = "slight-left"
    SLIGHT_RIGHT = "slight-right"
    U_TURN = "u-turn"
    MERGE = "merge"
    EXIT = "exit"
    ARRIVE = "arrive"
    ROUNDABOUT_ENTER = "roundabout-enter"
    ROUNDABOUT_EXIT = "roundabout-exit"

    @property
    def priority(self) -> int:
        return _PRIORITIES[self]


_PRIORITIES = {
    InstructionType.ARRIVE: 4,
    InstructionType.U_TURN: 3,
    InstructionType.TURN_LEFT: 2,
    InstructionType.TURN_RIGHT: 2,
    InstructionType.MERGE: 2,
    InstructionType.EXIT: 2,
    InstructionType.ROUNDABOUT_ENTER: 2,
    InstructionType.ROUNDABOUT_EXIT: 2,
    InstructionType.SLIGHT_LEFT: 1,
    InstructionType.SLIGHT_RIGHT: 1,
    InstructionType.CONTINUE: 0,
}


@dataclass(frozen=True)
class Step:
    """One leg of a route between two maneuver points"""
    index: int
    start_lat: float
    start_lon: float
    end_lat: float
    end_lon: float
    distance: float  # meters
    bearing: float  # degrees, start -> end
    instruction: str = ""
    step_type: InstructionType = InstructionType.CONTINUE
    name: Optional[str] = None  # street name

    def __post_init__(self):
        if self.distance < 0:
            raise ValueError(f"Step {self.index} has negative distance {self.distance}")
        if not 0 <= self.bearing < 360:
            object.__setattr__(self, "bearing", self.bearing % 360)

    @classmethod
    def between(cls, index: int, start: tuple[float, float], end: tuple[float, float],
                instruction: str = "", step_type: InstructionType = InstructionType.CONTINUE,
                name: Optional[str] = None) -> "Step":
        """Build a step whose distance and bearing come from its endpoints"""
        return cls(
            index=index,
            start_lat=start[0], start_lon=start[1],
            end_lat=end[0], end_lon=end[1],
            distance=haversine_distance(start[0], start[1], end[0], end[1]),
            bearing=bearing_between(start[0], start[1], end[0], end[1]),
            instruction=instruction,
            step_type=step_type,
            name=name,
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["step_type"] = self.step_type.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Step":
        d = dict(d)
        d["step_type"] = InstructionType(d.get("step_type", "continue"))
        return cls(**d)


@dataclass(frozen=True)
class Route:
    """A precomputed route. Replaced wholesale, never edited in place."""
    steps: tuple[Step, ...]
    start_lat: Optional[float]
    start_lon: Optional[float]
    end_lat: Optional[float]
    end_lon: Optional[float]
    distance: float  # meters
    duration: float = 0.0  # seconds
    mode: str = "driving"

    @property
    def has_endpoints(self) -> bool:
        return None not in (self.start_lat, self.start_lon, self.end_lat, self.end_lon)

    @property
    def destination(self) -> tuple[float, float]:
        return (self.end_lat, self.end_lon)

    @classmethod
    def from_waypoints(cls, points: list[tuple[float, float]], mode: str = "driving",
                       names: Optional[list[Optional[str]]] = None) -> "Route":
        """Build a route from a polyline, one step per consecutive pair of points"""
        if len(points) < 2:
            raise ValueError("A route needs at least two waypoints")
        steps = []
        for i in range(len(points) - 1):
            name = names[i] if names and i < len(names) else None
            steps.append(Step.between(i, points[i], points[i + 1], name=name))
        distance = sum(s.distance for s in steps)
        return cls(
            steps=tuple(steps),
            start_lat=points[0][0], start_lon=points[0][1],
            end_lat=points[-1][0], end_lon=points[-1][1],
            distance=distance,
            mode=mode,
        )

    def to_dict(self) -> dict:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "start_lat": self.start_lat,
            "start_lon": self.start_lon,
            "end_lat": self.end_lat,
            "end_lon": self.end_lon,
            "distance": self.distance,
            "duration": self.duration,
            "mode": self.mode,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Route":
        return cls(
            steps=tuple(Step.from_dict(s) for s in d.get("steps", [])),
            start_lat=d.get("start_lat"),
            start_lon=d.get("start_lon"),
            end_lat=d.get("end_lat"),
            end_lon=d.get("end_lon"),
            distance=d.get("distance", 0.0),
            duration=d.get("duration", 0.0),
            mode=d.get("mode", "driving"),
        )


@dataclass(frozen=True)
class Instruction:
    text: str
    type: InstructionType
    distance: float  # meters to the maneuver
    street: Optional[str] = None

    @property
    def priority(self) -> int:
        return self.type.priority

    def to_dict(self) -> dict:
        return {"text": self.text, "type": self.type.value,
                "distance": round(self.distance, 1), "street": self.street}


class RouteAction(Enum):
    CONTINUE = "continue"
    RECALCULATE = "recalculate"


@dataclass
class DeviationState:
    """Hysteresis state for off-route detection, scoped to one session"""
    consecutive: int = 0
    last_distance: Optional[float] = None
    off_route: bool = False

    def reset(self):
        self.consecutive = 0
        self.off_route = False


@dataclass(frozen=True)
class DeviationResult:
    is_deviated: bool
    distance: float
    action: RouteAction = RouteAction.CONTINUE
    message: str = ""

    def to_dict(self) -> dict:
        return {"is_deviated": self.is_deviated, "distance": round(self.distance, 1),
                "action": self.action.value, "message": self.message}


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    ARRIVED = "arrived"
    STOPPED = "stopped"


@dataclass(frozen=True)
class NavigationStatus:
    """Point-in-time snapshot of a navigation session"""
    state: SessionState
    route: Optional[Route] = None
    position: Optional[Position] = None
    next_instruction: Optional[Instruction] = None
    step_index: int = 0
    distance_traveled: float = 0.0
    distance_remaining: float = 0.0
    progress: float = 0.0
    time_remaining: float = 0.0  # seconds
    eta: Optional[float] = None  # epoch seconds
    off_route: bool = False
    signal_quality: Optional[str] = None
    start_time: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "position": self.position.to_dict() if self.position else None,
            "next_instruction": self.next_instruction.to_dict() if self.next_instruction else None,
            "step_index": self.step_index,
            "distance_traveled": round(self.distance_traveled, 1),
            "distance_remaining": round(self.distance_remaining, 1),
            "progress": round(self.progress, 4),
            "time_remaining": round(self.time_remaining, 1),
            "eta": self.eta,
            "off_route": self.off_route,
            "signal_quality": self.signal_quality,
        }


@dataclass
class NavigationSession:
    """Mutable per-session state, written only by the tick pipeline"""
    route: Route
    start_time: float = field(default_factory=time.time)
    state: SessionState = SessionState.ACTIVE
    step_index: int = 0
    distance_traveled: float = 0.0
    total_distance: float = 0.0
    progress: float = 0.0
    time_remaining: float = 0.0
    off_route: bool = False
    position: Optional[Position] = None
    next_instruction: Optional[Instruction] = None
    signal_quality: Optional[str] = None

    def __post_init__(self):
        if not self.total_distance:
            self.total_distance = self.route.distance

    def snapshot(self) -> NavigationStatus:
        return NavigationStatus(
            state=self.state,
            route=self.route,
            position=self.position,
            next_instruction=self.next_instruction,
            step_index=self.step_index,
            distance_traveled=self.distance_traveled,
            distance_remaining=max(0.0, self.total_distance - self.distance_traveled),
            progress=self.progress,
            time_remaining=self.time_remaining,
            eta=time.time() + self.time_remaining if self.state == SessionState.ACTIVE else None,
            off_route=self.off_route,
            signal_quality=self.signal_quality,
            start_time=self.start_time,
        )


class EventType(Enum):
    INSTRUCTION_UPDATED = "instruction_updated"
    POSITION_UPDATED = "position_updated"
    DEVIATED = "deviated"
    ARRIVED = "arrived"
    STATE_CHANGED = "state_changed"
    ERROR = "error"
    ACCURACY_CHANGED = "accuracy_changed"


@dataclass(frozen=True)
class NavigationEvent:
    kind: EventType
    data: Any = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        data = self.data
        if hasattr(data, "to_dict"):
            data = data.to_dict()
        elif isinstance(data, BaseException):
            data = {"error": type(data).__name__, "message": str(data)}
        return {"type": self.kind.value, "data": data, "timestamp": self.timestamp}
