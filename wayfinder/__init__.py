"""Wayfinder - Turn-by-turn navigation core."""

from .config import CONFIG, merged_config
from .models import (
    Position,
    Step,
    Route,
    Instruction,
    InstructionType,
    RouteAction,
    DeviationResult,
    SessionState,
    NavigationStatus,
    NavigationEvent,
    EventType,
)
from .logger import Logger
from .gps import (
    GPS,
    GPSRecorder,
    GPSPlayback,
    PositionUnavailable,
    LocationUnsupported,
    LocationDisabled,
    LocationPermissionDenied,
)
from .geo import (
    haversine_distance,
    bearing_between,
    bearing_to_compass,
    point_to_segment_distance,
    classify_turn,
    retry_with_backoff,
)
from .location_filter import LocationFilter, SignalQuality, classify_signal
from .instructions import InstructionGenerator, AnnouncementGate, format_distance
from .deviation import DeviationMonitor
from .progress import ProgressTracker
from .planner import OSRMRoutePlanner, DirectRoutePlanner, RoutePlanningError
from .audio import Audio
from .notify import WebhookNotifier
from .relay import EventRelay, WebSocketGPS
from .app import Navigator, InvalidRoute
from .__main__ import main

__all__ = [
    "CONFIG",
    "merged_config",
    "Position",
    "Step",
    "Route",
    "Instruction",
    "InstructionType",
    "RouteAction",
    "DeviationResult",
    "SessionState",
    "NavigationStatus",
    "NavigationEvent",
    "EventType",
    "Logger",
    "GPS",
    "GPSRecorder",
    "GPSPlayback",
    "PositionUnavailable",
    "LocationUnsupported",
    "LocationDisabled",
    "LocationPermissionDenied",
    "haversine_distance",
    "bearing_between",
    "bearing_to_compass",
    "point_to_segment_distance",
    "classify_turn",
    "retry_with_backoff",
    "LocationFilter",
    "SignalQuality",
    "classify_signal",
    "InstructionGenerator",
    "AnnouncementGate",
    "format_distance",
    "DeviationMonitor",
    "ProgressTracker",
    "OSRMRoutePlanner",
    "DirectRoutePlanner",
    "RoutePlanningError",
    "Audio",
    "WebhookNotifier",
    "EventRelay",
    "WebSocketGPS",
    "Navigator",
    "InvalidRoute",
    "main",
]
