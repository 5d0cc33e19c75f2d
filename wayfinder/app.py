"""Navigation session state machine and tick loop."""

import queue
import threading
import time
from typing import Callable, Optional

from .config import merged_config
from .deviation import DeviationMonitor
from .gps import GPSPlayback, GPSRecorder, PositionUnavailable
from .instructions import (
    ARRIVAL_TEXT,
    AnnouncementGate,
    InstructionGenerator,
    distance_to_destination,
)
from .location_filter import LocationFilter
from .logger import Logger
from .models import (
    EventType,
    InstructionType,
    NavigationEvent,
    NavigationSession,
    NavigationStatus,
    Position,
    Route,
    SessionState,
)
from .planner import RoutePlanningError
from .progress import ProgressTracker


class InvalidRoute(ValueError):
    """The route handed to start() can't be navigated."""


class Navigator:
    """Guides one session at a time along a precomputed route.

    Collaborators:
        position_provider: get_location(timeout) -> Position | None
        route_planner:     calculate_route(origin, destination, mode) -> Route
        announcer:         speak(text), fire-and-forget
        notifier:          notify(event), best effort

    Events are delivered on the `events` queue; get_status() returns the
    snapshot published at the end of the latest tick.
    """

    def __init__(self, position_provider, route_planner=None, announcer=None,
                 notifier=None, logger: Optional[Logger] = None,
                 config: Optional[dict] = None, high_precision: bool = False):
        self.config = merged_config(config)
        self.gps_source = position_provider
        self.planner = route_planner
        self.audio = announcer
        self.notifier = notifier
        self.logger = logger or Logger()

        self.location_filter = LocationFilter(self.config, high_precision=high_precision)
        self.instructions = InstructionGenerator(self.config)
        self.gate = AnnouncementGate(
            speak_distance=self.config["speak_distance_threshold"],
            repeat_interval=self.config["repeat_interval"],
        )
        self.deviation = DeviationMonitor(self.config)
        self.progress = ProgressTracker(self.config)

        self.events: queue.Queue = queue.Queue()
        self.session: Optional[NavigationSession] = None
        self._status = NavigationStatus(SessionState.IDLE)
        self._lock = threading.RLock()
        self._worker: Optional[threading.Thread] = None
        self._cancel: Optional[threading.Event] = None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._status.state

    def get_status(self) -> NavigationStatus:
        return self._status

    def start(self, route: Route):
        """Begin guiding along route, replacing any session in progress"""
        if not isinstance(route, Route) or not route.has_endpoints:
            raise InvalidRoute("Route is missing or has no start/end coordinates")

        with self._lock:
            replaced = self._end_session()
            self.location_filter.reset()
            self.gate.reset()
            self.deviation.reset()
            self.progress.reset()
            self.session = NavigationSession(route=route)
            self._publish()
            self._start_loop()
            status = self._status

        if replaced:
            self._finish_stop(*replaced)
        self.logger.log("Navigation started", {
            "steps": len(route.steps),
            "distance": round(route.distance, 1),
            "mode": route.mode,
            "destination": {"lat": route.end_lat, "lon": route.end_lon},
        })
        self._emit(EventType.STATE_CHANGED, status, notify=True)
        self._speak("Navigation started")

    def stop(self):
        """Stop the session. Safe to call repeatedly."""
        with self._lock:
            stopped = self._end_session()
        if stopped:
            self._finish_stop(*stopped)

    def pause(self):
        with self._lock:
            session = self.session
            if session is None or session.state != SessionState.ACTIVE:
                return
            worker = self._halt_loop()
            session.state = SessionState.PAUSED
            self._publish()
            status = self._status

        self._join(worker)
        self.logger.log("Navigation paused")
        self._emit(EventType.STATE_CHANGED, status)
        self._speak("Navigation paused")

    def resume(self):
        with self._lock:
            session = self.session
            if session is None or session.state != SessionState.PAUSED:
                return
            session.state = SessionState.ACTIVE
            self._publish()
            self._start_loop()
            status = self._status

        self.logger.log("Navigation resumed")
        self._emit(EventType.STATE_CHANGED, status)
        self._speak("Navigation resumed")

    def tick(self, fix: Position) -> Optional[NavigationStatus]:
        """Run the full pipeline against one raw fix.

        Returns the published status, or None if no session is active.
        """
        return self._tick(fix)

    def _tick(self, fix: Position, cancel: Optional[threading.Event] = None):
        with self._lock:
            session = self.session
            if session is None or session.state != SessionState.ACTIVE:
                return None
            if cancel is not None and cancel.is_set():
                return None

            position, raw = self._filter_stage(session, fix)
            self._instruction_stage(session, position, raw)
            self._deviation_stage(session, position)
            self._progress_stage(session, position)

            if self._has_arrived(session, position, raw):
                self._arrive(session)
                return self._status

            self._publish()
            status = self._status

        self._emit(EventType.POSITION_UPDATED, position)
        self._emit(EventType.STATE_CHANGED, status)
        return status

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------

    def _start_loop(self):
        cancel = threading.Event()
        worker = threading.Thread(
            target=self._run_loop, args=(cancel,), name="wayfinder-tick", daemon=True
        )
        self._cancel = cancel
        self._worker = worker
        worker.start()

    def _halt_loop(self) -> Optional[threading.Thread]:
        """Signal the running loop to finish; returns its thread for joining"""
        if self._cancel is not None:
            self._cancel.set()
        worker = self._worker
        self._cancel = None
        return worker

    def _end_session(self):
        """Mark the session stopped and halt its loop. Call with the lock held.

        Returns what _finish_stop needs, or None if there was nothing to stop.
        """
        session = self.session
        if session is None or session.state == SessionState.STOPPED:
            return None
        worker = self._halt_loop()
        session.state = SessionState.STOPPED
        self._publish()
        return worker, self._status, self._summary()

    def _finish_stop(self, worker: Optional[threading.Thread], status: NavigationStatus,
                     summary: dict):
        self._join(worker)
        self.logger.log("Navigation stopped", summary)
        self._emit(EventType.STATE_CHANGED, status, notify=True)

    def _join(self, worker: Optional[threading.Thread]):
        if worker is None or worker is threading.current_thread():
            return
        worker.join(timeout=self.config["gps_timeout"] + self.config["tick_interval"] + 5)
        if worker.is_alive():
            self.logger.log("Tick loop did not exit in time", {"thread": worker.name})

    def _run_loop(self, cancel: threading.Event):
        try:
            while not cancel.is_set():
                try:
                    fix = self._fetch_position()
                    if cancel.is_set():
                        break
                    if fix:
                        self._tick(fix, cancel)
                    if self.is_playback_finished():
                        with self._lock:
                            if not cancel.is_set():
                                self.logger.log("Playback finished")
                                self.stop()
                        break
                    interval = self.get_poll_interval()
                except Exception as e:
                    self.logger.log("Tick loop error", {"error": repr(e)})
                    self._emit(EventType.ERROR, e)
                    interval = self.config["tick_interval"]
                cancel.wait(interval)
        finally:
            with self._lock:
                if self._worker is threading.current_thread():
                    self._worker = None

    def _fetch_position(self) -> Optional[Position]:
        try:
            status = self.gps_source.get_status() if hasattr(self.gps_source, "get_status") else "unknown"
            fix = self.gps_source.get_location(timeout=self.config["gps_timeout"])
        except PositionUnavailable as e:
            self.logger.log("Position unavailable", {"reason": type(e).__name__, "message": str(e)})
            self._emit(EventType.ERROR, e)
            return None
        except Exception as e:
            self.logger.log("Position provider error", {"error": repr(e)})
            self._emit(EventType.ERROR, e)
            return None

        if fix is None:
            self.logger.log("GPS fix failed", {"status": status})
            self._emit(EventType.ERROR, PositionUnavailable("No fix this tick"))
        return fix

    def get_poll_interval(self) -> float:
        """Seconds between position requests"""
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.get_poll_interval()
        interval = self.config["tick_interval"]
        if self.config["adaptive_polling"]:
            interval = max(interval, self.location_filter.poll_interval())
        return interval

    def is_playback_finished(self) -> bool:
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.is_finished()
        return False

    # ------------------------------------------------------------------
    # Pipeline stages - each one reports its own failure and lets the tick go on
    # ------------------------------------------------------------------

    def _filter_stage(self, session: NavigationSession, fix: Position) -> tuple[Position, Position]:
        """Smoothed position for the tick, plus the raw fix if it was trusted"""
        position = raw = fix
        try:
            filtered = self.location_filter.update(fix)
            position = filtered.position
            session.signal_quality = filtered.quality.value
            if filtered.rejected:
                raw = position
                self.logger.log("Rejected position jump", {"lat": fix.lat, "lon": fix.lon})
            if filtered.accuracy_change is not None:
                self._emit(EventType.ACCURACY_CHANGED, {
                    "accuracy": fix.accuracy,
                    "change": filtered.accuracy_change,
                    "quality": filtered.quality.value,
                })
        except Exception as e:
            self._stage_failed("Location filter", e)
        session.position = position
        return position, raw

    def _instruction_stage(self, session: NavigationSession, position: Position, raw: Position):
        try:
            instruction, step_index = self.instructions.generate(session.route, position, raw)
        except Exception as e:
            self._stage_failed("Instruction generator", e)
            return

        previous = session.next_instruction
        session.next_instruction = instruction
        session.step_index = step_index

        # The arrival itself is announced by _arrive
        announced = False
        if instruction.type != InstructionType.ARRIVE and self.gate.should_announce(instruction):
            self._speak(instruction.text)
            self.gate.mark_spoken(instruction)
            announced = True

        if announced or previous is None or previous.text != instruction.text:
            self._emit(EventType.INSTRUCTION_UPDATED, instruction)

    def _deviation_stage(self, session: NavigationSession, position: Position):
        try:
            result = self.deviation.check(session.route, position)
            session.off_route = self.deviation.state.off_route
            if not result.is_deviated:
                return

            self.logger.log("Route deviation", {
                "distance": round(result.distance, 1),
                "consecutive": self.deviation.state.consecutive,
            })
            self._emit(EventType.DEVIATED, result, notify=True)
            self._speak("You are off route. Recalculating.")
            self._recalculate(session, position)
        except Exception as e:
            self._stage_failed("Deviation monitor", e)

    def _recalculate(self, session: NavigationSession, position: Position):
        if self.planner is None:
            self._emit(EventType.ERROR, RoutePlanningError("No route planner configured"))
            return

        try:
            new_route = self.deviation.recalculate(self.planner, session.route, position)
        except RoutePlanningError as e:
            self.logger.log("Route recalculation failed", {"error": str(e)})
            self._emit(EventType.ERROR, e)
            return

        session.route = new_route
        session.total_distance = new_route.distance
        session.distance_traveled = 0.0
        session.progress = 0.0
        session.step_index = 0
        session.off_route = False
        self.progress.reset()

        instruction, step_index = self.instructions.generate(new_route, position)
        session.next_instruction = instruction
        session.step_index = step_index

        self.logger.log("Route recalculated", {
            "steps": len(new_route.steps),
            "distance": round(new_route.distance, 1),
        })
        self._speak("Route recalculated")
        self._emit(EventType.INSTRUCTION_UPDATED, instruction)

    def _progress_stage(self, session: NavigationSession, position: Position):
        try:
            progress = self.progress.measure(session.route, position, session.step_index)
        except Exception as e:
            self._stage_failed("Progress tracker", e)
            return
        session.distance_traveled = progress.traveled
        session.progress = progress.fraction
        session.time_remaining = progress.time_remaining

    def _has_arrived(self, session: NavigationSession, position: Position, raw: Position) -> bool:
        distance = distance_to_destination(session.route, position, raw)
        return distance <= self.config["arrival_threshold"]

    def _arrive(self, session: NavigationSession):
        """Arrived -> Stopped. Called with the lock held, possibly from the loop itself."""
        session.state = SessionState.ARRIVED
        session.distance_traveled = session.total_distance
        session.progress = 1.0
        session.time_remaining = 0.0
        self._publish()
        self.logger.log("Destination reached", self._summary())
        self._emit(EventType.ARRIVED, self._status, notify=True)
        self._speak(ARRIVAL_TEXT)

        self._halt_loop()
        session.state = SessionState.STOPPED
        self._publish()
        self.logger.log("Navigation stopped")
        self._emit(EventType.STATE_CHANGED, self._status, notify=True)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _publish(self):
        self._status = self.session.snapshot()

    def _emit(self, kind: EventType, data=None, notify: bool = False):
        event = NavigationEvent(kind, data)
        self.events.put(event)
        if notify:
            self._notify(event)

    def _stage_failed(self, stage: str, error: Exception):
        self.logger.log(f"{stage} failed", {"error": repr(error)})
        self._emit(EventType.ERROR, error)

    def _speak(self, text: str):
        if not self.audio:
            return
        try:
            self.audio.speak(text)
        except Exception as e:
            self.logger.log("Announcer error", {"error": repr(e), "text": text})

    def _notify(self, event: NavigationEvent):
        if not self.notifier:
            return
        threading.Thread(target=self._deliver, args=(event,), daemon=True).start()

    def _deliver(self, event: NavigationEvent):
        try:
            self.notifier.notify(event)
        except Exception as e:
            self.logger.log("Notification failed", {"event": event.kind.value, "error": repr(e)})

    def _summary(self) -> dict:
        session = self.session
        if session is None:
            return {}
        return {
            "traveled": round(session.distance_traveled, 1),
            "total": round(session.total_distance, 1),
            "progress": round(session.progress, 3),
            "duration": round(time.time() - session.start_time, 1),
        }

    def run(self, route: Route, on_event: Optional[Callable[[NavigationEvent], None]] = None):
        """Navigate route in the foreground until arrival, playback end or Ctrl+C"""
        self.start(route)
        try:
            while True:
                try:
                    event = self.events.get(timeout=0.5)
                except queue.Empty:
                    if self.state == SessionState.STOPPED:
                        break
                    continue
                if on_event:
                    on_event(event)
        except KeyboardInterrupt:
            print("\nNavigation interrupted")
            self.logger.log("Navigation interrupted by user")
        finally:
            self.stop()
            if isinstance(self.gps_source, GPSRecorder):
                self.gps_source.save()

            status = self.get_status()
            print("\nNavigation summary:")
            print(f"  Traveled: {status.distance_traveled:.0f}m")
            print(f"  Remaining: {status.distance_remaining:.0f}m")
            print(f"  Progress: {status.progress * 100:.0f}%")
            self.logger.close()
