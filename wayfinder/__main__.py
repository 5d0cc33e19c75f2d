#!/usr/bin/env python3
"""
Wayfinder - Turn-by-turn navigation along a precomputed route

Usage:
    python -m wayfinder --to LAT LON [options]
    python -m wayfinder --route FILE [options]

Options:
    --to LAT LON      Destination; the route is fetched from OSRM
    --from LAT LON    Origin (default: first GPS fix)
    --route FILE      Navigate a route stored as JSON instead of planning one
    --mode MODE       driving, walking or cycling (default: driving)
    --osrm URL        OSRM server base URL
    --direct          Plan straight-line routes offline instead of using OSRM
    --record FILE     Record GPS trace to JSON file for debugging
    --playback FILE   Playback GPS trace from JSON file
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --log FILE        Log file path (default: wayfinder_TIMESTAMP.log)
    --relay           Stream events over WebSocket and accept pushed fixes
    --webhook URL     POST milestone events to this URL
    --high-precision  Blend fixes with a motion prediction
    --quiet           Print instructions instead of speaking them
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from .app import InvalidRoute, Navigator
from .audio import Audio
from .config import CONFIG
from .geo import retry_with_backoff
from .gps import GPS, GPSPlayback, GPSRecorder, PositionUnavailable
from .logger import Logger
from .models import EventType, Position, Route
from .notify import WebhookNotifier
from .planner import DirectRoutePlanner, OSRMRoutePlanner, RoutePlanningError
from .relay import EventRelay, WebSocketGPS


def load_route(path: str, mode: str) -> Route:
    """Read a route file: either a serialized Route or a bare list of [lat, lon] points"""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, list):
        return Route.from_waypoints([tuple(p) for p in data], mode=mode)
    return Route.from_dict(data)


def _print_event(event):
    if event.kind == EventType.INSTRUCTION_UPDATED:
        print(f">> {event.data.text}")
    elif event.kind == EventType.DEVIATED:
        print(f"!! {event.data.message}")
    elif event.kind == EventType.ARRIVED:
        print("** Arrived")
    elif event.kind == EventType.ERROR:
        print(f"Error: {event.data}")
    elif event.kind == EventType.STATE_CHANGED:
        status = event.data
        print(f"   [{status.state.value}] {status.progress * 100:.0f}% "
              f"{status.distance_remaining:.0f}m left"
              f"{' (off route)' if status.off_route else ''}")


def main():
    parser = argparse.ArgumentParser(
        description="Wayfinder - Turn-by-turn navigation along a precomputed route"
    )
    parser.add_argument("--to", type=float, nargs=2, metavar=("LAT", "LON"),
                        help="Destination coordinates")
    parser.add_argument("--from", dest="origin", type=float, nargs=2, metavar=("LAT", "LON"),
                        help="Origin coordinates (default: first GPS fix)")
    parser.add_argument("--route", metavar="FILE",
                        help="Navigate a route loaded from a JSON file")
    parser.add_argument("--mode", choices=sorted(CONFIG["assumed_speeds_kmh"]), default="driving",
                        help="Travel mode (default: driving)")
    parser.add_argument("--osrm", metavar="URL",
                        help=f"OSRM server (default: {CONFIG['osrm_base_url']})")
    parser.add_argument("--direct", action="store_true",
                        help="Plan straight-line routes without a routing server")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: wayfinder_TIMESTAMP.log)")
    parser.add_argument("--relay", action="store_true",
                        help="Run the WebSocket event relay (pushed fixes replace GPS)")
    parser.add_argument("--webhook", metavar="URL",
                        help="POST milestone events to this URL")
    parser.add_argument("--high-precision", action="store_true",
                        help="Blend fixes with a motion prediction")
    parser.add_argument("--quiet", action="store_true",
                        help="Print instructions instead of speaking them")

    args = parser.parse_args()

    if not args.to and not args.route:
        parser.error("either --to or --route is required")
    if args.direct and args.osrm:
        parser.error("--direct and --osrm can't be used together")
    if args.playback and not Path(args.playback).exists():
        print(f"Playback file not found: {args.playback}")
        sys.exit(1)

    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"wayfinder_{timestamp}.log"

    relay = None
    if args.relay:
        relay = EventRelay()
        relay.start()

    logger = Logger(log_path, callback=relay.send_log if relay else None)
    audio = Audio(rate=CONFIG["voice_rate"], enabled=not args.quiet,
                  callback=relay.send_audio if relay else None)
    planner = DirectRoutePlanner() if args.direct else OSRMRoutePlanner(args.osrm)

    # Position source
    if args.playback:
        gps_source = GPSPlayback(args.playback, args.speed)
    elif relay:
        gps_source = WebSocketGPS(relay)
    else:
        gps_source = GPS()
    if args.record:
        gps_source = GPSRecorder(gps_source, args.record)

    # Route
    try:
        if args.route:
            route = load_route(args.route, args.mode)
        else:
            if args.origin:
                origin = Position(*args.origin)
            else:
                print("Waiting for GPS fix...")
                try:
                    origin = retry_with_backoff(
                        lambda: gps_source.get_location(timeout=CONFIG["gps_timeout"]),
                        max_time=60, description="GPS fix",
                    )
                except PositionUnavailable as e:
                    print(f"Location unavailable: {e}")
                    sys.exit(1)
                if not origin:
                    print("Could not get a GPS fix")
                    sys.exit(1)

            logger.log("Planning route", {
                "from": [origin.lat, origin.lon], "to": args.to, "mode": args.mode,
            })
            route = planner.calculate_route(origin, tuple(args.to), args.mode)
    except (OSError, ValueError, RoutePlanningError) as e:
        print(f"Could not get a route: {e}")
        logger.close()
        sys.exit(1)

    print(f"Route: {len(route.steps)} steps, {route.distance:.0f}m")

    navigator = Navigator(
        gps_source,
        route_planner=planner,
        announcer=audio,
        notifier=WebhookNotifier(args.webhook) if args.webhook else None,
        logger=logger,
        high_precision=args.high_precision,
    )

    def on_event(event):
        _print_event(event)
        if relay:
            relay.send_event(event)

    try:
        navigator.run(route, on_event=on_event)
    except InvalidRoute as e:
        print(f"Invalid route: {e}")
        sys.exit(1)
    finally:
        if relay:
            relay.stop()


if __name__ == "__main__":
    main()
