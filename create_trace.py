#!/usr/bin/env python3
"""
Create a synthetic GPS trace along a route, for playback testing.

Usage:
    python create_trace.py route.json [-o trace.json] [--noise 5] [--detour 150]

The output uses the same format GPSRecorder writes, so it can be fed to
`python -m wayfinder --route route.json --playback trace.json`.
"""

import argparse
import json
import math
import random
import time
from datetime import datetime
from pathlib import Path

from wayfinder import CONFIG, Route
from wayfinder.__main__ import load_route
from wayfinder.geo import EARTH_RADIUS, haversine_distance


def route_polyline(route: Route) -> list[tuple[float, float]]:
    """Points visited by the route, start to end"""
    if not route.steps:
        return [(route.start_lat, route.start_lon), (route.end_lat, route.end_lon)]
    points = [(route.steps[0].start_lat, route.steps[0].start_lon)]
    for step in route.steps:
        points.append((step.end_lat, step.end_lon))
    if points[-1] != (route.end_lat, route.end_lon):
        points.append((route.end_lat, route.end_lon))
    return points


def offset(lat: float, lon: float, north: float, east: float) -> tuple[float, float]:
    """Shift a point by meters north/east"""
    dlat = math.degrees(north / EARTH_RADIUS)
    dlon = math.degrees(east / (EARTH_RADIUS * math.cos(math.radians(lat))))
    return lat + dlat, lon + dlon


def sample_along(points: list[tuple[float, float]], spacing: float) -> list[tuple[float, float]]:
    """Points every `spacing` meters along the polyline, always ending on its last point"""
    samples = [points[0]]
    carried = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(points, points[1:]):
        length = haversine_distance(lat1, lon1, lat2, lon2)
        if length == 0:
            continue
        position = spacing - carried
        while position <= length:
            t = position / length
            samples.append((lat1 + (lat2 - lat1) * t, lon1 + (lon2 - lon1) * t))
            position += spacing
        carried = length - (position - spacing)
    if samples[-1] != points[-1]:
        samples.append(points[-1])
    return samples


def create_trace(route: Route, speed_kmh: float, interval: float, noise: float,
                 accuracy: float, detour: float, dropout: float, rng: random.Random) -> list[dict]:
    spacing = speed_kmh / 3.6 * interval
    samples = sample_along(route_polyline(route), spacing)

    # Detour covers the middle fifth of the trip
    detour_range = range(len(samples) * 2 // 5, len(samples) * 3 // 5) if detour else range(0)

    start = time.time()
    trace = []
    for i, (lat, lon) in enumerate(samples):
        elapsed = i * interval
        if i in detour_range:
            lat, lon = offset(lat, lon, detour, detour)
        if noise:
            lat, lon = offset(lat, lon, rng.gauss(0, noise), rng.gauss(0, noise))

        # Never drop the first or last fix
        if 0 < i < len(samples) - 1 and rng.random() < dropout:
            location = None
        else:
            location = {
                "lat": lat,
                "lon": lon,
                "accuracy": round(max(1.0, rng.gauss(accuracy, accuracy / 4)), 1),
                "speed": speed_kmh / 3.6,
                "course": None,
                "timestamp": start + elapsed,
            }
        trace.append({
            "elapsed": elapsed,
            "timestamp": start + elapsed,
            "location": location,
            "status": "synthetic",
        })
    return trace


def main():
    parser = argparse.ArgumentParser(description="Create a synthetic GPS trace along a route")
    parser.add_argument("route", help="Route JSON file")
    parser.add_argument("-o", "--output", default="trace.json",
                        help="Output file (default: trace.json)")
    parser.add_argument("--mode", default="driving",
                        help="Travel mode, sets the default speed (default: driving)")
    parser.add_argument("--speed-kmh", type=float,
                        help="Travel speed (default: the mode's assumed speed)")
    parser.add_argument("--interval", type=float, default=CONFIG["tick_interval"],
                        help="Seconds between fixes")
    parser.add_argument("--noise", type=float, default=5.0,
                        help="GPS noise standard deviation in meters (default: 5)")
    parser.add_argument("--accuracy", type=float, default=8.0,
                        help="Reported accuracy in meters (default: 8)")
    parser.add_argument("--detour", type=float, default=0.0,
                        help="Push the middle of the trip this many meters off route")
    parser.add_argument("--dropout", type=float, default=0.0,
                        help="Probability of a missing fix (default: 0)")
    parser.add_argument("--seed", type=int, help="Random seed")

    args = parser.parse_args()

    if not Path(args.route).exists():
        print(f"Route file not found: {args.route}")
        return 1

    route = load_route(args.route, args.mode)
    speed = args.speed_kmh or CONFIG["assumed_speeds_kmh"].get(route.mode, CONFIG["default_speed_kmh"])
    trace = create_trace(route, speed, args.interval, args.noise, args.accuracy,
                         args.detour, args.dropout, random.Random(args.seed))

    with open(args.output, "w") as f:
        json.dump({"recorded_at": datetime.now().isoformat(), "trace": trace}, f, indent=2)

    print(f"Trace saved to {args.output} ({len(trace)} entries, {route.distance:.0f}m at {speed:.0f} km/h)")
    return 0


if __name__ == "__main__":
    exit(main())
