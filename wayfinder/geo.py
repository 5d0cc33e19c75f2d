"""Geographic utility functions."""

import math
import time

EARTH_RADIUS = 6371000  # meters

COMPASS_POINTS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

COMPASS_NAMES = {
    "N": "north",
    "NE": "northeast",
    "E": "east",
    "SE": "southeast",
    "S": "south",
    "SW": "southwest",
    "W": "west",
    "NW": "northwest",
}


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS * c


def angular_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in radians"""
    return haversine_distance(lat1, lon1, lat2, lon2) / EARTH_RADIUS


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def _hav(theta: float) -> float:
    return math.sin(theta / 2) ** 2


def point_to_segment_distance(lat: float, lon: float,
                              lat1: float, lon1: float,
                              lat2: float, lon2: float) -> float:
    """Distance in meters from a point to the great-circle segment (lat1,lon1)-(lat2,lon2).

    Uses the cross-track distance when the point projects onto the segment,
    otherwise the distance to whichever endpoint is closest along the track.
    """
    d13 = angular_distance(lat1, lon1, lat, lon)
    d23 = angular_distance(lat2, lon2, lat, lon)
    d12 = angular_distance(lat1, lon1, lat2, lon2)

    if d12 < 1e-12:
        return d13 * EARTH_RADIUS
    if d13 < 1e-12:
        return 0.0

    # Angle at endpoint 1 between the segment and the point, haversine form
    # of the spherical law of cosines
    hav_a = (_hav(d23) - _hav(d13 - d12)) / (math.sin(d13) * math.sin(d12))
    hav_a = min(1.0, max(0.0, hav_a))
    cos_a = 1 - 2 * hav_a
    sin_a = 2 * math.sqrt(hav_a * (1 - hav_a))

    cross_track = math.asin(min(1.0, math.sin(d13) * sin_a))
    along_track = math.atan2(math.sin(d13) * cos_a, math.cos(d13))

    x = along_track / d12
    if x < 0:
        return d13 * EARTH_RADIUS
    if x > 1:
        return d23 * EARTH_RADIUS
    return min(abs(cross_track), d13, d23) * EARTH_RADIUS


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to one of 8 compass labels (N, NE, ... NW)"""
    index = round(bearing / 45) % 8
    return COMPASS_POINTS[index]


def bearing_delta(from_bearing: float, to_bearing: float) -> float:
    """Signed change of heading in degrees, in (-180, 180]; positive is clockwise"""
    diff = (to_bearing - from_bearing) % 360
    if diff > 180:
        diff -= 360
    return diff


def classify_turn(from_bearing: float, to_bearing: float,
                  straight_angle: float = 15, sharp_angle: float = 105) -> str:
    """Classify a change of heading as 'straight', 'left', 'right' or 'u-turn'.

    Anything between straight_angle and sharp_angle is an ordinary turn on
    the side given by the sign of the delta.
    """
    delta = bearing_delta(from_bearing, to_bearing)
    magnitude = abs(delta)

    if magnitude < straight_angle:
        return "straight"
    elif magnitude <= sharp_angle:
        return "right" if delta > 0 else "left"
    else:
        return "u-turn"


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation"):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            print(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            print(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            time.sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
