"""Configuration settings for Wayfinder."""

CONFIG = {
    # Session loop
    "tick_interval": 2.0,  # seconds between position requests
    "gps_timeout": 10,  # seconds the provider may block for one fix
    "adaptive_polling": False,  # stretch the tick interval using signal quality
    # Arrival / instructions
    "arrival_threshold": 20,  # meters - destination reached
    "approach_threshold": 100,  # meters - immediate maneuver instruction
    "next_instruction_threshold": 200,  # meters - "prepare to" instruction
    "speak_distance_threshold": 500,  # meters - only announce within this distance
    "repeat_interval": 10,  # seconds before the same text may be spoken again
    # Turn classification (degrees of bearing change)
    "straight_angle": 15,
    "sharp_turn_angle": 105,
    # Route deviation
    "route_deviation_threshold": 50,  # meters - off route beyond this
    "deviation_count_required": 3,  # consecutive off-route fixes before recalculating
    # Location filter
    "location_smoothing": True,
    "history_size": 10,
    "smoothing_window": 3,  # historical fixes blended with the new one
    "new_fix_boost": 2.0,
    "unknown_accuracy": 50,  # meters assumed when a fix reports no accuracy
    "accuracy_change_threshold": 10,  # meters
    "max_plausible_speed_kmh": 200,  # faster implied movement is a jump
    "signal_quality_limits": {
        "excellent": 5,
        "good": 10,
        "fair": 20,
        "poor": 50,
    },
    "poll_intervals": {  # seconds, by signal quality
        "excellent": 5,
        "good": 10,
        "fair": 15,
        "poor": 30,
        "no_signal": 60,
    },
    # Progress / ETA (km/h, by travel mode)
    "assumed_speeds_kmh": {
        "driving": 50.0,
        "cycling": 15.0,
        "walking": 5.0,
    },
    "default_speed_kmh": 50.0,
    # Route planning
    "osrm_base_url": "https://router.project-osrm.org",
    "osrm_profiles": {
        "driving": "driving",
        "walking": "foot",
        "cycling": "bike",
    },
    "http_timeout": 10,  # seconds
    # Voice
    "voice_rate": 150,  # espeak words per minute
}


def merged_config(overrides=None) -> dict:
    """Return CONFIG with overrides applied on top (shallow)."""
    config = dict(CONFIG)
    if overrides:
        config.update(overrides)
    return config
