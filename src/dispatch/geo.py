"""Geospatial helpers — distances, ETAs and coordinate checks.

All functions are pure. Coordinates follow the GeoJSON convention used on the
wire: longitude first when passed as a pair.
"""

import math
import random

EARTH_RADIUS_KM = 6371.0

# Average speeds in km/h per vehicle type.
VEHICLE_SPEEDS_KMH = {
    "bike": 25,
    "scooter": 20,
    "bicycle": 15,
    "car": 30,
}

DEFAULT_VEHICLE = "bike"


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points using the haversine formula."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_eta_minutes(distance: float, vehicle_type: str | None = None, rng: random.Random | None = None) -> int:
    """Estimated minutes to cover ``distance`` km, plus 20-40 minutes of slack.

    The slack stands in for traffic and stops. Unknown vehicle types travel at
    bike speed.
    """
    speed = VEHICLE_SPEEDS_KMH.get(vehicle_type or DEFAULT_VEHICLE, VEHICLE_SPEEDS_KMH[DEFAULT_VEHICLE])
    travel_minutes = math.ceil(distance / speed * 60)
    rand = (rng or random).random()
    buffer_minutes = math.ceil(rand * 20) + 20
    return travel_minutes + buffer_minutes


def is_valid_coordinate(longitude, latitude) -> bool:
    """True when both values are numbers within GeoJSON bounds."""
    if isinstance(longitude, bool) or isinstance(latitude, bool):
        return False
    if not isinstance(longitude, int | float) or not isinstance(latitude, int | float):
        return False
    return -180 <= longitude <= 180 and -90 <= latitude <= 90


def meters_to_km(meters: float) -> float:
    return meters / 1000.0


def bounding_box(longitude: float, latitude: float, radius_km: float) -> tuple[float, float, float, float]:
    """(min_lon, min_lat, max_lon, max_lat) enclosing every point within ``radius_km``.

    Longitude is left unbounded near the poles and across the antimeridian.
    """
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular)
    min_lat, max_lat = max(latitude - d_lat, -90.0), min(latitude + d_lat, 90.0)
    if min_lat <= -90 or max_lat >= 90:
        return -180.0, min_lat, 180.0, max_lat
    d_lon = math.degrees(math.asin(math.sin(angular) / math.cos(math.radians(latitude))))
    if longitude - d_lon < -180 or longitude + d_lon > 180:
        return -180.0, min_lat, 180.0, max_lat
    return longitude - d_lon, min_lat, longitude + d_lon, max_lat


def format_duration(minutes: int) -> str:
    """Human-readable duration, e.g. ``45 mins``, ``1h 5m`` or ``2h``."""
    if minutes < 60:
        return f"{minutes} mins"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m" if remaining else f"{hours}h"
