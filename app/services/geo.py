"""
Great-circle math over WGS84 coordinates on a spherical earth
"""
import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate distance between two coordinates using Haversine formula

    Returns:
        float: Distance in meters
    """
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    delta_lat = math.radians(b.lat - a.lat)
    delta_lng = math.radians(b.lng - a.lng)

    h = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def bearing_degrees(a: GeoPoint, b: GeoPoint) -> float:
    """Initial bearing from a to b, clockwise from true north, in [0, 360)"""
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    delta_lng = math.radians(b.lng - a.lng)

    x = math.sin(delta_lng) * math.cos(lat2_rad)
    y = (math.cos(lat1_rad) * math.sin(lat2_rad) -
         math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lng))

    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def speed_kmh(a: GeoPoint, b: GeoPoint, seconds: float) -> float:
    """
    Average speed needed to travel from a to b in the elapsed time

    Raises:
        ValueError: If seconds is not positive; callers decide what a
            zero or negative interval means
    """
    if seconds <= 0:
        raise ValueError(f"elapsed seconds must be positive, got {seconds}")
    return (distance_meters(a, b) / 1000.0) / (seconds / 3600.0)
