"""Distance helpers."""

import math

EARTH_RADIUS_M = 6_371_000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Great-circle distance in whole meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round_half_up(EARTH_RADIUS_M * c)


def planar_distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Equirectangular distance in meters. Good enough for short hops on screen."""
    mean_lat = math.radians((lat1 + lat2) / 2)
    dx = math.radians(lng2 - lng1) * math.cos(mean_lat)
    dy = math.radians(lat2 - lat1)
    return EARTH_RADIUS_M * math.hypot(dx, dy)


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Check that both coordinates are real numbers inside the WGS84 ranges."""
    try:
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return False
    except TypeError:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
