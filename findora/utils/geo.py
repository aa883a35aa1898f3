import math
from typing import Optional, Tuple

EARTH_RADIUS_METERS = 6_371_000

Point = Tuple[float, float]


def distance_meters(point_a: Point, point_b: Point) -> float:
    """
    Great-circle distance between two (lat, lng) points using the haversine formula.
    """
    lat1, lng1 = point_a
    lat2, lng2 = point_b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def place_point(place) -> Optional[Point]:
    # Coordinates are stored as decimal text; convert only for the computation.
    if not place.latitude or not place.longitude:
        return None
    try:
        return float(place.latitude), float(place.longitude)
    except ValueError:
        return None


def distance_to_place(reference: Point, place) -> float:
    point = place_point(place)
    if point is None:
        return math.inf
    return distance_meters(reference, point)
