import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres (Haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_ride_near_user(
    ride_latitude: Optional[float],
    ride_longitude: Optional[float],
    user_latitude: float,
    user_longitude: float,
    radius_km: float,
) -> bool:
    if ride_latitude is None or ride_longitude is None:
        return False
    return calculate_distance(user_latitude, user_longitude, ride_latitude, ride_longitude) <= radius_km
