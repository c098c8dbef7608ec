import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

EARTH_RADIUS_METERS = 6371000

def distance_meters(a: Any, b: Any) -> float:
    """
    Calculate distance between two points using Haversine formula
    Points are anything exposing latitude/longitude in degrees
    Returns distance in meters
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [a.latitude, a.longitude, b.latitude, b.longitude])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat/2)**2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon/2)**2
    c = 2 * math.asin(math.sqrt(min(1.0, h)))

    return EARTH_RADIUS_METERS * c

def is_inside(point: Any, geofence: Any) -> bool:
    """Boundary-inclusive containment test against a circular geofence"""
    return distance_meters(point, geofence) <= geofence.radius

def nearest_distance_to_polyline(point: Any, waypoints: Sequence[Any]) -> float:
    """
    Distance from point to the closest route vertex

    Only vertices are considered, not the segments between them, so a point
    midway along a long leg can read as far from the route.
    Returns math.inf for an empty route.
    """
    min_distance = math.inf

    for waypoint in waypoints:
        distance = distance_meters(point, waypoint)
        if distance < min_distance:
            min_distance = distance

    return min_distance

def check_geofence_violations(point: Any, geofences: Iterable[Any]) -> List[Any]:
    """Return the geofences that contain the point"""
    return [geofence for geofence in geofences if is_inside(point, geofence)]

def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"

def geofence_status(point: Optional[Any], geofence: Any) -> Dict[str, Any]:
    """
    Containment summary of a geofence relative to the current location
    A missing location reads as outside with an unknown distance
    """
    if point is None:
        return {"inside": False, "distance": 0.0, "formatted": "Unknown"}

    distance = distance_meters(point, geofence)
    return {
        "inside": distance <= geofence.radius,
        "distance": distance,
        "formatted": format_distance(distance)
    }

def validate_coordinates(latitude: float, longitude: float) -> List[str]:
    """Return coordinate validation errors (empty when valid)"""
    errors = []

    if latitude is None or not math.isfinite(latitude) or not (-90 <= latitude <= 90):
        errors.append("Invalid latitude: must be between -90 and 90")

    if longitude is None or not math.isfinite(longitude) or not (-180 <= longitude <= 180):
        errors.append("Invalid longitude: must be between -180 and 180")

    return errors
