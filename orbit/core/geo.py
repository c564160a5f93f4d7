"""
Coordinates and the flat-earth distance used by the incident feed.

Distances are planar: the Euclidean distance between two points in degrees
multiplied by 111 km per degree. This is not geodesically exact and is not
meant to be; it is the distance the feed radius is defined against.
"""
import math
from dataclasses import dataclass

KM_PER_DEGREE = 111.0


@dataclass(frozen=True)
class Point:
    """A (longitude, latitude) pair in degrees."""

    lng: float
    lat: float

    def __composite_values__(self):
        return self.lng, self.lat

    def to_wkt(self) -> str:
        return f"POINT({self.lng} {self.lat})"


def planar_distance_km(a, b) -> float:
    """Distance in km between two objects exposing ``lng`` and ``lat``."""
    return math.hypot(a.lng - b.lng, a.lat - b.lat) * KM_PER_DEGREE


def within_radius(point, center, radius_km: float) -> bool:
    return planar_distance_km(point, center) <= radius_km
