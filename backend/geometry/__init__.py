"""Geometry on WGS84 coordinates."""

from geometry.geo import (
    EARTH_RADIUS_M,
    InvalidPolygon,
    centroid,
    distance,
    distance_to_polygon,
    distances_from,
    point_in_polygon,
)

__all__ = [
    "EARTH_RADIUS_M",
    "InvalidPolygon",
    "centroid",
    "distance",
    "distance_to_polygon",
    "distances_from",
    "point_in_polygon",
]
