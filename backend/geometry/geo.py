"""Great-circle distance and polygon geometry on WGS84 coordinates."""

import math
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from core.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0


class InvalidPolygon(ValueError):
    """Raised for rings too degenerate to answer a geometric question."""


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in metres between two coordinates."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    return EARTH_RADIUS_M * 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def distances_from(point: Coordinate, coords: Sequence[Coordinate]) -> NDArray[np.float64]:
    """Vectorised haversine from ``point`` to every coordinate in ``coords``."""
    if not coords:
        return np.empty(0, dtype=np.float64)
    lat = np.radians(np.fromiter((c.lat for c in coords), dtype=np.float64, count=len(coords)))
    lng = np.radians(np.fromiter((c.lng for c in coords), dtype=np.float64, count=len(coords)))
    phi = math.radians(point.lat)

    d_phi = lat - phi
    d_lambda = lng - math.radians(point.lng)
    h = np.sin(d_phi / 2.0) ** 2 + math.cos(phi) * np.cos(lat) * np.sin(d_lambda / 2.0) ** 2
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))


def centroid(polygon: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of the vertices (not area-weighted)."""
    if not polygon:
        raise InvalidPolygon("cannot take the centroid of an empty polygon")
    verts = _as_array(polygon)
    lat, lng = verts.mean(axis=0)
    return Coordinate(lat=float(lat), lng=float(lng))


def point_in_polygon(point: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """Even-odd ray casting test over edges ``(i, i-1 mod n)``.

    The ray runs toward increasing longitude and the crossing comparison is
    strict. For an axis-aligned ring this puts points on the left and bottom
    edges inside and points on the right and top edges outside. Other
    boundary points follow from floating point and are not guaranteed.

    Raises:
        InvalidPolygon: if the ring has fewer than three vertices.
    """
    if len(polygon) < 3:
        raise InvalidPolygon(f"ring needs at least 3 vertices, got {len(polygon)}")

    verts = _as_array(polygon)
    yi, xi = verts[:, 0], verts[:, 1]
    yj, xj = np.roll(yi, 1), np.roll(xi, 1)
    x, y = point.lng, point.lat

    straddles = (yi > y) != (yj > y)
    # Horizontal edges never straddle, so their inf/nan is masked out.
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
    crossings = int(np.count_nonzero(straddles & (x < x_cross)))
    return crossings % 2 == 1


def distance_to_polygon(point: Coordinate, polygon: Sequence[Coordinate]) -> float:
    """Distance in metres from ``point`` to the nearest vertex of ``polygon``."""
    if not polygon:
        raise InvalidPolygon("cannot measure distance to an empty polygon")
    return float(distances_from(point, polygon).min())


def _as_array(polygon: Sequence[Coordinate]) -> NDArray[np.float64]:
    return np.array([[c.lat, c.lng] for c in polygon], dtype=np.float64)
