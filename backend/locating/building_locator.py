"""Resolve a raw GPS fix to the building that contains it."""

import logging
from collections.abc import Sequence

from core.models import Building, Coordinate
from geometry.geo import InvalidPolygon, distance_to_polygon, point_in_polygon

logger = logging.getLogger(__name__)


def locate(point: Coordinate, buildings: Sequence[Building]) -> Building | None:
    """Return the building whose outline contains ``point``, or None.

    Every building is tested. When outlines overlap, the last match in
    topology order wins. None is an expected outcome that routes the caller
    to manual entry. Buildings with unusable outlines are skipped.
    """
    found: Building | None = None
    for building in buildings:
        try:
            inside = point_in_polygon(point, building.polygon)
        except InvalidPolygon as exc:
            logger.warning("Skipping building %s: %s", building.id, exc)
            continue
        if inside:
            found = building
    return found


def nearest_building(
    point: Coordinate,
    buildings: Sequence[Building],
    max_distance_m: float | None = None,
) -> tuple[Building, float] | None:
    """Closest building by outline vertex distance, for hinting the manual-entry flow.

    Ties go to the first building in topology order.
    """
    best: tuple[Building, float] | None = None
    for building in buildings:
        try:
            d = distance_to_polygon(point, building.polygon)
        except InvalidPolygon as exc:
            logger.warning("Skipping building %s: %s", building.id, exc)
            continue
        if max_distance_m is not None and d > max_distance_m:
            continue
        if best is None or d < best[1]:
            best = (building, d)
    return best
