"""Rank the rooms of a floor by proximity to a GPS fix."""

import logging
from dataclasses import dataclass

import numpy as np

from core.models import Coordinate, Floor, Room
from geometry.geo import InvalidPolygon, centroid, distances_from

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 50.0


@dataclass(frozen=True)
class RankedRoom:
    room: Room
    distance_m: float


def rank(point: Coordinate, floor: Floor, radius_m: float = DEFAULT_RADIUS_M) -> list[RankedRoom]:
    """Rooms whose centroid lies within ``radius_m`` of ``point``, nearest first.

    Equal distances keep floor order. An empty list means no room is nearby.
    """
    rooms: list[Room] = []
    centres: list[Coordinate] = []
    for room in floor.rooms:
        try:
            centres.append(centroid(room.polygon))
        except InvalidPolygon as exc:
            logger.warning("Skipping room %s on floor %s: %s", room.id, floor.label, exc)
            continue
        rooms.append(room)

    dists = distances_from(point, centres)
    order = np.argsort(dists, kind="stable")
    return [RankedRoom(room=rooms[i], distance_m=float(dists[i])) for i in order if dists[i] <= radius_m]
