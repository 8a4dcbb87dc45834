"""Location resolution: building containment and room proximity."""

from locating.building_locator import locate, nearest_building
from locating.room_ranker import DEFAULT_RADIUS_M, RankedRoom, rank

__all__ = ["DEFAULT_RADIUS_M", "RankedRoom", "locate", "nearest_building", "rank"]
