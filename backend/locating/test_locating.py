"""Tests for building containment and room ranking."""

import logging
import math

import pytest

from core.models import Building, Coordinate, Floor, Room
from data.sample_campus import SAMPLE_CAMPUS
from geometry.geo import EARTH_RADIUS_M
from locating import locate, nearest_building, rank

_DEG_PER_M = 180.0 / (EARTH_RADIUS_M * math.pi)


def _square(center: Coordinate, half_side_deg: float = 0.00001) -> list[Coordinate]:
    return [
        Coordinate(lat=center.lat - half_side_deg, lng=center.lng - half_side_deg),
        Coordinate(lat=center.lat - half_side_deg, lng=center.lng + half_side_deg),
        Coordinate(lat=center.lat + half_side_deg, lng=center.lng + half_side_deg),
        Coordinate(lat=center.lat + half_side_deg, lng=center.lng - half_side_deg),
    ]


def _room_north_of_origin(room_id: str, metres: float) -> Room:
    return Room(id=room_id, name=room_id, usage="", polygon=_square(Coordinate(lat=metres * _DEG_PER_M, lng=0.0)))


ORIGIN = Coordinate(lat=0.0, lng=0.0)


# -----------------------------------------------------------------------------
# BuildingLocator
# -----------------------------------------------------------------------------


def test_locate_finds_containing_building() -> None:
    inside_annex = Coordinate(lat=35.1708, lng=136.8830)
    building = locate(inside_annex, SAMPLE_CAMPUS.buildings)
    assert building is not None
    assert building.id == "bldg-annex"


def test_locate_outside_everything_is_not_found() -> None:
    # The gap between the two buildings.
    assert locate(Coordinate(lat=35.1708, lng=136.8822), SAMPLE_CAMPUS.buildings) is None


def test_locate_overlap_last_match_wins() -> None:
    outline = _square(ORIGIN, half_side_deg=0.001)
    first = Building(id="first", name="First", polygon=outline, floors=[])
    second = Building(id="second", name="Second", polygon=outline, floors=[])

    found = locate(ORIGIN, [first, second])
    assert found is second
    assert locate(ORIGIN, [second, first]) is first


def test_locate_skips_unusable_outline(caplog: pytest.LogCaptureFixture) -> None:
    broken = Building(id="broken", name="Broken", polygon=[ORIGIN], floors=[])
    good = Building(id="good", name="Good", polygon=_square(ORIGIN, 0.001), floors=[])

    with caplog.at_level(logging.WARNING):
        found = locate(ORIGIN, [good, broken])
    assert found is good
    assert "broken" in caplog.text


def test_nearest_building_hint() -> None:
    gap = Coordinate(lat=35.1708, lng=136.8823)
    hit = nearest_building(gap, SAMPLE_CAMPUS.buildings)
    assert hit is not None
    building, metres = hit
    assert building.id == "bldg-annex"
    assert metres > 0

    assert nearest_building(gap, SAMPLE_CAMPUS.buildings, max_distance_m=1.0) is None


# -----------------------------------------------------------------------------
# RoomRanker
# -----------------------------------------------------------------------------


def test_rank_orders_by_distance_within_radius() -> None:
    floor = Floor(
        label="1F",
        rooms=[
            _room_north_of_origin("thirty", 30.0),
            _room_north_of_origin("sixty", 60.0),
            _room_north_of_origin("ten", 10.0),
        ],
    )
    ranked = rank(ORIGIN, floor, radius_m=50.0)

    assert [r.room.id for r in ranked] == ["ten", "thirty"]
    assert ranked[0].distance_m == pytest.approx(10.0, abs=0.01)
    assert ranked[1].distance_m == pytest.approx(30.0, abs=0.01)


def test_rank_never_exceeds_radius_and_is_sorted() -> None:
    floor = Floor(label="1F", rooms=[_room_north_of_origin(f"r{m}", float(m)) for m in (45, 5, 80, 25, 50.5, 15)])
    for radius in (0.0, 10.0, 30.0, 50.0, 100.0):
        ranked = rank(ORIGIN, floor, radius_m=radius)
        distances = [r.distance_m for r in ranked]
        assert all(d <= radius for d in distances)
        assert distances == sorted(distances)


def test_rank_ties_keep_floor_order() -> None:
    east = Room(id="east", name="east", usage="", polygon=_square(Coordinate(lat=0.0, lng=0.0001)))
    west = Room(id="west", name="west", usage="", polygon=_square(Coordinate(lat=0.0, lng=-0.0001)))
    ranked = rank(ORIGIN, Floor(label="1F", rooms=[west, east]))
    assert [r.room.id for r in ranked] == ["west", "east"]


def test_rank_empty_result_and_broken_rooms() -> None:
    broken = Room(id="broken", name="broken", usage="", polygon=[])
    far = _room_north_of_origin("far", 500.0)
    assert rank(ORIGIN, Floor(label="B1", rooms=[broken, far])) == []
    assert rank(ORIGIN, Floor(label="B2", rooms=[])) == []


def test_rank_sample_floor() -> None:
    main = SAMPLE_CAMPUS.building("bldg-main")
    assert main is not None
    floor = main.floor("1F")
    assert floor is not None

    ranked = rank(Coordinate(lat=35.17065, lng=136.88175), floor)
    assert ranked
    assert ranked[0].room.id == "m-102"
