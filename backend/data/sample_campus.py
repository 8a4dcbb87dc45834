"""Sample campus topology and member snapshot for demos and testing."""

from datetime import UTC, datetime, timedelta

from core.models import (
    Building,
    CampusTopology,
    Coordinate,
    DisplayOffset,
    Floor,
    MemberLocation,
    MemberPresence,
    MemberStatus,
    Room,
)


def _rect(south: float, west: float, north: float, east: float) -> list[Coordinate]:
    """Axis-aligned ring, counter-clockwise from the south-west corner."""
    return [
        Coordinate(lat=south, lng=west),
        Coordinate(lat=south, lng=east),
        Coordinate(lat=north, lng=east),
        Coordinate(lat=north, lng=west),
    ]


def create_sample_campus() -> CampusTopology:
    """Two office buildings next to Nagoya station."""
    return CampusTopology(buildings=[_main_tower(), _annex()])


def _main_tower() -> Building:
    """Main tower: reception and meeting rooms downstairs, desks upstairs."""
    return Building(
        id="bldg-main",
        name="本館",
        polygon=_rect(35.1705, 136.8810, 35.1712, 136.8820),
        floors=[
            Floor(
                label="1F",
                rooms=[
                    Room(id="m-101", name="受付", usage="Reception", polygon=_rect(35.1705, 136.8810, 35.1708, 136.8815)),
                    Room(id="m-102", name="会議室A", usage="Meeting", polygon=_rect(35.1705, 136.8815, 35.1708, 136.8820)),
                    Room(id="m-103", name="食堂", usage="Cafeteria", polygon=_rect(35.1708, 136.8810, 35.1712, 136.8820)),
                ],
            ),
            Floor(
                label="2F",
                rooms=[
                    Room(id="m-201", name="執務室", usage="Office", polygon=_rect(35.1705, 136.8810, 35.1712, 136.8815)),
                    Room(id="m-202", name="会議室B", usage="Meeting", polygon=_rect(35.1705, 136.8815, 35.1712, 136.8820)),
                ],
            ),
        ],
    )


def _annex() -> Building:
    """Annex: a single lab floor."""
    return Building(
        id="bldg-annex",
        name="別館",
        polygon=_rect(35.1705, 136.8825, 35.1712, 136.8835),
        floors=[
            Floor(
                label="1F",
                rooms=[
                    Room(id="a-101", name="実験室", usage="Lab", polygon=_rect(35.1705, 136.8825, 35.1712, 136.8830)),
                    Room(id="a-102", name="倉庫", usage="Storage", polygon=_rect(35.1705, 136.8830, 35.1712, 136.8835)),
                ],
            ),
        ],
    )


def create_sample_members(now: datetime | None = None) -> list[MemberPresence]:
    """A small member snapshot spread across both buildings."""
    now = now or datetime.now(UTC)

    def loc(
        building_id: str,
        floor: str,
        room_id: str,
        lat: float,
        lng: float,
        age: timedelta,
        dx: float = 0.0,
    ) -> MemberLocation:
        return MemberLocation(
            coordinates=Coordinate(lat=lat, lng=lng),
            building_id=building_id,
            floor_label=floor,
            room_id=room_id,
            timestamp=now - age,
            display_offset=DisplayOffset(x=dx, y=0.0),
        )

    return [
        MemberPresence(
            id="u-001",
            username="佐藤",
            status=MemberStatus.PRESENT,
            groups=frozenset({"営業部"}),
            location=loc("bldg-main", "2F", "m-201", 35.17085, 136.88125, timedelta(minutes=5)),
        ),
        MemberPresence(
            id="u-002",
            username="鈴木",
            status=MemberStatus.AWAY,
            groups=frozenset({"営業部", "企画部"}),
            location=loc("bldg-main", "2F", "m-201", 35.17085, 136.88125, timedelta(hours=3), dx=3.0),
            note="昼休憩",
        ),
        MemberPresence(
            id="u-003",
            username="高橋",
            status=MemberStatus.MOVING,
            groups=frozenset({"開発部"}),
            location=loc("bldg-main", "1F", "m-102", 35.17065, 136.88175, timedelta(minutes=30)),
        ),
        MemberPresence(
            id="u-004",
            username="田中",
            status=MemberStatus.PRESENT,
            groups=frozenset({"開発部"}),
            location=loc("bldg-annex", "1F", "a-101", 35.17085, 136.88275, timedelta(minutes=10)),
        ),
        MemberPresence(
            id="u-005",
            username="伊藤",
            status=MemberStatus.LEFT,
            groups=frozenset({"企画部"}),
            location=loc("bldg-annex", "1F", "a-101", 35.17085, 136.88275, timedelta(days=2), dx=-3.0),
        ),
    ]


SAMPLE_CAMPUS = create_sample_campus()
