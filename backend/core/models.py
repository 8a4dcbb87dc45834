"""Core data models for campus topology and member presence."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TypeAlias


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 position in degrees."""

    lat: float
    lng: float


Polygon: TypeAlias = list[Coordinate]


@dataclass
class Room:
    id: str
    name: str
    usage: str
    polygon: Polygon


@dataclass
class Floor:
    label: str
    rooms: list[Room]

    def room(self, room_id: str) -> Room | None:
        return next((r for r in self.rooms if r.id == room_id), None)


@dataclass
class Building:
    id: str
    name: str
    polygon: Polygon
    floors: list[Floor]

    def floor(self, label: str) -> Floor | None:
        return next((f for f in self.floors if f.label == label), None)


@dataclass
class CampusTopology:
    """Static building topology, loaded once at startup."""

    buildings: list[Building]

    def building(self, building_id: str | None) -> Building | None:
        if building_id is None:
            return None
        return next((b for b in self.buildings if b.id == building_id), None)

    def resolve(
        self,
        building_id: str | None,
        floor_label: str | None,
        room_id: str | None,
    ) -> tuple[Building, Floor, Room] | None:
        """Look up a building/floor/room triple by id. None if any part dangles."""
        building = self.building(building_id)
        if building is None or floor_label is None or room_id is None:
            return None
        floor = building.floor(floor_label)
        if floor is None:
            return None
        room = floor.room(room_id)
        if room is None:
            return None
        return building, floor, room


# ---------------------------------------------------------------------------
# Member presence snapshot
# ---------------------------------------------------------------------------


class MemberStatus(StrEnum):
    PRESENT = "present"
    AWAY = "away"
    MOVING = "moving"
    LEFT = "left"

    @classmethod
    def parse(cls, raw: object) -> "MemberStatus | None":
        """Accept English names and the Japanese labels used in member exports."""
        if not isinstance(raw, str):
            return None
        key = raw.strip()
        if key in _JAPANESE_STATUS:
            return _JAPANESE_STATUS[key]
        try:
            return cls(key.lower())
        except ValueError:
            return None


_JAPANESE_STATUS: dict[str, MemberStatus] = {
    "在席": MemberStatus.PRESENT,
    "離席": MemberStatus.AWAY,
    "移動中": MemberStatus.MOVING,
    "退室済": MemberStatus.LEFT,
}


@dataclass(frozen=True)
class DisplayOffset:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class MemberLocation:
    coordinates: Coordinate
    building_id: str
    floor_label: str | None
    room_id: str | None
    timestamp: datetime
    display_offset: DisplayOffset = field(default_factory=DisplayOffset)


@dataclass(frozen=True)
class MemberPresence:
    """Read-only snapshot of another member. ``location`` is None for malformed records."""

    id: str
    username: str
    status: MemberStatus | None
    groups: frozenset[str]
    location: MemberLocation | None
    icon_url: str | None = None
    note: str | None = None


class ClusterGranularity(StrEnum):
    BUILDING = "building"
    ROOM = "room"


@dataclass
class ClusterGroup:
    """Members aggregated under one key. A group of one is an individual pin."""

    key: str
    members: list[MemberPresence]
    coordinates: Coordinate
    building_id: str
    floor_label: str | None
    room_id: str | None
    granularity: ClusterGranularity

    @property
    def is_individual(self) -> bool:
        return len(self.members) == 1


# ---------------------------------------------------------------------------
# Local user state
# ---------------------------------------------------------------------------


class IconType(StrEnum):
    DEFAULT = "default"
    CUSTOM = "custom"


DEFAULT_ICON_URL = "icons/default.png"
MAX_USERNAME_LENGTH = 20
USER_ID_DIGITS = 7


class ProfileError(ValueError):
    """A user profile failed validation."""


@dataclass
class UserProfile:
    id: str
    username: str
    group: str
    icon_url: str = DEFAULT_ICON_URL
    icon_type: IconType = IconType.DEFAULT
    icon_data: str | None = "person"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def validate(self) -> None:
        """Username of 1-20 characters, id of exactly seven digits."""
        username = self.username.strip()
        if not username or len(username) > MAX_USERNAME_LENGTH:
            raise ProfileError(f"username must be 1-{MAX_USERNAME_LENGTH} characters")
        if len(self.id) != USER_ID_DIGITS or not self.id.isascii() or not self.id.isdigit():
            raise ProfileError(f"id must be exactly {USER_ID_DIGITS} digits")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "username": self.username,
            "group": self.group,
            "iconUrl": self.icon_url,
            "iconType": self.icon_type.value,
            "iconData": self.icon_data,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "UserProfile":
        created = data.get("createdAt")
        return cls(
            id=str(data["id"]),
            username=str(data["username"]),
            group=str(data.get("group") or ""),
            icon_url=str(data.get("iconUrl") or DEFAULT_ICON_URL),
            icon_type=IconType(str(data.get("iconType") or IconType.DEFAULT)),
            icon_data=_optional_str(data.get("iconData")),
            created_at=parse_timestamp(created) if isinstance(created, str) else datetime.now(UTC),
        )


@dataclass
class PresenceRecord:
    """The local user's self-reported location. Room fields and manual text are gated by ``is_manual``."""

    user_id: str
    username: str
    is_manual: bool
    timestamp: datetime
    building_id: str | None = None
    building_name: str | None = None
    floor_label: str | None = None
    room_id: str | None = None
    room_name: str | None = None
    coordinates: Coordinate | None = None
    manual_location_name: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "userId": self.user_id,
            "username": self.username,
            "buildingId": self.building_id,
            "buildingName": self.building_name,
            "floorLabel": self.floor_label,
            "roomId": self.room_id,
            "roomName": self.room_name,
            "coordinates": (
                {"lat": self.coordinates.lat, "lng": self.coordinates.lng} if self.coordinates is not None else None
            ),
            "timestamp": self.timestamp.isoformat(),
            "isManual": self.is_manual,
            "manualLocationName": self.manual_location_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "PresenceRecord":
        coords = data.get("coordinates")
        coordinates = None
        if isinstance(coords, dict):
            coordinates = Coordinate(lat=float(coords["lat"]), lng=float(coords["lng"]))
        return cls(
            user_id=str(data["userId"]),
            username=str(data["username"]),
            is_manual=bool(data.get("isManual", False)),
            timestamp=parse_timestamp(str(data["timestamp"])),
            building_id=_optional_str(data.get("buildingId")),
            building_name=_optional_str(data.get("buildingName")),
            floor_label=_optional_str(data.get("floorLabel")),
            room_id=_optional_str(data.get("roomId")),
            room_name=_optional_str(data.get("roomName")),
            coordinates=coordinates,
            manual_location_name=_optional_str(data.get("manualLocationName")),
        )


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 with an optional ``Z`` suffix. Naive values are taken as UTC."""
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)
