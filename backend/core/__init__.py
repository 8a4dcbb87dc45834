"""Core domain models and tunables."""

from core.config import DEFAULT, AppConfig
from core.models import (
    Building,
    CampusTopology,
    ClusterGranularity,
    ClusterGroup,
    Coordinate,
    DisplayOffset,
    Floor,
    IconType,
    MemberLocation,
    MemberPresence,
    MemberStatus,
    Polygon,
    PresenceRecord,
    ProfileError,
    Room,
    UserProfile,
    parse_timestamp,
)

__all__ = [
    "DEFAULT",
    "AppConfig",
    "Building",
    "CampusTopology",
    "ClusterGranularity",
    "ClusterGroup",
    "Coordinate",
    "DisplayOffset",
    "Floor",
    "IconType",
    "MemberLocation",
    "MemberPresence",
    "MemberStatus",
    "Polygon",
    "PresenceRecord",
    "ProfileError",
    "Room",
    "UserProfile",
    "parse_timestamp",
]
