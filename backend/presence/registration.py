"""Building presence records from a selection, and resolving them back."""

import logging
from datetime import UTC, datetime

from core.models import Building, CampusTopology, Coordinate, Floor, PresenceRecord, Room, UserProfile
from geometry.geo import InvalidPolygon, centroid

logger = logging.getLogger(__name__)


class RegistrationError(ValueError):
    """A register action was attempted without the data it needs."""


def room_record(
    profile: UserProfile | None,
    building: Building | None,
    floor: Floor | None,
    room: Room | None,
    coordinates: Coordinate | None,
    now: datetime | None = None,
) -> PresenceRecord:
    if profile is None or building is None or floor is None or room is None:
        raise RegistrationError("user, building, floor and room must all be selected")
    return PresenceRecord(
        user_id=profile.id,
        username=profile.username,
        is_manual=False,
        timestamp=now or datetime.now(UTC),
        building_id=building.id,
        building_name=building.name,
        floor_label=floor.label,
        room_id=room.id,
        room_name=room.name,
        coordinates=coordinates,
    )


def manual_record(profile: UserProfile | None, location_name: str, now: datetime | None = None) -> PresenceRecord:
    """Free-text presence. No coordinates are stored for manual entries."""
    if profile is None:
        raise RegistrationError("no user profile")
    name = location_name.strip()
    if not name:
        raise RegistrationError("location name is empty")
    return PresenceRecord(
        user_id=profile.id,
        username=profile.username,
        is_manual=True,
        timestamp=now or datetime.now(UTC),
        room_name=name,
        manual_location_name=name,
    )


def resolve_record(record: PresenceRecord, topology: CampusTopology) -> tuple[Building, Floor, Room] | None:
    """Map a stored record back onto the topology. None for manual or dangling records."""
    if record.is_manual:
        return None
    resolved = topology.resolve(record.building_id, record.floor_label, record.room_id)
    if resolved is None:
        logger.debug(
            "Presence record points at unknown location %s/%s/%s",
            record.building_id,
            record.floor_label,
            record.room_id,
        )
    return resolved


def registered_coordinate(
    record: PresenceRecord,
    topology: CampusTopology,
    current_location: Coordinate | None = None,
) -> Coordinate | None:
    """Where the registered marker goes: the room centre, or the live fix for manual entries."""
    if record.is_manual:
        return current_location
    resolved = resolve_record(record, topology)
    if resolved is None:
        return None
    _, _, room = resolved
    try:
        return centroid(room.polygon)
    except InvalidPolygon as exc:
        logger.debug("Registered room %s has no usable outline: %s", room.id, exc)
        return None
