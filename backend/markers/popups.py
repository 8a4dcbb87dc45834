"""Detail popups shown when a member pin or cluster marker is clicked."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, TypeAlias

from core.models import DEFAULT_ICON_URL, CampusTopology, ClusterGranularity, ClusterGroup, MemberPresence

UNKNOWN = "Unknown"


class PopupPresenter(Protocol):
    def show_member(self, member: MemberPresence) -> None: ...

    def show_cluster(self, group: ClusterGroup) -> None: ...


@dataclass
class MemberDetail:
    member_id: str
    username: str
    icon_url: str
    status: str
    location: str
    note: str
    updated_at: datetime | None


@dataclass
class ClusterMemberLine:
    member_id: str
    username: str
    icon_url: str
    status: str
    room: str | None = None  # only shown for building-wide clusters


@dataclass
class ClusterDetail:
    title: str
    summary: str
    members: list[ClusterMemberLine] = field(default_factory=list)


PopupContent: TypeAlias = MemberDetail | ClusterDetail


def _place_names(
    topology: CampusTopology,
    building_id: str | None,
    floor_label: str | None,
    room_id: str | None,
) -> tuple[str, str, str]:
    building = topology.building(building_id)
    floor = building.floor(floor_label) if building is not None and floor_label is not None else None
    room = floor.room(room_id) if floor is not None and room_id is not None else None
    return (
        building.name if building else UNKNOWN,
        floor_label or UNKNOWN,
        room.name if room else UNKNOWN,
    )


def _status_text(member: MemberPresence) -> str:
    return member.status.value if member.status is not None else UNKNOWN


def describe_member(member: MemberPresence, topology: CampusTopology) -> MemberDetail:
    loc = member.location
    if loc is None:
        location = UNKNOWN
    else:
        location = " ".join(_place_names(topology, loc.building_id, loc.floor_label, loc.room_id))
    return MemberDetail(
        member_id=member.id,
        username=member.username,
        icon_url=member.icon_url or DEFAULT_ICON_URL,
        status=_status_text(member),
        location=location,
        note=member.note or "None",
        updated_at=loc.timestamp if loc else None,
    )


def describe_cluster(group: ClusterGroup, topology: CampusTopology) -> ClusterDetail:
    """Building clusters list each member's floor and room; room clusters share one."""
    building_name, floor_label, room_name = _place_names(topology, group.building_id, group.floor_label, group.room_id)
    count = len(group.members)
    by_building = group.granularity == ClusterGranularity.BUILDING

    lines: list[ClusterMemberLine] = []
    for member in group.members:
        room: str | None = None
        if by_building and member.location is not None:
            _, member_floor, member_room = _place_names(
                topology, member.location.building_id, member.location.floor_label, member.location.room_id
            )
            room = f"{member_floor} {member_room}"
        lines.append(
            ClusterMemberLine(
                member_id=member.id,
                username=member.username,
                icon_url=member.icon_url or DEFAULT_ICON_URL,
                status=_status_text(member),
                room=room,
            )
        )

    if by_building:
        return ClusterDetail(title=building_name, summary=f"{count} present in building", members=lines)
    return ClusterDetail(
        title=f"{building_name} {floor_label} {room_name}",
        summary=f"{count} present in room",
        members=lines,
    )


class PopupBoard:
    """Popup collaborator that keeps the most recent popup for whoever renders it."""

    def __init__(self, topology: CampusTopology) -> None:
        self.topology = topology
        self.current: PopupContent | None = None

    def show_member(self, member: MemberPresence) -> None:
        self.current = describe_member(member, self.topology)

    def show_cluster(self, group: ClusterGroup) -> None:
        self.current = describe_cluster(group, self.topology)

    def open_member_from_cluster(self, group: ClusterGroup, member_id: str) -> bool:
        """Drill down from a cluster popup into one of its members."""
        member = next((m for m in group.members if m.id == member_id), None)
        if member is None:
            return False
        self.show_member(member)
        return True

    def close(self) -> None:
        self.current = None
