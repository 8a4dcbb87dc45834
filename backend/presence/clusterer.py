"""Zoom-adaptive clustering of member presence into pins and clusters."""

import logging
from collections.abc import Sequence

from core.config import DEFAULT, AppConfig
from core.models import ClusterGranularity, ClusterGroup, MemberLocation, MemberPresence

logger = logging.getLogger(__name__)

ALL_GROUPS = "all"


def filter_members(members: Sequence[MemberPresence], group_filter: str) -> list[MemberPresence]:
    if group_filter == ALL_GROUPS:
        return list(members)
    return [m for m in members if group_filter in m.groups]


def granularity_for_zoom(zoom: float, config: AppConfig = DEFAULT) -> ClusterGranularity | None:
    """Cluster key resolution at ``zoom``; None means every member gets its own pin."""
    if zoom >= config.individual_pin_min_zoom:
        return None
    if zoom < config.building_cluster_max_zoom:
        return ClusterGranularity.BUILDING
    return ClusterGranularity.ROOM


def singleton(member: MemberPresence) -> ClusterGroup:
    """The individual-pin group for one member. Both clustering paths emit exactly this."""
    loc = member.location
    if loc is None:
        raise ValueError(f"member {member.id} has no location to pin")
    return ClusterGroup(
        key=f"member:{member.id}",
        members=[member],
        coordinates=loc.coordinates,
        building_id=loc.building_id,
        floor_label=loc.floor_label,
        room_id=loc.room_id,
        granularity=ClusterGranularity.ROOM,
    )


def cluster(
    members: Sequence[MemberPresence],
    zoom: float,
    group_filter: str = ALL_GROUPS,
    config: AppConfig = DEFAULT,
) -> list[ClusterGroup]:
    """Partition the filtered members into groups for display at ``zoom``.

    Groups come out in the order their key is first seen. A group's
    coordinates are those of its first member. Groups of one are replaced by
    the individual pin for that member, so a population of one is never
    drawn as a cluster. Members without a location are skipped.
    """
    located: list[tuple[MemberPresence, MemberLocation]] = []
    skipped = 0
    for member in filter_members(members, group_filter):
        if member.location is None:
            skipped += 1
            continue
        located.append((member, member.location))
    if skipped:
        logger.debug("Skipped %d members without a location", skipped)

    granularity = granularity_for_zoom(zoom, config)
    if granularity is None:
        return [singleton(m) for m, _ in located]

    groups: dict[str, ClusterGroup] = {}
    for member, loc in located:
        key = _cluster_key(loc, granularity)
        group = groups.get(key)
        if group is None:
            group = ClusterGroup(
                key=key,
                members=[],
                coordinates=loc.coordinates,
                building_id=loc.building_id,
                floor_label=loc.floor_label if granularity == ClusterGranularity.ROOM else None,
                room_id=loc.room_id if granularity == ClusterGranularity.ROOM else None,
                granularity=granularity,
            )
            groups[key] = group
        group.members.append(member)

    return [singleton(g.members[0]) if g.is_individual else g for g in groups.values()]


def _cluster_key(loc: MemberLocation, granularity: ClusterGranularity) -> str:
    match granularity:
        case ClusterGranularity.BUILDING:
            return f"building:{loc.building_id}"
        case ClusterGranularity.ROOM:
            return f"room:{loc.building_id}|{loc.floor_label}|{loc.room_id}"
