"""Renderer-neutral presentation of pins and clusters."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from core.config import DEFAULT, AppConfig
from core.models import DEFAULT_ICON_URL, ClusterGroup, Coordinate, MemberPresence, MemberStatus

STATUS_COLORS: dict[MemberStatus, str] = {
    MemberStatus.PRESENT: "#00FF00",
    MemberStatus.AWAY: "#FFFF00",
    MemberStatus.MOVING: "#FFA500",
    MemberStatus.LEFT: "#808080",
}
UNKNOWN_STATUS_COLOR = "#FF0000"

MEMBER_BORDER_COLOR = "#FFFFFF"
CLUSTER_FILL_COLOR = "#FFD700"
CLUSTER_BORDER_COLOR = "#9ACD32"
GPS_FILL_COLOR = "#FF0000"
GPS_BORDER_COLOR = "#CC0000"
REGISTERED_FILL_COLOR = "#0066FF"
REGISTERED_BORDER_COLOR = "#004499"


class MarkerKind(StrEnum):
    PERSONAL_GPS = "personal_gps"
    PERSONAL_REGISTERED = "personal_registered"
    MEMBER = "member"
    CLUSTER = "cluster"


@dataclass(frozen=True)
class PinStyle:
    color: str
    opacity: float


@dataclass
class MarkerSpec:
    """Everything a renderer needs to draw one marker.

    ``icon_url`` is shown when present; ``label`` is the text fallback
    (an initial for people, a head count for clusters).
    """

    kind: MarkerKind
    coordinate: Coordinate
    color: str
    border_color: str
    opacity: float = 1.0
    label: str | None = None
    icon_url: str | None = None
    group: ClusterGroup | None = None


@dataclass(frozen=True)
class MarkerIdentity:
    """Who a personal marker belongs to."""

    username: str | None = None
    icon_url: str | None = None

    @property
    def initial(self) -> str:
        return self.username[0] if self.username else "?"


# ---------------------------------------------------------------------------
# Member pins
# ---------------------------------------------------------------------------


def staleness_opacity(timestamp: datetime, now: datetime, config: AppConfig = DEFAULT) -> float:
    """Fade pins whose location report is old."""
    age_h = (now - timestamp).total_seconds() / 3600.0
    if age_h > config.stale_age_hours:
        return config.stale_opacity
    if age_h > config.fresh_age_hours:
        return config.aging_opacity
    return config.fresh_opacity


def pin_style(member: MemberPresence, now: datetime, config: AppConfig = DEFAULT) -> PinStyle:
    color = UNKNOWN_STATUS_COLOR if member.status is None else STATUS_COLORS[member.status]
    if member.location is None:
        return PinStyle(color=color, opacity=config.fresh_opacity)
    return PinStyle(color=color, opacity=staleness_opacity(member.location.timestamp, now, config))


def pin_coordinate(member: MemberPresence, config: AppConfig = DEFAULT) -> Coordinate:
    """Member position nudged by its display offset so co-located pins stay apart."""
    loc = member.location
    if loc is None:
        raise ValueError(f"member {member.id} has no location to pin")
    scale = config.display_offset_scale_deg
    return Coordinate(
        lat=loc.coordinates.lat + loc.display_offset.y * scale,
        lng=loc.coordinates.lng + loc.display_offset.x * scale,
    )


def usable_icon(icon_url: str | None) -> str | None:
    if not icon_url or icon_url == DEFAULT_ICON_URL:
        return None
    return icon_url


def cluster_label(count: int, config: AppConfig = DEFAULT) -> str:
    return f"{config.cluster_label_cap}+" if count > config.cluster_label_cap else str(count)


# ---------------------------------------------------------------------------
# Group -> marker
# ---------------------------------------------------------------------------


def marker_spec(group: ClusterGroup, now: datetime, config: AppConfig = DEFAULT) -> MarkerSpec:
    """Marker for one group. Groups of one always render as the member's own pin."""
    if group.is_individual:
        member = group.members[0]
        style = pin_style(member, now, config)
        return MarkerSpec(
            kind=MarkerKind.MEMBER,
            coordinate=pin_coordinate(member, config),
            color=style.color,
            border_color=MEMBER_BORDER_COLOR,
            opacity=style.opacity,
            label=member.username[:1],
            icon_url=usable_icon(member.icon_url),
            group=group,
        )
    return MarkerSpec(
        kind=MarkerKind.CLUSTER,
        coordinate=group.coordinates,
        color=CLUSTER_FILL_COLOR,
        border_color=CLUSTER_BORDER_COLOR,
        label=cluster_label(len(group.members), config),
        group=group,
    )


def marker_specs(groups: Sequence[ClusterGroup], now: datetime, config: AppConfig = DEFAULT) -> list[MarkerSpec]:
    return [marker_spec(g, now, config) for g in groups]


def personal_spec(kind: MarkerKind, coordinate: Coordinate, identity: MarkerIdentity) -> MarkerSpec:
    """The user's own GPS (red) or registered (blue) marker, with the initial as fallback."""
    match kind:
        case MarkerKind.PERSONAL_GPS:
            color, border = GPS_FILL_COLOR, GPS_BORDER_COLOR
        case MarkerKind.PERSONAL_REGISTERED:
            color, border = REGISTERED_FILL_COLOR, REGISTERED_BORDER_COLOR
        case _:
            raise ValueError(f"not a personal marker kind: {kind}")
    return MarkerSpec(
        kind=kind,
        coordinate=coordinate,
        color=color,
        border_color=border,
        label=identity.initial,
        icon_url=usable_icon(identity.icon_url),
    )
