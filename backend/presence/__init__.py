"""Member presence: clustering, presentation and registration."""

from presence.clusterer import ALL_GROUPS, cluster, filter_members, granularity_for_zoom, singleton
from presence.presentation import (
    MarkerIdentity,
    MarkerKind,
    MarkerSpec,
    PinStyle,
    cluster_label,
    marker_spec,
    marker_specs,
    personal_spec,
    pin_coordinate,
    pin_style,
    staleness_opacity,
)
from presence.registration import (
    RegistrationError,
    manual_record,
    registered_coordinate,
    resolve_record,
    room_record,
)

__all__ = [
    "ALL_GROUPS",
    "MarkerIdentity",
    "MarkerKind",
    "MarkerSpec",
    "PinStyle",
    "RegistrationError",
    "cluster",
    "cluster_label",
    "filter_members",
    "granularity_for_zoom",
    "manual_record",
    "marker_spec",
    "marker_specs",
    "personal_spec",
    "pin_coordinate",
    "pin_style",
    "registered_coordinate",
    "resolve_record",
    "room_record",
    "singleton",
    "staleness_opacity",
]
