"""Marker lifecycle across map viewports."""

from markers.lifecycle import MarkerLifecycleManager
from markers.popups import (
    ClusterDetail,
    ClusterMemberLine,
    MemberDetail,
    PopupBoard,
    PopupContent,
    PopupPresenter,
    describe_cluster,
    describe_member,
)
from markers.viewport import BUILDING_LAYERS, MapViewport, MarkerElement, MarkerHandle, Viewport

__all__ = [
    "BUILDING_LAYERS",
    "ClusterDetail",
    "ClusterMemberLine",
    "MapViewport",
    "MarkerElement",
    "MarkerHandle",
    "MarkerLifecycleManager",
    "MemberDetail",
    "PopupBoard",
    "PopupContent",
    "PopupPresenter",
    "Viewport",
    "describe_cluster",
    "describe_member",
]
