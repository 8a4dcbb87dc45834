"""Viewport contract and an in-memory map viewport."""

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from core.models import ClusterGroup, Coordinate, MemberPresence
from presence.presentation import MarkerKind, MarkerSpec

BUILDING_LAYERS = ("buildings-fill", "buildings-line")


@dataclass
class MarkerElement:
    """What the manager hands to a viewport: a drawable spec plus its click action."""

    spec: MarkerSpec
    on_click: Callable[[], None] | None = None

    @property
    def kind(self) -> MarkerKind:
        return self.spec.kind

    @property
    def group(self) -> ClusterGroup | None:
        return self.spec.group

    @property
    def member(self) -> MemberPresence | None:
        group = self.spec.group
        if group is None or not group.is_individual:
            return None
        return group.members[0]


@dataclass
class MarkerHandle:
    id: int
    element: MarkerElement
    coordinate: Coordinate

    def click(self) -> None:
        if self.element.on_click is not None:
            self.element.on_click()


class Viewport(Protocol):
    def add_marker(self, element: MarkerElement, coordinate: Coordinate) -> MarkerHandle: ...

    def remove_marker(self, handle: MarkerHandle) -> None: ...

    def get_zoom(self) -> float: ...

    def on_zoom_change(self, callback: Callable[[float], None]) -> None: ...

    def off_zoom_change(self, callback: Callable[[float], None]) -> None: ...

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None: ...


@dataclass
class MapViewport:
    """Headless viewport that tracks attached markers, zoom and layer visibility."""

    name: str
    zoom: float = 14.0
    center: Coordinate | None = None
    layers: dict[str, bool] = field(default_factory=lambda: dict.fromkeys(BUILDING_LAYERS, False))
    _markers: dict[int, MarkerHandle] = field(default_factory=dict, init=False, repr=False)
    _zoom_listeners: list[Callable[[float], None]] = field(default_factory=list, init=False, repr=False)
    _ids: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def add_marker(self, element: MarkerElement, coordinate: Coordinate) -> MarkerHandle:
        handle = MarkerHandle(id=next(self._ids), element=element, coordinate=coordinate)
        self._markers[handle.id] = handle
        return handle

    def remove_marker(self, handle: MarkerHandle) -> None:
        self._markers.pop(handle.id, None)

    def get_zoom(self) -> float:
        return self.zoom

    def on_zoom_change(self, callback: Callable[[float], None]) -> None:
        self._zoom_listeners.append(callback)

    def off_zoom_change(self, callback: Callable[[float], None]) -> None:
        if callback in self._zoom_listeners:
            self._zoom_listeners.remove(callback)

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None:
        self.layers[layer_id] = visible

    def set_zoom(self, zoom: float) -> None:
        """Simulate a user zoom: update and notify every listener."""
        self.zoom = zoom
        for callback in list(self._zoom_listeners):
            callback(zoom)

    def fly_to(self, center: Coordinate, zoom: float) -> None:
        self.center = center
        self.set_zoom(zoom)

    @property
    def markers(self) -> list[MarkerHandle]:
        return list(self._markers.values())

    def marker(self, handle_id: int) -> MarkerHandle | None:
        return self._markers.get(handle_id)

    def markers_of(self, *kinds: MarkerKind) -> list[MarkerHandle]:
        return [h for h in self._markers.values() if h.element.kind in kinds]
